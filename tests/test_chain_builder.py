# -*- coding: utf-8 -*-
"""Tests for escalation chain building, end to end through the XML loader."""

import pytest

from alertflow.models import ResolvedRule, RoleReference, Rule, RuleRole, RuleScope, RuleSettings
from alertflow.rule_engine.chain_builder import IMMEDIATE, format_recipient, map_component
from alertflow.rule_engine.xml_loader import XmlLoader

SECONDARY = {"parameters": [{"path": "state", "value": "\"Secondary\""}]}


def _load(doc):
    return XmlLoader().load_bytes(doc.to_bytes(), source="test.xml")


def _by_alarm(rows):
    return {row.alarm_name: row for row in rows}


class TestFormatting:
    """Tests for recipient and device formatting."""

    def _send(self, roles=(), destination=None):
        return ResolvedRule(
            rule=Rule(index=0, component="VMP",
                      settings=RuleSettings(destination=destination)),
            role=RuleRole.SEND,
            scope=RuleScope(roles=list(roles)),
        )

    def test_room_role(self):
        """Bed-scoped roles carry the [Room] token."""
        send = self._send([RoleReference(name="Nurse", path="bed.locs.assignments.role.name")])
        assert format_recipient(send) == "VAssign:[Room] Nurse"

    def test_several_roles_joined_by_newline(self):
        """Several roles become one multi-line recipient, always room-form."""
        send = self._send([
            RoleReference(name="Nurse", path="assignments.role.name"),
            RoleReference(name="Tech", path="assignments.role.name"),
        ])
        assert format_recipient(send) == "VAssign:[Room] Nurse\nVAssign:[Room] Tech"

    def test_destination_fallbacks(self):
        """Destinations become VGroup entries; templates stay literal."""
        assert format_recipient(self._send(destination="Team A")) == "VGroup Team A"
        assert format_recipient(self._send(destination="#{bed.room.unit.group}")) == \
            "#{bed.room.unit.group}"
        assert format_recipient(self._send(destination="VGroup Rapid")) == "VGroup Rapid"
        assert format_recipient(self._send()) == ""

    def test_destination_list_one_group_per_line(self):
        """A comma-separated destination becomes one VGroup line per entry."""
        assert format_recipient(self._send(destination="g-1, g-2,VGroup g-3")) == \
            "VGroup g-1\nVGroup g-2\nVGroup g-3"

    def test_map_component(self):
        """DataUpdate maps to Edge; adapters pass through."""
        assert map_component("DataUpdate") == "Edge"
        assert map_component("Vocera") == "Vocera"


class TestScenarios:
    """Tests for the core resolution scenarios."""

    def test_send_limited_to_create_alert_types(self, vent_document):
        """Only alert types covered by the CREATE rule produce rows."""
        result = _load(vent_document)
        rows = _by_alarm(result.flow_rows)
        assert sorted(rows) == ["EQUIPMENT", "VENT ALARM"]
        assert "VENT OUT" not in rows
        assert len(result.flow_rows) == 2

    def test_create_delay_sets_t1(self, vent_document):
        """The CREATE rule's delay is T1 and T2 stays empty."""
        row = _by_alarm(_load(vent_document).flow_rows)["VENT ALARM"]
        assert row.t1 == "60"
        assert row.t2 == ""
        assert row.r1 == "VAssign:[Room] Nurse"
        assert row.device_a == "VMP"

    def test_settings_applied(self, vent_document):
        """Priority, TTL and response options come from SEND settings."""
        row = _by_alarm(_load(vent_document).flow_rows)["EQUIPMENT"]
        assert row.priority_raw == "Urgent"
        assert row.ttl_value == "10"
        assert row.response_options == "Accept,Decline"

    def test_config_group_and_units(self, vent_document):
        """Facility from the CREATE rule names the config group."""
        result = _load(vent_document)
        assert {r.config_group for r in result.flow_rows} == {"Main_ICU_Clinicals"}
        assert len(result.unit_rows) == 1
        unit = result.unit_rows[0]
        assert (unit.facility, unit.unit_names) == ("Main", "ICU")
        assert unit.clin_group == "Main_ICU_Clinicals"

    def test_global_escalation_sets_t2(self, vent_document):
        """An ESCALATE rule without alert or unit filters times every alert."""
        vent_document.rule(
            "DataUpdate", "Clinicals", update=True, defer="60",
            views=["State_Primary"], settings=SECONDARY,
        )
        rows = _load(vent_document).flow_rows
        assert len(rows) == 2
        assert all(row.t2 == "60" for row in rows)

    def test_escalation_without_source_uses_target(self, vent_document):
        """Without a state filter the target state picks the position."""
        vent_document.rule(
            "DataUpdate", "Clinicals", update=True, defer="45",
            settings={"state": "Tertiary"},
        )
        rows = _load(vent_document).flow_rows
        assert all(row.t3 == "45" and row.t2 == "" for row in rows)

    def test_negative_role_escalation_contributes_nothing(self, vent_document):
        """Escalations guarded by a negative role filter never set timings."""
        vent_document.view(
            "Clinicals", "No_Nurse",
            ("bed.locs.assignments.role.name", "not_in", "Nurse"),
        )
        vent_document.rule(
            "DataUpdate", "Clinicals", update=True, defer="90",
            views=["State_Primary", "No_Nurse"], settings=SECONDARY,
        )
        for row in _load(vent_document).flow_rows:
            assert [row.t2, row.t3, row.t4, row.t5] == ["", "", "", ""]

    @pytest.mark.parametrize("relation", ["not_equal", "not_like"])
    def test_other_negative_role_relations(self, vent_document, relation):
        """not_equal and not_like role filters also exclude escalation timing."""
        vent_document.view(
            "Clinicals", "No_Nurse", ("bed.locs.assignments.role.name", relation, "Nurse"),
        )
        vent_document.rule(
            "DataUpdate", "Clinicals", update=True, defer="90",
            views=["State_Primary", "No_Nurse"], settings=SECONDARY,
        )
        for row in _load(vent_document).flow_rows:
            assert row.t2 == ""

    def test_escalation_only_interface_yields_no_rows(self, engage_doc):
        """CREATE plus ESCALATE without any SEND rule produces nothing."""
        engage_doc.view("Clinicals", "Alerts", ("alert_type", "in", "SPO2 LOW"))
        engage_doc.view("Clinicals", "State_Primary", ("state", "equal", "Primary"))
        engage_doc.rule("DataUpdate", "Clinicals", create=True, views=["Alerts"])
        engage_doc.rule(
            "DataUpdate", "Clinicals", update=True, defer="60",
            views=["Alerts", "State_Primary"], settings=SECONDARY,
        )
        assert _load(engage_doc).flow_rows == []

    def test_unit_scoped_escalation_stays_in_its_unit(self, engage_doc):
        """An escalation filtered on one unit only times that unit's rows."""
        engage_doc.view("Clinicals", "Alerts", ("alert_type", "in", "SPO2 LOW"))
        engage_doc.view("Clinicals", "Main", ("bed.room.unit.facility.name", "equal", "Main"))
        engage_doc.view("Clinicals", "Both_Units", ("bed.room.unit.name", "in", "ICU, CCU"))
        engage_doc.view("Clinicals", "Unit_ICU", ("bed.room.unit.name", "in", "ICU"))
        engage_doc.view("Clinicals", "State_Primary", ("state", "equal", "Primary"))
        engage_doc.rule("DataUpdate", "Clinicals", create=True,
                        views=["Alerts", "Main", "Both_Units"])
        engage_doc.rule("VMP", "Clinicals", views=["Alerts", "State_Primary"],
                        settings={"destination": "Team"})
        engage_doc.rule(
            "DataUpdate", "Clinicals", update=True, defer="90",
            views=["State_Primary", "Unit_ICU"], settings=SECONDARY,
        )
        rows = {r.config_group: r for r in _load(engage_doc).flow_rows}
        assert sorted(rows) == ["Main_CCU_Clinicals", "Main_ICU_Clinicals"]
        assert rows["Main_ICU_Clinicals"].t2 == "90"
        assert rows["Main_CCU_Clinicals"].t2 == ""
        assert rows["Main_CCU_Clinicals"].r1 == "VGroup Team"

    def test_first_escalation_wins(self, vent_document):
        """The first ESCALATE rule for a position supplies its delay."""
        for delay in ("60", "300"):
            vent_document.rule(
                "DataUpdate", "Clinicals", update=True, defer=delay,
                views=["State_Primary"], settings=SECONDARY,
            )
        assert all(row.t2 == "60" for row in _load(vent_document).flow_rows)

    def test_group_state_is_position_one(self, engage_doc):
        """A SEND rule filtered on state Group fills position 1."""
        engage_doc.view("Clinicals", "Alerts", ("alert_type", "in", "SPO2 LOW"))
        engage_doc.view("Clinicals", "State_Group", ("state", "equal", "Group"))
        engage_doc.rule("DataUpdate", "Clinicals", create=True, views=["Alerts"])
        engage_doc.rule(
            "XMPP", "Clinicals", views=["Alerts", "State_Group"],
            settings={"destination": "Rapid Response"},
        )
        rows = _load(engage_doc).flow_rows
        assert len(rows) == 1
        assert rows[0].r1 == "VGroup Rapid Response"
        assert rows[0].t1 == IMMEDIATE
        assert rows[0].r2 == ""

    def test_secondary_send_fills_position_two(self, vent_document):
        """SEND rules filtered on Secondary supply the second recipient."""
        vent_document.view("Clinicals", "State_Secondary", ("state", "equal", "Secondary"))
        vent_document.view("Clinicals", "Role_Charge", ("assignments.role.name", "equal", "Charge"))
        vent_document.rule(
            "VMP", "Clinicals",
            views=["Send_Alerts", "State_Secondary", "Role_Charge", "Unit_ICU"],
        )
        rows = _load(vent_document).flow_rows
        assert len(rows) == 2
        assert all(row.r1 == "VAssign:[Room] Nurse" for row in rows)
        assert all(row.r2 == "VAssign:[Room] Charge" for row in rows)

    def test_competing_sends_stay_separate(self, vent_document):
        """Different recipients at one position are separate rows."""
        vent_document.view("Clinicals", "Role_Tech", ("bed.locs.assignments.role.name", "equal", "Tech"))
        vent_document.rule(
            "VMP", "Clinicals",
            views=["Send_Alerts", "State_Primary", "Role_Tech", "Unit_ICU"],
        )
        rows = [r for r in _load(vent_document).flow_rows if r.alarm_name == "VENT ALARM"]
        assert sorted(r.r1 for r in rows) == ["VAssign:[Room] Nurse", "VAssign:[Room] Tech"]
        assert len({r.config_group for r in rows}) == 1

    def test_no_create_rule_means_no_rows(self, engage_doc):
        """SEND rules without a covering CREATE rule contribute nothing."""
        engage_doc.view("Clinicals", "Alerts", ("alert_type", "in", "SPO2 LOW"))
        engage_doc.rule("VMP", "Clinicals", views=["Alerts"], settings={"destination": "Team"})
        assert _load(engage_doc).flow_rows == []

    def test_reset_create_rule_is_ignored(self, engage_doc):
        """RESET CREATE rules do not qualify SEND rules."""
        engage_doc.view("Clinicals", "Alerts", ("alert_type", "in", "SPO2 LOW"))
        engage_doc.rule("DataUpdate", "Clinicals", create=True, views=["Alerts"],
                        purpose="RESET ALERT")
        engage_doc.rule("VMP", "Clinicals", views=["Alerts"], settings={"destination": "Team"})
        assert _load(engage_doc).flow_rows == []

    def test_facility_list_split_into_groups(self, engage_doc):
        """Config groups never contain commas."""
        engage_doc.view("Clinicals", "Alerts", ("alert_type", "in", "SPO2 LOW"))
        engage_doc.view("Clinicals", "Facilities",
                        ("bed.room.unit.facility.name", "in", "North, South"))
        engage_doc.rule("DataUpdate", "Clinicals", create=True,
                        views=["Alerts", "Facilities"])
        engage_doc.rule("VMP", "Clinicals", views=["Alerts"], settings={"destination": "Team"})
        rows = _load(engage_doc).flow_rows
        groups = sorted(r.config_group for r in rows)
        assert groups == ["North_AllUnits_Clinicals", "South_AllUnits_Clinicals"]
        assert all("," not in g for g in groups)

    def test_self_creating_adapter_uses_own_delay(self, engage_doc):
        """A create-triggered adapter SEND rule supplies its own T1."""
        engage_doc.view("Orders", "Alerts", ("alert_type", "in", "STAT ORDER"))
        engage_doc.rule("OutgoingWCTP", "Orders", create=True, defer="15",
                        views=["Alerts"], settings={"destination": "Pharmacy"})
        rows = _load(engage_doc).flow_rows
        assert len(rows) == 1
        assert rows[0].t1 == "15"
        assert rows[0].r1 == "VGroup Pharmacy"
        assert rows[0].config_group == "All_Facilities_AllUnits_Orders"

    def test_loading_twice_is_identical(self, vent_document):
        """The same document always yields the same rows."""
        first = [r.model_dump() for r in _load(vent_document).flow_rows]
        second = [r.model_dump() for r in _load(vent_document).flow_rows]
        assert first == second


@pytest.mark.parametrize("state,position", [
    ("Secondary", 2), ("Tertiary", 3), ("Quaternary", 4),
])
def test_send_state_positions(vent_document, state, position):
    """Later states fill later chain positions."""
    vent_document.view("Clinicals", f"State_{state}", ("state", "equal", state))
    vent_document.rule("VMP", "Clinicals",
                       views=["Send_Alerts", f"State_{state}", "Unit_ICU"],
                       settings={"destination": "Backup"})
    for row in _load(vent_document).flow_rows:
        assert row.recipient(position) == "VGroup Backup"
