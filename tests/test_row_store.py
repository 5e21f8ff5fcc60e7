# -*- coding: utf-8 -*-
"""Tests for the row store."""

from alertflow.flow_store.row_store import RowStore
from alertflow.models import FlowRow, FlowType, UnitRow


def _rows():
    return [
        FlowRow(flow_type=FlowType.NURSE_CALLS, config_group="NC", alarm_name="Bath"),
        FlowRow(flow_type=FlowType.NURSE_CALLS, config_group="NC", alarm_name="Code",
                emdan="Y"),
        FlowRow(flow_type=FlowType.CLINICALS, config_group="PM", alarm_name="APNEA"),
        FlowRow(flow_type=FlowType.ORDERS, config_group="OR", alarm_name="STAT"),
    ]


class TestRowStore:
    """Tests for RowStore ownership and queries."""

    def test_replace_partitions_by_type(self):
        """Rows are stored per flow type."""
        store = RowStore()
        store.replace(_rows(), [UnitRow(facility="Main", unit_names="ICU")])
        assert len(store.nurse_calls) == 2
        assert len(store.clinicals) == 1
        assert len(store.orders) == 1
        assert len(store.unit_rows) == 1
        assert [r.alarm_name for r in store.flow_rows()] == ["Bath", "Code", "APNEA", "STAT"]

    def test_replace_is_wholesale(self):
        """A second load replaces, never appends."""
        store = RowStore()
        store.replace(_rows(), [])
        store.replace(_rows()[:1], [])
        assert len(store.flow_rows()) == 1

    def test_replace_captures_originals(self):
        """Loaded rows start without changes but with originals."""
        store = RowStore()
        store.replace(_rows(), [])
        row = store.nurse_calls[0]
        assert row.original_values["alarm_name"] == "Bath"
        row.update_field("alarm_name", "Bath Call")
        assert store.changed_rows() == [row]
        store.clear_changes()
        assert store.changed_rows() == []

    def test_emdan_moved_to_clinicals(self):
        """EMDAN Y rows move from nurse calls to clinicals."""
        store = RowStore()
        store.replace(_rows(), [])
        assert store.move_emdan_to_clinicals() == 1
        assert [r.alarm_name for r in store.clinicals] == ["APNEA", "Code"]
        assert store.clinicals[-1].flow_type == FlowType.CLINICALS
        assert store.emdan_moved == 1

    def test_units_for(self):
        """Units listing a row's config group are returned once each."""
        store = RowStore()
        store.replace(_rows(), [
            UnitRow(facility="Main", unit_names="ICU, ER", nurse_group="NC, NC2",
                    no_caregiver_group="Charge"),
            UnitRow(facility="Main", unit_names="OR", nurse_group="Other"),
        ])
        refs = store.units_for(store.nurse_calls[0])
        assert [(r.facility_name, r.name, r.no_caregiver_group) for r in refs] == [
            ("Main", "ICU", "Charge"), ("Main", "ER", "Charge"),
        ]

    def test_load_summary(self):
        """The summary counts rows and config groups."""
        store = RowStore()
        store.replace(_rows(), [UnitRow(facility="Main", unit_names="ICU")])
        store.move_emdan_to_clinicals()
        summary = store.load_summary()
        assert summary.startswith("Load Complete")
        assert "1 Unit Breakdown rows" in summary
        assert "1 Nurse Call rows" in summary
        assert "2 Patient Monitoring rows" in summary
        assert "2 Configuration Groups (Clinical)" in summary
        assert "Moved 1 EMDAN rows to Clinicals" in summary

    def test_clear_all(self):
        """clear_all empties every collection."""
        store = RowStore()
        store.replace(_rows(), [UnitRow()])
        store.clear_all()
        assert store.flow_rows() == []
        assert store.unit_rows == []
