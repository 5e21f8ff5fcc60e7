# -*- coding: utf-8 -*-
"""Tests for the view index and path predicates."""

import logging

from alertflow.models import FilterClause, ViewDefinition
from alertflow.rule_engine.view_index import (
    ViewIndex,
    is_alert_type_path,
    is_facility_path,
    is_role_path,
    is_state_path,
    is_unit_path,
)


def _view(name, dataset, *filters):
    return ViewDefinition(
        name=name,
        dataset=dataset,
        filters=[FilterClause.from_raw(p, r, v) for p, r, v in filters],
    )


class TestPathPredicates:
    """Tests for filter path classification."""

    def test_alert_type_paths(self):
        """Bare and dotted alert_type paths match."""
        assert is_alert_type_path("alert_type")
        assert is_alert_type_path("clinical.alert_type")
        assert not is_alert_type_path("alert_type_code")

    def test_facility_and_unit_paths(self):
        """Facility paths are not unit paths."""
        assert is_facility_path("bed.room.unit.facility.name")
        assert is_unit_path("bed.room.unit.name")
        assert is_unit_path("unit.name")
        assert not is_unit_path("bed.room.unit.facility.name")

    def test_role_and_state_paths(self):
        """Role filters and the state attribute are recognised."""
        assert is_role_path("bed.locs.assignments.role.name")
        assert is_state_path("state")
        assert not is_state_path("bed.state")


class TestViewIndex:
    """Tests for ViewIndex lookup."""

    def test_lookup_prefers_own_dataset(self):
        """A view in the rule's dataset wins over a same-named one elsewhere."""
        index = ViewIndex([
            _view("Alerts", "NurseCalls", ("alert_type", "in", "NC")),
            _view("Alerts", "Clinicals", ("alert_type", "in", "PM")),
        ])
        assert index.resolve("Alerts", "Clinicals")[0].values == ["PM"]
        assert index.resolve("Alerts", "NurseCalls")[0].values == ["NC"]

    def test_lookup_falls_back_to_any_dataset(self):
        """Shared views resolve from other datasets."""
        index = ViewIndex([_view("Shared", "Clinicals", ("unit.name", "in", "ICU"))])
        assert index.lookup("Shared", "Orders") is not None

    def test_miss_returns_none_and_warns_once(self, caplog):
        """Unknown names resolve to nothing and warn once."""
        index = ViewIndex()
        with caplog.at_level(logging.WARNING, logger="alertflow.rule_engine.view_index"):
            assert index.lookup("Missing") is None
            assert index.resolve("Missing") == []
        warnings = [r for r in caplog.records if "Missing" in r.getMessage()]
        assert len(warnings) == 1

    def test_resolve_all_reports_unresolved(self):
        """resolve_all concatenates clauses and lists misses."""
        index = ViewIndex([
            _view("A", "Clinicals", ("alert_type", "in", "X")),
            _view("B", "Clinicals", ("unit.name", "in", "ICU")),
        ])
        clauses, unresolved = index.resolve_all(["A", "Nope", "B"], "Clinicals")
        assert [c.path for c in clauses] == ["alert_type", "unit.name"]
        assert unresolved == ["Nope"]

    def test_len_and_contains(self):
        """Views are counted per dataset and found by name."""
        index = ViewIndex([_view("A", "X"), _view("A", "Y")])
        assert len(index) == 2
        assert "A" in index
        assert index.names() == ["A"]
