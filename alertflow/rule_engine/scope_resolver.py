# -*- coding: utf-8 -*-
"""
Alert-Type & Scope Resolver

Computes the effective scope of a rule (alert types, facilities, units,
source state and recipient roles) by resolving the views named in its
condition, and decides whether a CREATE rule covers a SEND or ESCALATE
rule's alert type and location.

Coverage policy:
    - A SEND alert type is emitted only when the SEND rule does not
      exclude it itself AND at least one CREATE rule on the same dataset
      covers it.
    - A CREATE rule without any alert-type filter covers every alert type.
    - A CREATE rule whose alert-type filter uses a relation other than
      in / equal / not_in / like covers nothing.
    - Every alert-type filter of a CREATE rule must cover the alert.
    - Facilities and units must intersect; an empty side means "all".

Example:
    >>> resolver = ScopeResolver(view_index)
    >>> scope = resolver.resolve(rule)
    >>> kept = resolver.filter_alert_types(send, creates)

Author: AlertFlow Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

from alertflow.models import (
    FACILITY_PLACEHOLDER,
    FilterClause,
    FilterRelation,
    ResolvedRule,
    RoleReference,
    Rule,
    RuleRole,
    RuleScope,
    normalize_state,
    state_position,
)
from alertflow.rule_engine.view_index import (
    ViewIndex,
    is_alert_type_path,
    is_facility_path,
    is_role_path,
    is_state_path,
    is_unit_path,
)

logger = logging.getLogger(__name__)

__all__ = [
    "COVERING_ALERT_RELATIONS",
    "ScopeResolver",
    "covers_alert_type",
    "locations_intersect",
]

#: Relations a CREATE rule may use on alert_type and still cover alerts.
COVERING_ALERT_RELATIONS = frozenset({
    FilterRelation.IN.value,
    FilterRelation.EQUAL.value,
    FilterRelation.NOT_IN.value,
    FilterRelation.LIKE.value,
})


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _add_unique(target: List[str], values: Iterable[str]) -> None:
    seen = {v.lower() for v in target}
    for value in values:
        if value.lower() not in seen:
            target.append(value)
            seen.add(value.lower())


def _real_facilities(facilities: Sequence[str]) -> List[str]:
    return [f for f in facilities if f.strip() and f.strip() != FACILITY_PLACEHOLDER]


def _lower_set(values: Iterable[str]) -> set:
    return {v.strip().lower() for v in values if v.strip()}


def _clause_covers(clause: FilterClause, alert_type: str) -> bool:
    if clause.relation == FilterRelation.NOT_IN.value:
        return not clause.matches(alert_type)
    return clause.matches(alert_type)


def covers_alert_type(create_scope: RuleScope, alert_type: str) -> bool:
    """Whether a CREATE rule's alert-type filters admit ``alert_type``."""
    if not create_scope.has_alert_filter:
        return True
    for clause in create_scope.alert_clauses:
        if clause.relation not in COVERING_ALERT_RELATIONS:
            return False
    return all(_clause_covers(c, alert_type) for c in create_scope.alert_clauses)


def locations_intersect(first: RuleScope, second: RuleScope) -> bool:
    """Whether two scopes share at least one facility and unit.

    An empty facility or unit list on either side means "all". Unit
    exclusions on either side remove candidates.
    """
    fac_a = _lower_set(_real_facilities(first.facilities))
    fac_b = _lower_set(_real_facilities(second.facilities))
    if fac_a and fac_b and not fac_a & fac_b:
        return False

    units_a = _lower_set(first.units)
    units_b = _lower_set(second.units)
    if units_a and units_b:
        candidates = units_a & units_b
        if not candidates:
            return False
    else:
        candidates = units_a or units_b
    if candidates:
        excluded = _lower_set(first.excluded_units) | _lower_set(second.excluded_units)
        if candidates <= excluded:
            return False
    return True


# ---------------------------------------------------------------------------
# ScopeResolver
# ---------------------------------------------------------------------------


class ScopeResolver:
    """Resolves rule scopes against a :class:`ViewIndex`."""

    def __init__(self, view_index: ViewIndex) -> None:
        self._views = view_index

    # ------------------------------------------------------------------
    # Scope resolution
    # ------------------------------------------------------------------

    def resolve(self, rule: Rule) -> RuleScope:
        """Resolve a rule's condition views into a :class:`RuleScope`.

        Unknown views contribute no clauses and are listed in
        ``unresolved_views``; the rule is still resolved.
        """
        clauses, unresolved = self._views.resolve_all(
            rule.condition_views, rule.dataset,
        )
        scope = RuleScope(unresolved_views=unresolved)

        for clause in clauses:
            path = clause.path
            if is_alert_type_path(path):
                self._apply_alert_clause(scope, clause)
            elif is_facility_path(path):
                if clause.is_positive:
                    _add_unique(scope.facilities, clause.values)
            elif is_unit_path(path):
                if clause.is_negative:
                    _add_unique(scope.excluded_units, clause.values)
                else:
                    _add_unique(scope.units, clause.values)
            elif is_role_path(path):
                self._apply_role_clause(scope, clause)
            elif is_state_path(path):
                self._apply_state_clause(scope, clause, rule)

        if unresolved:
            logger.debug(
                "Rule %s has unresolved views %s; treated as unconstrained",
                rule.label, unresolved,
            )
        return scope

    @staticmethod
    def _apply_alert_clause(scope: RuleScope, clause: FilterClause) -> None:
        scope.alert_clauses.append(clause)
        if clause.relation in (FilterRelation.IN.value, FilterRelation.EQUAL.value):
            _add_unique(scope.alert_types, clause.values)
        elif clause.relation in (FilterRelation.NOT_IN.value, FilterRelation.NOT_EQUAL.value):
            _add_unique(scope.excluded_alert_types, clause.values)

    @staticmethod
    def _apply_role_clause(scope: RuleScope, clause: FilterClause) -> None:
        if clause.is_negative:
            scope.negative_role_filter = True
            return
        known = {r.name.lower() for r in scope.roles}
        for value in clause.values:
            if value.lower() not in known:
                scope.roles.append(RoleReference(name=value, path=clause.path))
                known.add(value.lower())

    @staticmethod
    def _apply_state_clause(scope: RuleScope, clause: FilterClause, rule: Rule) -> None:
        if not clause.is_positive or not clause.values or scope.source_state:
            return
        state = normalize_state(clause.values[0])
        if state_position(state) is None:
            logger.warning(
                "Rule %s filters on unknown state %r", rule.label, clause.values[0],
            )
            return
        scope.source_state = state

    # ------------------------------------------------------------------
    # Coverage
    # ------------------------------------------------------------------

    @staticmethod
    def covering_rules(
        target: ResolvedRule,
        alert_type: str,
        creates: Sequence[ResolvedRule],
    ) -> List[ResolvedRule]:
        """CREATE rules on the target's dataset covering ``alert_type`` at its location."""
        covering: List[ResolvedRule] = []
        for create in creates:
            if create.role != RuleRole.CREATE:
                continue
            if create.rule.dataset != target.rule.dataset:
                continue
            if not covers_alert_type(create.scope, alert_type):
                continue
            if not locations_intersect(target.scope, create.scope):
                continue
            covering.append(create)
        return covering

    def filter_alert_types(
        self,
        send: ResolvedRule,
        creates: Sequence[ResolvedRule],
    ) -> List[str]:
        """Alert types of a SEND rule that survive exclusion and CREATE coverage.

        An adapter SEND rule that is itself create-triggered covers its own
        alert types.
        """
        if self.is_self_creating(send):
            return send.scope.effective_alert_types()
        kept: List[str] = []
        for alert_type in send.scope.effective_alert_types():
            if self.covering_rules(send, alert_type, creates):
                kept.append(alert_type)
            else:
                logger.debug(
                    "Dropping alert type %r of %s: no covering CREATE rule",
                    alert_type, send.rule.label,
                )
        return kept

    @staticmethod
    def is_self_creating(send: ResolvedRule) -> bool:
        return send.rule.trigger_create and send.rule.is_adapter

    @staticmethod
    def create_facilities(covering: Sequence[ResolvedRule]) -> List[str]:
        """Facilities named by covering CREATE rules, in first-seen order."""
        facilities: List[str] = []
        for create in covering:
            _add_unique(facilities, create.scope.facilities)
        return facilities

    @staticmethod
    def create_units(covering: Sequence[ResolvedRule]) -> List[str]:
        units: List[str] = []
        for create in covering:
            _add_unique(units, create.scope.units)
        return units

    @staticmethod
    def initial_delay(covering: Sequence[ResolvedRule]) -> Optional[str]:
        """T1 from the first covering CREATE rule; None means Immediate."""
        if not covering:
            return None
        delay = (covering[0].rule.defer_delivery_by or "").strip()
        if delay in ("", "0"):
            return None
        return delay
