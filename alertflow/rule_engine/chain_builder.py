# -*- coding: utf-8 -*-
"""
Escalation Chain Builder

Merges CREATE, SEND and ESCALATE rules that share a dataset, alert type
and location into ordered escalation chains of up to five
(delay, recipient) steps.

Algorithm per SEND rule:
    1. Keep the alert types that survive the rule's own exclusions and
       CREATE coverage (see :mod:`alertflow.rule_engine.scope_resolver`).
    2. Group by (dataset, alert type, facility, sorted SEND units). A
       facility list is split into one group per facility; a SEND rule
       without facilities borrows those of the covering CREATE rules.

Algorithm per group:
    1. Place each SEND rule at the position of its state filter
       (Primary/Group=1 .. Quinary=5; no state filter means 1).
    2. T1 is the covering CREATE rule's delay ("Immediate" when absent).
       A create-triggered adapter SEND rule supplies its own delay.
    3. ESCALATE rules that match the group contribute their delay at
       the position after their source state, or at their target
       state's position when they have no source state filter. Delays
       are matched per emitted unit, and units with different delays get
       separate chains. Rules with a negative role filter never
       contribute. First writer wins.
    4. Several SEND rules at one position yield separate chains.

Author: AlertFlow Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import itertools
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from alertflow.models import (
    FACILITY_PLACEHOLDER,
    MAX_CHAIN_LENGTH,
    ResolvedRule,
    RuleRole,
    RuleScope,
    state_position,
)
from alertflow.rule_engine.scope_resolver import ScopeResolver, locations_intersect

logger = logging.getLogger(__name__)

__all__ = [
    "IMMEDIATE",
    "ChainStep",
    "EscalationChain",
    "ChainBuilder",
    "format_recipient",
    "map_component",
]

IMMEDIATE = "Immediate"


# ---------------------------------------------------------------------------
# Chain models
# ---------------------------------------------------------------------------


class ChainStep(BaseModel):
    """One (delay, recipient) position of an escalation chain."""

    position: int = Field(..., ge=1, le=MAX_CHAIN_LENGTH)
    delay: str = Field(default="", description="Seconds, 'Immediate' or empty")
    recipient: str = Field(default="", description="Formatted recipient text")


class EscalationChain(BaseModel):
    """A resolved chain for one (dataset, alert type, facility, units) group."""

    dataset: str
    alert_type: str
    facility: str = ""
    send_units: List[str] = Field(default_factory=list)
    units: List[str] = Field(default_factory=list)
    steps: List[ChainStep] = Field(default_factory=list)
    lead_send: ResolvedRule
    device_a: str = ""


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def map_component(component: str) -> str:
    """Device name for an interface component; DataUpdate maps to Edge."""
    name = (component or "").strip()
    if name.lower() == "dataupdate":
        return "Edge"
    return name


def format_recipient(send: ResolvedRule) -> str:
    """Recipient text of a SEND rule.

    Roles from the condition win and are always written in the
    ``VAssign:[Room] <role>`` form. Otherwise the settings destination is
    used: a ``#{...}`` template stays literal, and a comma list becomes one
    ``VGroup <name>`` line per entry.
    """
    roles = send.scope.roles
    if roles:
        return "\n".join(f"VAssign:[Room] {role.name}" for role in roles)

    destination = (send.rule.settings.destination or "").strip()
    if not destination:
        return ""
    if "#{" in destination:
        return destination
    lines = []
    for part in destination.split(","):
        part = part.strip()
        if not part:
            continue
        if part.lower().startswith(("vgroup", "vassign")):
            lines.append(part)
        else:
            lines.append(f"VGroup {part}")
    return "\n".join(lines)


def _normalize_delay(delay: Optional[str]) -> str:
    text = (delay or "").strip()
    if text in ("", "0"):
        return IMMEDIATE
    return text


# ---------------------------------------------------------------------------
# Grouping
# ---------------------------------------------------------------------------


class _Group:
    """Mutable accumulator for one chain group."""

    def __init__(self, dataset: str, alert_type: str, facility: str, units: List[str]):
        self.dataset = dataset
        self.alert_type = alert_type
        self.facility = facility
        self.units = units
        self.sends: List[ResolvedRule] = []
        self.creates: List[ResolvedRule] = []

    def add(self, send: ResolvedRule, creates: Sequence[ResolvedRule]) -> None:
        if all(s.rule.index != send.rule.index for s in self.sends):
            self.sends.append(send)
        known = {c.rule.index for c in self.creates}
        for create in creates:
            if create.rule.index not in known:
                self.creates.append(create)
                known.add(create.rule.index)

    def scope(self, unit: Optional[str] = None) -> RuleScope:
        """Location scope of the group, narrowed to one emitted unit if given."""
        facilities = [self.facility] if self.facility else []
        units = [unit] if unit else list(self.units)
        return RuleScope(facilities=facilities, units=units)


GroupKey = Tuple[str, str, str, Tuple[str, ...]]


# ---------------------------------------------------------------------------
# ChainBuilder
# ---------------------------------------------------------------------------


class ChainBuilder:
    """Builds escalation chains from classified, scope-resolved rules."""

    def __init__(self, resolver: ScopeResolver) -> None:
        self._resolver = resolver

    def build(self, rules: Sequence[ResolvedRule]) -> List[EscalationChain]:
        """Build every chain for the given rules, in document order."""
        creates = [r for r in rules if r.role == RuleRole.CREATE]
        sends = [r for r in rules if r.role == RuleRole.SEND]
        escalates = [r for r in rules if r.role == RuleRole.ESCALATE]

        groups = self._group_sends(sends, creates)
        chains: List[EscalationChain] = []
        for group in groups.values():
            chains.extend(self._build_group(group, escalates))

        logger.info(
            "Built %d escalation chains from %d groups "
            "(create=%d, send=%d, escalate=%d)",
            len(chains), len(groups), len(creates), len(sends), len(escalates),
        )
        return chains

    # ------------------------------------------------------------------
    # Step 1: grouping
    # ------------------------------------------------------------------

    def _group_sends(
        self,
        sends: Sequence[ResolvedRule],
        creates: Sequence[ResolvedRule],
    ) -> Dict[GroupKey, _Group]:
        groups: Dict[GroupKey, _Group] = {}
        resolver = self._resolver

        for send in sends:
            alert_types = resolver.filter_alert_types(send, creates)
            if not alert_types:
                logger.debug("SEND rule %s yields no alert types", send.rule.label)
                continue

            units = sorted(send.scope.units, key=str.lower)
            units_key = tuple(u.lower() for u in units)
            self_creating = resolver.is_self_creating(send)

            for alert_type in alert_types:
                covering = (
                    [] if self_creating
                    else resolver.covering_rules(send, alert_type, creates)
                )
                facilities = list(send.scope.facilities)
                if not facilities:
                    facilities = resolver.create_facilities(covering)
                if not facilities:
                    facilities = [""]

                for facility in facilities:
                    key = (
                        send.rule.dataset,
                        alert_type.lower(),
                        facility.lower(),
                        units_key,
                    )
                    group = groups.get(key)
                    if group is None:
                        group = _Group(send.rule.dataset, alert_type, facility, units)
                        groups[key] = group
                    group.add(send, self._creates_for_facility(covering, facility))
        return groups

    @staticmethod
    def _creates_for_facility(
        covering: Sequence[ResolvedRule], facility: str,
    ) -> List[ResolvedRule]:
        if not facility or facility == FACILITY_PLACEHOLDER:
            return list(covering)
        probe = facility.lower()
        return [
            c for c in covering
            if not c.scope.facilities
            or any(f.lower() == probe for f in c.scope.facilities)
        ]

    # ------------------------------------------------------------------
    # Step 2: chain assembly
    # ------------------------------------------------------------------

    def _build_group(
        self, group: _Group, escalates: Sequence[ResolvedRule],
    ) -> List[EscalationChain]:
        by_position: Dict[int, List[ResolvedRule]] = {}
        for send in group.sends:
            position = state_position(send.scope.source_state) or 1
            by_position.setdefault(position, []).append(send)

        initial = self._initial_delay(group, by_position)
        partitions = self._partition_units(group, escalates)

        positions = sorted(by_position)
        chains: List[EscalationChain] = []
        for delays, units in partitions:
            for combo in itertools.product(*(by_position[p] for p in positions)):
                assigned = dict(zip(positions, combo))
                steps = []
                for position in range(1, MAX_CHAIN_LENGTH + 1):
                    send = assigned.get(position)
                    delay = initial if position == 1 else delays.get(position, "")
                    steps.append(ChainStep(
                        position=position,
                        delay=delay,
                        recipient=format_recipient(send) if send is not None else "",
                    ))
                lead = assigned[positions[0]]
                chains.append(EscalationChain(
                    dataset=group.dataset,
                    alert_type=group.alert_type,
                    facility=group.facility,
                    send_units=list(group.units),
                    units=units,
                    steps=steps,
                    lead_send=lead,
                    device_a=map_component(lead.rule.component),
                ))

        if len(chains) > 1:
            logger.debug(
                "Group %s/%s/%s split into %d chains by competing SEND rules",
                group.dataset, group.alert_type, group.facility or "-", len(chains),
            )
        return chains

    def _initial_delay(
        self, group: _Group, by_position: Dict[int, List[ResolvedRule]],
    ) -> str:
        if group.creates:
            return _normalize_delay(self._resolver.initial_delay(group.creates))
        for send in by_position.get(min(by_position), []):
            if self._resolver.is_self_creating(send):
                return _normalize_delay(send.rule.defer_delivery_by)
        return IMMEDIATE

    def _partition_units(
        self, group: _Group, escalates: Sequence[ResolvedRule],
    ) -> List[Tuple[Dict[int, str], List[str]]]:
        """Emitted units grouped by the escalation delays that apply to them.

        Delays are evaluated per unit, so a unit-scoped ESCALATE rule only
        times the rows of the units it names.
        """
        units = self._emitted_units(group)
        if not units:
            return [(self._escalation_delays(group, group.scope(), escalates), [])]

        partitions: Dict[Tuple[Tuple[int, str], ...], Tuple[Dict[int, str], List[str]]] = {}
        for unit in units:
            delays = self._escalation_delays(group, group.scope(unit), escalates)
            key = tuple(sorted(delays.items()))
            partitions.setdefault(key, (delays, []))[1].append(unit)
        return list(partitions.values())

    def _escalation_delays(
        self,
        group: _Group,
        group_scope: RuleScope,
        escalates: Sequence[ResolvedRule],
    ) -> Dict[int, str]:
        delays: Dict[int, str] = {}
        for esc in escalates:
            if esc.rule.dataset != group.dataset:
                continue
            if esc.scope.negative_role_filter:
                logger.debug(
                    "ESCALATE rule %s has a negative role filter; no timing",
                    esc.rule.label,
                )
                continue
            if not self._applies_to_alert(esc, group.alert_type):
                continue
            if not locations_intersect(esc.scope, group_scope):
                continue
            delay = (esc.rule.defer_delivery_by or "").strip()
            if not delay:
                continue
            position = self._escalation_position(esc)
            if position is None:
                continue
            if position not in delays:
                delays[position] = delay
        return delays

    @staticmethod
    def _applies_to_alert(esc: ResolvedRule, alert_type: str) -> bool:
        if esc.scope.excludes_alert_type(alert_type):
            return False
        if esc.scope.alert_types:
            probe = alert_type.lower()
            return any(a.lower() == probe for a in esc.scope.alert_types)
        return True

    @staticmethod
    def _escalation_position(esc: ResolvedRule) -> Optional[int]:
        """Chain position whose timing an ESCALATE rule supplies."""
        source = state_position(esc.scope.source_state)
        if source is not None:
            position = source + 1
        else:
            position = state_position(esc.rule.settings.target_state)
        if position is None or not 2 <= position <= MAX_CHAIN_LENGTH:
            logger.debug(
                "ESCALATE rule %s maps to no chain position", esc.rule.label,
            )
            return None
        return position

    def _emitted_units(self, group: _Group) -> List[str]:
        """CREATE units intersected with SEND units, falling back to either side."""
        create_units = self._resolver.create_units(group.creates)
        if group.units and create_units:
            send_lower = {u.lower() for u in group.units}
            shared = [u for u in create_units if u.lower() in send_lower]
            if shared:
                return shared
            return list(group.units)
        if group.units:
            return list(group.units)
        return create_units
