# -*- coding: utf-8 -*-
"""
Flow Row Materializer

Turns resolved escalation chains into :class:`~alertflow.models.FlowRow`
records (one per facility and unit) and rebuilds the matching
:class:`~alertflow.models.UnitRow` records.

Field mapping from the lead SEND rule's settings:
    - priority "0"/"3" -> Urgent, "1" -> High, "2" -> Normal
    - ttl -> ttl_value, copied as-is
    - enunciate ENUNCIATE_ALWAYS -> ENUNCIATE
    - overrideDND -> break_through_dnd TRUE/FALSE
    - displayValues -> response_options, joined with ","
    - parameters declineCount "All Recipients" -> escalate_after "All declines"
    - parameters alertSound -> ringtone

Author: AlertFlow Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
from typing import Dict, List, Sequence, Tuple

from alertflow.models import (
    FACILITY_PLACEHOLDER,
    FlowRow,
    FlowType,
    RuleSettings,
    UnitRow,
)
from alertflow.rule_engine.chain_builder import EscalationChain

logger = logging.getLogger(__name__)

__all__ = [
    "PRIORITY_CODES",
    "map_priority",
    "map_enunciate",
    "config_group_name",
    "FlowRowMaterializer",
]

PRIORITY_CODES: Dict[str, str] = {
    "0": "Urgent",
    "1": "High",
    "2": "Normal",
    "3": "Urgent",
}

ALL_FACILITIES = "All_Facilities"
ALL_UNITS = "AllUnits"


def map_priority(value: str) -> str:
    """Priority code to label; unknown values are kept literally."""
    text = (value or "").strip()
    return PRIORITY_CODES.get(text, text)


def map_enunciate(value: str) -> str:
    text = (value or "").strip()
    if text.upper() == "ENUNCIATE_ALWAYS":
        return "ENUNCIATE"
    return text


def _is_real_facility(facility: str) -> bool:
    text = (facility or "").strip()
    return bool(text) and text != FACILITY_PLACEHOLDER


def config_group_name(facility: str, unit: str, dataset: str) -> str:
    """``{facility}_{unit}_{dataset}`` with All_Facilities / AllUnits fallbacks."""
    fac = facility.strip() if _is_real_facility(facility) else ALL_FACILITIES
    un = (unit or "").strip() or ALL_UNITS
    return f"{fac}_{un}_{dataset}"


class FlowRowMaterializer:
    """Materializes chains into flow rows and unit rows."""

    def materialize(
        self, chains: Sequence[EscalationChain],
    ) -> Tuple[List[FlowRow], List[UnitRow]]:
        """Emit flow rows for every chain and the unit rows they imply.

        Returns:
            Tuple of (flow rows in chain order, unit rows).
        """
        rows: List[FlowRow] = []
        unit_groups: Dict[Tuple[str, str], Dict[FlowType, List[str]]] = {}

        for chain in chains:
            template = self._template(chain)
            facilities = [chain.facility] if chain.facility else [""]
            units = chain.units or [""]
            for facility in facilities:
                for unit in units:
                    row = template.model_copy(deep=True)
                    row.config_group = config_group_name(facility, unit, chain.dataset)
                    rows.append(row)
                    if _is_real_facility(facility):
                        groups = unit_groups.setdefault(
                            (facility.strip(), unit.strip()), {},
                        )
                        names = groups.setdefault(row.flow_type, [])
                        if row.config_group not in names:
                            names.append(row.config_group)

        unit_rows = [
            UnitRow(
                facility=facility,
                unit_names=unit,
                nurse_group=", ".join(groups.get(FlowType.NURSE_CALLS, [])),
                clin_group=", ".join(groups.get(FlowType.CLINICALS, [])),
                orders_group=", ".join(groups.get(FlowType.ORDERS, [])),
            )
            for (facility, unit), groups in unit_groups.items()
        ]
        logger.debug(
            "Materialized %d flow rows and %d unit rows from %d chains",
            len(rows), len(unit_rows), len(chains),
        )
        return rows, unit_rows

    def _template(self, chain: EscalationChain) -> FlowRow:
        row = FlowRow(
            flow_type=FlowType.from_dataset(chain.dataset),
            alarm_name=chain.alert_type,
            sending_name=chain.alert_type,
            device_a=chain.device_a,
        )
        for step in chain.steps:
            row.set_timing(step.position, step.delay)
            row.set_recipient(step.position, step.recipient)
        self.apply_settings(row, chain.lead_send.rule.settings)
        return row

    @staticmethod
    def apply_settings(row: FlowRow, settings: RuleSettings) -> None:
        """Copy recognised settings onto a row; absent keys leave fields empty."""
        if settings.priority:
            row.priority_raw = map_priority(settings.priority)
        if settings.ttl:
            row.ttl_value = settings.ttl.strip()
        if settings.enunciate:
            row.enunciate = map_enunciate(settings.enunciate)
        if settings.override_dnd is not None:
            row.break_through_dnd = "TRUE" if settings.override_dnd else "FALSE"
        if settings.display_values:
            row.response_options = ",".join(settings.display_values)

        decline = settings.parameter("declineCount")
        if decline and "all recipients" in decline.lower():
            row.escalate_after = "All declines"
        sound = settings.parameter("alertSound")
        if sound:
            row.ringtone = sound
