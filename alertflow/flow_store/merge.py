# -*- coding: utf-8 -*-
"""
Merge-Mode Consolidation

Groups flow rows into delivery flows for export according to
:class:`~alertflow.models.MergeMode`:

    - NONE: one delivery flow per row
    - MERGE_ALL: rows with identical delivery parameters share one flow,
      across config groups
    - MERGE_BY_CONFIG_GROUP: as MERGE_ALL but only within one config group

In every mode a row's units are first partitioned by their no-caregiver
group, so units with different no-caregiver groups never end up in the
same delivery flow.

Author: AlertFlow Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Sequence, Tuple

from pydantic import BaseModel, Field

from alertflow.models import FlowRow, MergeMode

logger = logging.getLogger(__name__)

__all__ = ["UnitRef", "MergedFlow", "merge_flows"]


class UnitRef(BaseModel):
    """A unit a delivery flow targets."""

    facility_name: str = ""
    name: str = ""
    no_caregiver_group: str = ""

    model_config = {"frozen": True}


class MergedFlow(BaseModel):
    """Rows and units that export as one delivery flow."""

    rows: List[FlowRow] = Field(default_factory=list)
    units: List[UnitRef] = Field(default_factory=list)
    no_caregiver_group: str = ""

    @property
    def template(self) -> FlowRow:
        return self.rows[0]

    @property
    def alarm_names(self) -> List[str]:
        names: List[str] = []
        for row in self.rows:
            name = row.display_name
            if name and name not in names:
                names.append(name)
        return names

    @property
    def config_groups(self) -> List[str]:
        groups: List[str] = []
        for row in self.rows:
            group = row.config_group.strip()
            if group and group not in groups:
                groups.append(group)
        return groups

    @property
    def facility(self) -> str:
        for unit in self.units:
            if unit.facility_name:
                return unit.facility_name
        return ""

    def unit_names(self) -> List[str]:
        names: List[str] = []
        for unit in self.units:
            if unit.name and unit.name not in names:
                names.append(unit.name)
        return names


def _partition(units: Sequence[UnitRef]) -> List[Tuple[str, List[UnitRef]]]:
    parts: Dict[str, List[UnitRef]] = {}
    for unit in units:
        parts.setdefault(unit.no_caregiver_group, []).append(unit)
    if not parts:
        return [("", [])]
    return list(parts.items())


def merge_flows(
    rows: Sequence[FlowRow],
    unit_lookup: Callable[[FlowRow], List[UnitRef]],
    mode: MergeMode = MergeMode.NONE,
) -> List[MergedFlow]:
    """Consolidate rows into delivery flows.

    Args:
        rows: Flow rows of one flow type, in display order.
        unit_lookup: Returns the units a row's config group targets.
        mode: Merge mode to apply.

    Returns:
        Delivery flows in first-seen order.
    """
    flows: List[MergedFlow] = []
    index: Dict[tuple, MergedFlow] = {}

    for row in rows:
        if not (row.config_group.strip() or row.display_name):
            continue
        for no_care, units in _partition(unit_lookup(row)):
            if mode == MergeMode.NONE:
                flows.append(MergedFlow(rows=[row], units=list(units), no_caregiver_group=no_care))
                continue

            key: tuple = (row.flow_type.value,) + row.delivery_key() + (no_care,)
            if mode == MergeMode.MERGE_BY_CONFIG_GROUP:
                key += (row.config_group.strip(),)

            flow = index.get(key)
            if flow is None:
                flow = MergedFlow(rows=[row], units=list(units), no_caregiver_group=no_care)
                index[key] = flow
                flows.append(flow)
                continue
            if all(existing is not row for existing in flow.rows):
                flow.rows.append(row)
            for unit in units:
                if unit not in flow.units:
                    flow.units.append(unit)

    logger.debug(
        "Merged %d rows into %d delivery flows (mode=%s)",
        len(rows), len(flows), mode.value,
    )
    return flows
