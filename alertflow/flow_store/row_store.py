# -*- coding: utf-8 -*-
"""
Row Store

Owns the in-memory flow-row and unit-row collections of one loaded
document. Loads replace the collections wholesale; nothing is appended
across unrelated loads. The store is not thread-safe and is meant to be
driven from a single controller thread.

Also resolves which units (and no-caregiver groups) a flow row's config
group targets, for export.

Example:
    >>> store = RowStore()
    >>> store.replace(flow_rows, unit_rows)
    >>> print(store.load_summary())

Author: AlertFlow Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from alertflow.flow_store.merge import UnitRef
from alertflow.models import FlowRow, FlowType, UnitRow

logger = logging.getLogger(__name__)

__all__ = ["RowStore"]


class RowStore:
    """Holds flow rows per flow type plus unit rows."""

    def __init__(self) -> None:
        self._flows: Dict[FlowType, List[FlowRow]] = {t: [] for t in FlowType}
        self._units: List[UnitRow] = []
        self._emdan_moved = 0

    # ------------------------------------------------------------------
    # Ownership
    # ------------------------------------------------------------------

    def replace(
        self,
        flow_rows: Iterable[FlowRow],
        unit_rows: Iterable[UnitRow],
    ) -> None:
        """Replace every collection and snapshot originals for change tracking."""
        flows: Dict[FlowType, List[FlowRow]] = {t: [] for t in FlowType}
        for row in flow_rows:
            flows[row.flow_type].append(row)
        for rows in flows.values():
            for row in rows:
                row.capture_original()
        self._flows = flows
        self._units = list(unit_rows)
        self._emdan_moved = 0
        logger.info(
            "Row store replaced: units=%d, nurse=%d, clinical=%d, orders=%d",
            len(self._units),
            len(flows[FlowType.NURSE_CALLS]),
            len(flows[FlowType.CLINICALS]),
            len(flows[FlowType.ORDERS]),
        )

    def clear_all(self) -> None:
        self._flows = {t: [] for t in FlowType}
        self._units = []
        self._emdan_moved = 0

    def flow_rows(self, flow_type: Optional[FlowType] = None) -> List[FlowRow]:
        """Rows of one flow type, or every row in NurseCalls/Clinicals/Orders order."""
        if flow_type is not None:
            return list(self._flows[flow_type])
        return [row for t in FlowType for row in self._flows[t]]

    @property
    def nurse_calls(self) -> List[FlowRow]:
        return self._flows[FlowType.NURSE_CALLS]

    @property
    def clinicals(self) -> List[FlowRow]:
        return self._flows[FlowType.CLINICALS]

    @property
    def orders(self) -> List[FlowRow]:
        return self._flows[FlowType.ORDERS]

    @property
    def unit_rows(self) -> List[UnitRow]:
        return self._units

    @property
    def emdan_moved(self) -> int:
        return self._emdan_moved

    # ------------------------------------------------------------------
    # EMDAN reclassification
    # ------------------------------------------------------------------

    def move_emdan_to_clinicals(self) -> int:
        """Move nurse-call rows marked EMDAN Y/Yes to the clinical collection.

        Returns:
            Number of rows moved.
        """
        kept: List[FlowRow] = []
        moved = 0
        for row in self._flows[FlowType.NURSE_CALLS]:
            if row.emdan.strip().lower() in ("y", "yes"):
                row.flow_type = FlowType.CLINICALS
                self._flows[FlowType.CLINICALS].append(row)
                moved += 1
            else:
                kept.append(row)
        self._flows[FlowType.NURSE_CALLS] = kept
        self._emdan_moved += moved
        if moved:
            logger.info("Moved %d EMDAN nurse-call rows to clinicals", moved)
        return moved

    # ------------------------------------------------------------------
    # Change tracking
    # ------------------------------------------------------------------

    def changed_rows(self) -> List[FlowRow]:
        return [row for row in self.flow_rows() if row.has_changes]

    def clear_changes(self) -> None:
        for row in self.flow_rows():
            row.clear_changes()

    # ------------------------------------------------------------------
    # Unit resolution
    # ------------------------------------------------------------------

    def units_for(self, row: FlowRow) -> List[UnitRef]:
        """Units whose group column for the row's flow type lists its config group."""
        group = row.config_group.strip()
        if not group:
            return []
        refs: List[UnitRef] = []
        for unit in self._units:
            if group not in unit.groups_for(row.flow_type):
                continue
            for name in unit.unit_list():
                ref = UnitRef(
                    facility_name=unit.facility.strip(),
                    name=name,
                    no_caregiver_group=unit.no_caregiver_group.strip(),
                )
                if ref not in refs:
                    refs.append(ref)
        return refs

    def config_groups(self, flow_type: FlowType) -> List[str]:
        """Distinct config groups used by rows of a flow type."""
        groups: List[str] = []
        for row in self._flows[flow_type]:
            group = row.config_group.strip()
            if group and group not in groups:
                groups.append(group)
        return groups

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    def load_summary(self) -> str:
        lines = [
            "Load Complete",
            "",
            "Loaded:",
            f"  - {len(self._units)} Unit Breakdown rows",
            f"  - {len(self.nurse_calls)} Nurse Call rows",
            f"  - {len(self.clinicals)} Patient Monitoring rows",
            f"  - {len(self.orders)} Orders rows",
            "",
            "Linked:",
            f"  - {len(self.config_groups(FlowType.NURSE_CALLS))} Configuration Groups (Nurse)",
            f"  - {len(self.config_groups(FlowType.CLINICALS))} Configuration Groups (Clinical)",
            f"  - {len(self.config_groups(FlowType.ORDERS))} Configuration Groups (Orders)",
        ]
        if self._emdan_moved:
            lines.append("")
            lines.append(f"Moved {self._emdan_moved} EMDAN rows to Clinicals")
        return "\n".join(lines)
