# -*- coding: utf-8 -*-
"""
AlertFlow Service Setup

Provides the ``AlertFlowService`` facade, which wires the rule-engine XML
loader, the JSON delivery-flow codec and the spreadsheet codec around one
:class:`~alertflow.flow_store.row_store.RowStore`.

Every load replaces the store wholesale and snapshots the loaded rows for
change tracking. Every export reads from the current store.

Usage:
    >>> from alertflow.setup import AlertFlowService
    >>> service = AlertFlowService()
    >>> result = service.load_xml("engage.xml")
    >>> print(result.summary)
    >>> service.export_json("flows.json", merge_mode=MergeMode.MERGE_ALL)

Author: AlertFlow Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import hashlib
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, Field

from alertflow.config import AlertFlowConfig, get_config
from alertflow.exceptions import DocumentError
from alertflow.flow_store.excel_codec import ExcelFlowReader, ExcelFlowWriter
from alertflow.flow_store.json_codec import JsonFlowReader, JsonFlowWriter
from alertflow.flow_store.row_store import RowStore
from alertflow.metrics import (
    record_document_loaded,
    record_flow_rows,
    record_load_failure,
)
from alertflow.models import FlowRow, FlowType, MergeMode, UnitRow
from alertflow.rule_engine.xml_loader import XmlLoader

logger = logging.getLogger(__name__)

__all__ = ["LoadResult", "AlertFlowStatistics", "AlertFlowService"]


# ===================================================================
# Lightweight Pydantic models used by the facade
# ===================================================================


class LoadResult(BaseModel):
    """Outcome of one load into the row store.

    Attributes:
        source: Path of the loaded document.
        source_format: xml, json or xlsx.
        row_counts: Flow rows per flow type after the load.
        unit_count: Unit rows after the load.
        emdan_moved: Nurse-call rows reclassified as clinicals.
        role_counts: Rule roles (XML loads only).
        unresolved_views: View names that could not be resolved (XML only).
        summary: Human-readable load summary.
        provenance_hash: SHA-256 of the source document.
        loaded_at: Timestamp of the load.
    """
    source: str = Field(default="")
    source_format: str = Field(default="")
    row_counts: Dict[str, int] = Field(default_factory=dict)
    unit_count: int = Field(default=0)
    emdan_moved: int = Field(default=0)
    role_counts: Dict[str, int] = Field(default_factory=dict)
    unresolved_views: List[str] = Field(default_factory=list)
    summary: str = Field(default="")
    provenance_hash: str = Field(default="")
    loaded_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(),
    )

    @property
    def total_rows(self) -> int:
        return sum(self.row_counts.values())


class AlertFlowStatistics(BaseModel):
    """Aggregated facade statistics."""
    documents_loaded: int = Field(default=0)
    load_failures: int = Field(default=0)
    exports_written: int = Field(default=0)
    rows_loaded: int = Field(default=0)


# ===================================================================
# Facade
# ===================================================================


class AlertFlowService:
    """Unified facade over the rule-engine loader and the row-store codecs.

    Attributes:
        config: AlertFlowConfig instance.
        store: The row store every load replaces.

    Example:
        >>> service = AlertFlowService()
        >>> service.load_workbook("flows.xlsx")
        >>> service.export_json("flows.json")
    """

    def __init__(
        self,
        config: Optional[AlertFlowConfig] = None,
        store: Optional[RowStore] = None,
    ) -> None:
        self.config = config or get_config()
        self.store = store or RowStore()
        self._xml_loader = XmlLoader()
        self._json_reader = JsonFlowReader()
        self._json_writer = JsonFlowWriter(self.config)
        self._excel_reader = ExcelFlowReader(self.config)
        self._excel_writer = ExcelFlowWriter()
        self._stats = AlertFlowStatistics()
        logger.info("AlertFlowService facade created")

    # ------------------------------------------------------------------
    # Loads
    # ------------------------------------------------------------------

    def load_xml(self, file_path: Union[str, Path]) -> LoadResult:
        """Resolve a rule-engine XML document into the store.

        Raises:
            XmlDocumentError: If the document is unreadable or malformed.
        """
        start = time.monotonic()
        try:
            loaded = self._xml_loader.load(file_path)
        except DocumentError:
            self._record_failure("xml")
            raise
        self.store.replace(loaded.flow_rows, loaded.unit_rows)
        return self._finish(
            "xml", str(file_path), start, loaded.provenance_hash,
            role_counts=loaded.role_counts,
            unresolved_views=loaded.unresolved_views,
        )

    def load_json(
        self,
        file_path: Union[str, Path],
        default_type: FlowType = FlowType.NURSE_CALLS,
    ) -> LoadResult:
        """Read a JSON delivery-flow document into the store.

        Raises:
            JsonDocumentError: If the document is unreadable or malformed.
        """
        start = time.monotonic()
        try:
            flow_rows, unit_rows = self._json_reader.read(file_path, default_type)
        except DocumentError:
            self._record_failure("json")
            raise
        self.store.replace(flow_rows, unit_rows)
        return self._finish("json", str(file_path), start, _file_hash(file_path))

    def load_workbook(self, file_path: Union[str, Path]) -> LoadResult:
        """Read a delivery-flow workbook into the store.

        EMDAN-compliant nurse-call rows are moved to clinicals after reading.

        Raises:
            WorkbookError: If the file is unreadable or not a workbook.
        """
        start = time.monotonic()
        try:
            contents = self._excel_reader.read(file_path)
        except DocumentError:
            self._record_failure("xlsx")
            raise
        self.store.replace(contents.flow_rows, contents.unit_rows)
        self.store.move_emdan_to_clinicals()
        return self._finish("xlsx", str(file_path), start, contents.provenance_hash)

    # ------------------------------------------------------------------
    # Exports
    # ------------------------------------------------------------------

    def build_json(
        self,
        merge_mode: Optional[MergeMode] = None,
        flow_types: Optional[Sequence[FlowType]] = None,
    ) -> Dict[str, Any]:
        """Build the JSON document for the current store without writing it."""
        return self._json_writer.build_document(self.store, merge_mode, flow_types)

    def export_json(
        self,
        file_path: Union[str, Path],
        merge_mode: Optional[MergeMode] = None,
        flow_types: Optional[Sequence[FlowType]] = None,
    ) -> Dict[str, Any]:
        """Write the current store as a JSON delivery-flow document."""
        document = self._json_writer.write(self.store, file_path, merge_mode, flow_types)
        self._stats.exports_written += 1
        return document

    def export_workbook(self, file_path: Union[str, Path]) -> Path:
        """Write the current store as a four-sheet workbook."""
        path = self._excel_writer.write(self.store, file_path)
        self._stats.exports_written += 1
        return path

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def update_row(self, row: FlowRow, field: str, value: str) -> bool:
        """Edit one field of a loaded row; returns whether the row is now changed."""
        return row.update_field(field, value)

    def changed_rows(self) -> List[FlowRow]:
        return self.store.changed_rows()

    @property
    def unit_rows(self) -> List[UnitRow]:
        return self.store.unit_rows

    def get_statistics(self) -> AlertFlowStatistics:
        return self._stats

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _record_failure(self, source_format: str) -> None:
        self._stats.load_failures += 1
        record_load_failure(source_format)

    def _finish(
        self,
        source_format: str,
        source: str,
        start: float,
        provenance_hash: str,
        role_counts: Optional[Dict[str, int]] = None,
        unresolved_views: Optional[List[str]] = None,
    ) -> LoadResult:
        row_counts = {
            flow_type.value: len(self.store.flow_rows(flow_type))
            for flow_type in FlowType
        }
        for flow_type, count in row_counts.items():
            record_flow_rows(flow_type, count)
        elapsed = time.monotonic() - start
        record_document_loaded(source_format, elapsed)

        self._stats.documents_loaded += 1
        self._stats.rows_loaded += sum(row_counts.values())

        result = LoadResult(
            source=source,
            source_format=source_format,
            row_counts=row_counts,
            unit_count=len(self.store.unit_rows),
            emdan_moved=self.store.emdan_moved,
            role_counts=dict(role_counts or {}),
            unresolved_views=list(unresolved_views or []),
            summary=self.store.load_summary(),
            provenance_hash=provenance_hash,
        )
        logger.info(
            "Loaded %s document %s: rows=%d, units=%d (%.1f ms)",
            source_format, source, result.total_rows, result.unit_count,
            elapsed * 1000,
        )
        return result


def _file_hash(file_path: Union[str, Path]) -> str:
    with open(file_path, "rb") as handle:
        return hashlib.sha256(handle.read()).hexdigest()
