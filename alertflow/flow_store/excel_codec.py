# -*- coding: utf-8 -*-
"""
Spreadsheet Codec - Delivery-flow workbook reader and writer

Reads the four-sheet delivery-flow workbook (``Unit Breakdown``,
``Nurse Call``, ``Patient Monitoring``, ``Orders``) into flow rows and
unit rows, and writes the same layout back out.

Reading:
    - Sheets are matched case-insensitively against known aliases.
    - The header row is detected (see
      :mod:`alertflow.flow_store.header_detector`).
    - Columns are located through synonyms; missing columns read as "".
    - Workbooks are opened with ``data_only=True`` so formula cells yield
      their cached value. Error tokens and missing cached values read as "".

Writing:
    - One header row followed by data rows, in fixed column order.

Example:
    >>> contents = ExcelFlowReader().read("/data/flows.xlsx")
    >>> ExcelFlowWriter().write(store, "/data/out.xlsx")

Author: AlertFlow Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import hashlib
import io
import logging
import re
import time
import zipfile
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException
from pydantic import BaseModel, Field

from alertflow.config import AlertFlowConfig, get_config
from alertflow.exceptions import WorkbookError
from alertflow.flow_store.header_detector import HeaderDetector, HeaderMap
from alertflow.flow_store.row_store import RowStore
from alertflow.metrics import record_export
from alertflow.models import FlowRow, FlowType, UnitRow

logger = logging.getLogger(__name__)

__all__ = [
    "FORMULA_ERRORS",
    "SHEET_ALIASES",
    "UNIT_COLUMNS",
    "FLOW_COLUMNS",
    "cell_text",
    "WorkbookContents",
    "ExcelFlowReader",
    "ExcelFlowWriter",
]


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------

FORMULA_ERRORS = frozenset({
    "#REF!", "#DIV/0!", "#N/A", "#VALUE!", "#NAME?", "#NUM!", "#NULL!",
})

UNIT_SHEET = "Unit Breakdown"

SHEET_ALIASES: Dict[Optional[FlowType], Tuple[str, ...]] = {
    None: ("Unit Breakdown",),
    FlowType.NURSE_CALLS: ("Nurse Call", "Nurse call"),
    FlowType.CLINICALS: ("Patient Monitoring", "Clinical", "Clinicals"),
    FlowType.ORDERS: ("Orders", "Order"),
}

#: (UnitRow field, written header, read synonyms, excluded partial matches)
UNIT_COLUMNS: List[Tuple[str, str, Tuple[str, ...], Tuple[str, ...]]] = [
    ("facility", "Facility", ("Facility",), ()),
    ("unit_names", "Common Unit Name", ("Common Unit Name", "Unit Name", "Unit"), ()),
    ("nurse_group", "Nurse Call Configuration Group",
     ("Nurse Call Configuration Group", "Nurse Call", "Configuration Group"), ()),
    ("clin_group", "Patient Monitoring Configuration Group",
     ("Patient Monitoring Configuration Group", "Patient Monitoring",
      "Clinical Configuration Group"), ()),
    ("orders_group", "Orders Configuration Group",
     ("Orders Configuration Group", "Order Configuration Group", "Orders"), ()),
    ("no_caregiver_group", "No Caregiver Group",
     ("No Caregiver Group", "No Caregiver Alert Number or Group", "No Caregiver"), ()),
    ("pod_room_filter", "Filter for POD Rooms (Optional)",
     ("Filter for POD Rooms (Optional)", "Filter for POD Rooms", "POD Rooms"), ()),
    ("comments", "Comments", ("Comments", "Comment"), ()),
]

_ORDINALS = ("1st", "2nd", "3rd", "4th", "5th")

#: (FlowRow field, written header, read synonyms, excluded partial matches)
FLOW_COLUMNS: List[Tuple[str, str, Tuple[str, ...], Tuple[str, ...]]] = [
    ("config_group", "Configuration Group", ("Configuration Group",), ()),
    ("alarm_name", "Common Alert or Alarm Name",
     ("Common Alert or Alarm Name", "Alarm Name"), ("sending",)),
    ("sending_name", "Sending System Alert Name",
     ("Sending System Alert Name", "Sending System Alarm Name", "Sending System"), ()),
    ("priority_raw", "Priority", ("Priority",), ()),
    ("device_a", "Device - A", ("Device - A", "Device A"), ("ringtone", "time to live")),
    ("device_b", "Device - B", ("Device - B", "Device B"), ("ringtone", "time to live")),
    ("ringtone", "Ringtone Device - A", ("Ringtone Device - A", "Ringtone"), ()),
    ("response_options", "Response Options", ("Response Options", "Response"), ()),
    ("break_through_dnd", "Break Through DND", ("Break Through DND", "Break Through"), ()),
    ("multi_user_accept", "Multi-User Accept", ("Multi-User Accept", "Multi User"), ()),
    ("escalate_after", "Engage 6.6+: Escalate after all declines or 1 decline",
     ("Engage 6.6+: Escalate after all declines or 1 decline", "Escalate after"), ()),
    ("ttl_value", "Engage/Edge Display Time (Time to Live) (Device - A)",
     ("Engage/Edge Display Time (Time to Live) (Device - A)", "Time to Live", "TTL"), ()),
    ("enunciate", "Genie Enunciation", ("Genie Enunciation", "Enunciation", "Enunciate"), ()),
    ("emdan", "EMDAN Compliant? (Y/N)", ("EMDAN Compliant? (Y/N)", "EMDAN Compliant", "EMDAN"), ()),
]
for _i, _ordinal in enumerate(_ORDINALS, start=1):
    FLOW_COLUMNS.append((
        f"t{_i}", f"Time to {_ordinal} Recipient",
        (f"Time to {_ordinal} Recipient", f"Time to {_ordinal}"), (),
    ))
    FLOW_COLUMNS.append((
        f"r{_i}", f"{_ordinal} Recipient",
        (f"{_ordinal} Recipient",), ("time to",),
    ))

_VGROUP_PREFIX = re.compile(r"(?i)^v(group|assign)[: ]*")


# ---------------------------------------------------------------------------
# Cell helpers
# ---------------------------------------------------------------------------


def cell_text(value: Any) -> str:
    """Display text of a cell value.

    N/A, NA, blanks, formula error tokens and formulas without a cached
    value read as "". Integral floats drop their ``.0``.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    if text.upper() in ("N/A", "NA"):
        return ""
    if text in FORMULA_ERRORS:
        logger.warning("Formula error %s read as empty cell", text)
        return ""
    if text.startswith("="):
        logger.warning("Formula without cached value read as empty cell")
        return ""
    return text


def _strip_group_prefix(value: str) -> str:
    return _VGROUP_PREFIX.sub("", value.strip(), count=1).strip()


class WorkbookContents(BaseModel):
    """Rows read from one workbook."""

    source: str = ""
    flow_rows: List[FlowRow] = Field(default_factory=list)
    unit_rows: List[UnitRow] = Field(default_factory=list)
    sheets_found: List[str] = Field(default_factory=list)
    provenance_hash: str = ""


# ---------------------------------------------------------------------------
# Reader
# ---------------------------------------------------------------------------


class ExcelFlowReader:
    """Reads delivery-flow workbooks."""

    def __init__(self, config: Optional[AlertFlowConfig] = None) -> None:
        self._config = config or get_config()
        self._unit_detector = HeaderDetector(
            [c[1] for c in UNIT_COLUMNS], self._config.header_scan_rows,
        )
        self._flow_detector = HeaderDetector(
            [c[1] for c in FLOW_COLUMNS], self._config.header_scan_rows,
        )

    def read(self, file_path: Union[str, Path]) -> WorkbookContents:
        """Read every known sheet of a workbook.

        Raises:
            WorkbookError: If the file cannot be read or is not a workbook.
        """
        path = str(file_path)
        start = time.monotonic()
        try:
            with open(path, "rb") as handle:
                content = handle.read()
        except OSError as exc:
            raise WorkbookError(
                message=f"Cannot read workbook: {exc.strerror or exc}",
                file_path=path,
            ) from exc

        try:
            wb = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, KeyError, ValueError) as exc:
            raise WorkbookError(
                message=f"Not a readable workbook: {exc}", file_path=path,
            ) from exc

        contents = WorkbookContents(
            source=path, provenance_hash=hashlib.sha256(content).hexdigest(),
        )
        try:
            unit_sheet = self._find_sheet(wb, SHEET_ALIASES[None])
            if unit_sheet is not None:
                contents.sheets_found.append(unit_sheet.title)
                contents.unit_rows = self._read_units(self._rows(unit_sheet))
            for flow_type in FlowType:
                sheet = self._find_sheet(wb, SHEET_ALIASES[flow_type])
                if sheet is None:
                    continue
                contents.sheets_found.append(sheet.title)
                contents.flow_rows.extend(self._read_flows(self._rows(sheet), flow_type))
        finally:
            wb.close()

        elapsed = (time.monotonic() - start) * 1000
        logger.info(
            "Read workbook '%s': sheets=%s, units=%d, flows=%d (%.1f ms)",
            path, contents.sheets_found, len(contents.unit_rows),
            len(contents.flow_rows), elapsed,
        )
        return contents

    @staticmethod
    def _find_sheet(wb: Any, aliases: Sequence[str]) -> Any:
        wanted = {a.lower() for a in aliases}
        for name in wb.sheetnames:
            if name.strip().lower() in wanted:
                return wb[name]
        return None

    @staticmethod
    def _rows(ws: Any) -> List[List[Any]]:
        return [list(row) for row in ws.iter_rows(values_only=True)]

    @staticmethod
    def _locate(
        header: HeaderMap,
        columns: Sequence[Tuple[str, str, Tuple[str, ...], Tuple[str, ...]]],
    ) -> Dict[str, int]:
        return {
            field: header.find(*synonyms, exclude=exclude)
            for field, _, synonyms, exclude in columns
        }

    @staticmethod
    def _value(cells: Sequence[Any], index: int) -> str:
        if index < 0 or index >= len(cells):
            return ""
        return cell_text(cells[index])

    def _read_units(self, rows: List[List[Any]]) -> List[UnitRow]:
        if not rows:
            return []
        header_index = self._unit_detector.detect(rows)
        columns = self._locate(HeaderMap.from_row(rows[header_index]), UNIT_COLUMNS)
        units: List[UnitRow] = []
        for cells in rows[header_index + 1:]:
            values = {field: self._value(cells, idx) for field, idx in columns.items()}
            if not values["facility"] and not values["unit_names"]:
                continue
            values["no_caregiver_group"] = _strip_group_prefix(values["no_caregiver_group"])
            units.append(UnitRow(**values))
        return units

    def _read_flows(self, rows: List[List[Any]], flow_type: FlowType) -> List[FlowRow]:
        if not rows:
            return []
        header_index = self._flow_detector.detect(rows)
        columns = self._locate(HeaderMap.from_row(rows[header_index]), FLOW_COLUMNS)
        flows: List[FlowRow] = []
        for cells in rows[header_index + 1:]:
            values = {field: self._value(cells, idx) for field, idx in columns.items()}
            if not (values["config_group"] or values["alarm_name"] or values["sending_name"]):
                continue
            flows.append(FlowRow(flow_type=flow_type, **values))
        return flows


# ---------------------------------------------------------------------------
# Writer
# ---------------------------------------------------------------------------


class ExcelFlowWriter:
    """Writes the four-sheet delivery-flow workbook."""

    def write(self, store: RowStore, file_path: Union[str, Path]) -> Path:
        """Write every collection of ``store`` to ``file_path``.

        Raises:
            WorkbookError: If the workbook cannot be saved.
        """
        path = Path(file_path)
        wb = openpyxl.Workbook()
        wb.remove(wb.active)

        ws = wb.create_sheet(UNIT_SHEET)
        ws.append([c[1] for c in UNIT_COLUMNS])
        for unit in store.unit_rows:
            ws.append([getattr(unit, c[0]) for c in UNIT_COLUMNS])

        for flow_type in FlowType:
            ws = wb.create_sheet(SHEET_ALIASES[flow_type][0])
            ws.append([c[1] for c in FLOW_COLUMNS])
            for row in store.flow_rows(flow_type):
                ws.append([getattr(row, c[0]) for c in FLOW_COLUMNS])

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            wb.save(str(path))
        except OSError as exc:
            raise WorkbookError(
                message=f"Cannot write workbook: {exc.strerror or exc}",
                file_path=str(path),
            ) from exc
        record_export("xlsx", "none")
        logger.info(
            "Wrote workbook %s: units=%d, flows=%d",
            path, len(store.unit_rows), len(store.flow_rows()),
        )
        return path
