# -*- coding: utf-8 -*-
"""Pytest configuration and shared fixtures."""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple
from xml.sax.saxutils import escape

import openpyxl
import pytest

from alertflow.config import AlertFlowConfig, reset_config, set_config
from alertflow.flow_store.excel_codec import FLOW_COLUMNS, UNIT_COLUMNS


# ==============================================================================
# Rule-engine XML builder
# ==============================================================================

Filter = Tuple[str, str, str]


class EngageDocument:
    """Builds small rule-engine XML documents for tests.

    Example:
        >>> doc = EngageDocument()
        >>> doc.view("Clinicals", "Alerts", ("alert_type", "in", "A, B"))
        >>> doc.rule("DataUpdate", "Clinicals", create=True, views=["Alerts"])
        >>> content = doc.to_bytes()
    """

    def __init__(self) -> None:
        self._datasets: Dict[str, Dict[str, Any]] = {}
        self._interfaces: Dict[str, List[str]] = {}

    def dataset(self, name: str, active: bool = True) -> "EngageDocument":
        entry = self._datasets.setdefault(name, {"active": active, "views": []})
        entry["active"] = active
        return self

    def view(self, dataset: str, name: str, *filters: Filter) -> "EngageDocument":
        self.dataset(dataset, self._datasets.get(dataset, {}).get("active", True))
        parts = [f"<view><name>{escape(name)}</name>"]
        for path, relation, value in filters:
            parts.append(
                f'<filter relation="{relation}"><path>{escape(path)}</path>'
                f"<value>{escape(value)}</value></filter>"
            )
        parts.append("</view>")
        self._datasets[dataset]["views"].append("".join(parts))
        return self

    def rule(
        self,
        component: str,
        dataset: str,
        *,
        create: bool = False,
        update: bool = False,
        defer: Optional[str] = None,
        views: Sequence[str] = (),
        settings: Optional[Dict[str, Any]] = None,
        raw_settings: Optional[str] = None,
        purpose: str = "",
        active: bool = True,
    ) -> "EngageDocument":
        parts = [
            f'<rule active="{str(active).lower()}" dataset="{escape(dataset)}">',
            f"<purpose>{escape(purpose)}</purpose>",
            f'<trigger-on create="{str(create).lower()}" update="{str(update).lower()}"/>',
        ]
        if defer is not None:
            parts.append(f"<defer-delivery-by>{escape(defer)}</defer-delivery-by>")
        parts.append("<condition>")
        for name in views:
            parts.append(f"<view>{escape(name)}</view>")
        parts.append("</condition>")
        if raw_settings is not None:
            parts.append(f"<settings>{escape(raw_settings)}</settings>")
        elif settings is not None:
            parts.append(f"<settings>{escape(json.dumps(settings))}</settings>")
        parts.append("</rule>")
        self._interfaces.setdefault(component, []).append("".join(parts))
        return self

    def to_string(self) -> str:
        datasets = []
        for name, entry in self._datasets.items():
            active = "" if entry["active"] else ' active="false"'
            datasets.append(
                f"<dataset{active}><name>{escape(name)}</name>"
                f"<views>{''.join(entry['views'])}</views></dataset>"
            )
        interfaces = []
        for component, rules in self._interfaces.items():
            interfaces.append(
                f'<interface component="{component}"><name>{component}</name>'
                f"<rules>{''.join(rules)}</rules></interface>"
            )
        return (
            '<?xml version="1.0" encoding="UTF-8"?>'
            "<package><contents>"
            f"<datasets>{''.join(datasets)}</datasets>"
            f"<interfaces>{''.join(interfaces)}</interfaces>"
            "</contents></package>"
        )

    def to_bytes(self) -> bytes:
        return self.to_string().encode("utf-8")

    def write(self, path: Path) -> Path:
        path.write_bytes(self.to_bytes())
        return path


@pytest.fixture
def engage_doc():
    """Empty rule-engine document builder."""
    return EngageDocument()


@pytest.fixture
def vent_document():
    """CREATE on {VENT ALARM, EQUIPMENT}; SEND on {VENT ALARM, VENT OUT, EQUIPMENT}.

    The CREATE rule defers 60 seconds, is scoped to facility Main and unit
    ICU, and the SEND rule targets the room-scoped Nurse role.
    """
    doc = EngageDocument()
    doc.view("Clinicals", "Create_Alerts", ("alert_type", "in", "VENT ALARM, EQUIPMENT"))
    doc.view("Clinicals", "Send_Alerts",
             ("alert_type", "in", "VENT ALARM, VENT OUT, EQUIPMENT"))
    doc.view("Clinicals", "Facility_Main", ("bed.room.unit.facility.name", "equal", "Main"))
    doc.view("Clinicals", "Unit_ICU", ("bed.room.unit.name", "in", "ICU"))
    doc.view("Clinicals", "State_Primary", ("state", "equal", "Primary"))
    doc.view("Clinicals", "Role_Nurse", ("bed.locs.assignments.role.name", "equal", "Nurse"))
    doc.rule(
        "DataUpdate", "Clinicals", create=True, defer="60",
        views=["Create_Alerts", "Facility_Main", "Unit_ICU"],
        purpose="CREATE CLINICAL ALERTS",
        settings={"parameters": [{"path": "state", "value": "\"Primary\""}]},
    )
    doc.rule(
        "VMP", "Clinicals",
        views=["Send_Alerts", "State_Primary", "Role_Nurse", "Unit_ICU"],
        purpose="SEND PRIMARY",
        settings={"priority": "0", "ttl": "10", "displayValues": ["Accept", "Decline"]},
    )
    return doc


# ==============================================================================
# Workbooks
# ==============================================================================


def _flow_header() -> List[str]:
    return [column[1] for column in FLOW_COLUMNS]


def _unit_header() -> List[str]:
    return [column[1] for column in UNIT_COLUMNS]


@pytest.fixture
def make_workbook(tmp_path):
    """Factory writing a delivery-flow workbook from per-sheet row dicts.

    Sheets map a sheet title to a list of rows; each row is a dict keyed by
    header text. ``preamble`` rows are written above each header.
    """

    def _make(
        sheets: Dict[str, List[Dict[str, Any]]],
        name: str = "flows.xlsx",
        preamble: Sequence[Sequence[Any]] = (),
    ) -> Path:
        wb = openpyxl.Workbook()
        wb.remove(wb.active)
        for title, rows in sheets.items():
            ws = wb.create_sheet(title)
            header = _unit_header() if "unit" in title.lower() else _flow_header()
            for extra in preamble:
                ws.append(list(extra))
            ws.append(header)
            for row in rows:
                ws.append([row.get(column, None) for column in header])
        path = tmp_path / name
        wb.save(str(path))
        return path

    return _make


# ==============================================================================
# Configuration
# ==============================================================================


@pytest.fixture
def config():
    """Default configuration installed as the singleton for the test."""
    cfg = AlertFlowConfig()
    set_config(cfg)
    yield cfg
    reset_config()
