# -*- coding: utf-8 -*-
"""
AlertFlow: Rule-Engine to Delivery-Flow Converter
==================================================

Converts vendor clinical-alerting rule-engine XML into tabular delivery
flows, and reads and writes those flows as JSON delivery-flow documents
and spreadsheets. It supports:

- CREATE / SEND / ESCALATE rule classification
- Alert-type, facility and unit scope resolution through named views
- Escalation chains of up to five (delay, recipient) steps
- Merge-mode consolidation on JSON export
- Header-row detection for spreadsheets with leading title rows
- Per-row change tracking of edited fields
- Prometheus metrics for loads and exports
- Environment configuration with the ALERTFLOW_ prefix

Key Components:
    - config: AlertFlowConfig with ALERTFLOW_ env prefix
    - models: Pydantic v2 models for rules, scopes and rows
    - rule_engine: XML loading and chain resolution
    - flow_store: Row store plus JSON and spreadsheet codecs
    - metrics: Prometheus metrics
    - setup: AlertFlowService facade
    - cli: Headless job dispatch

Example:
    >>> from alertflow import AlertFlowService
    >>> service = AlertFlowService()
    >>> service.load_xml("engage.xml")
    >>> service.export_json("flows.json")
"""

from alertflow._version import __version__

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------
from alertflow.config import (
    AlertFlowConfig,
    get_config,
    reset_config,
    set_config,
)

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------
from alertflow.exceptions import (
    AlertFlowException,
    ConfigurationError,
    DocumentError,
    JobError,
    JsonDocumentError,
    WorkbookError,
    XmlDocumentError,
)

# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------
from alertflow.models import (
    FilterClause,
    FlowRow,
    FlowType,
    MergeMode,
    Rule,
    RuleRole,
    RuleScope,
    RuleSettings,
    UnitRow,
    ViewDefinition,
)

# ---------------------------------------------------------------------------
# Engines and facade
# ---------------------------------------------------------------------------
from alertflow.flow_store import (
    ExcelFlowReader,
    ExcelFlowWriter,
    JsonFlowReader,
    JsonFlowWriter,
    RowStore,
)
from alertflow.rule_engine import XmlLoader, XmlLoadResult
from alertflow.setup import AlertFlowService, LoadResult

__all__ = [
    "__version__",
    "AlertFlowConfig",
    "get_config",
    "set_config",
    "reset_config",
    "AlertFlowException",
    "DocumentError",
    "XmlDocumentError",
    "JsonDocumentError",
    "WorkbookError",
    "ConfigurationError",
    "JobError",
    "FilterClause",
    "ViewDefinition",
    "RuleSettings",
    "Rule",
    "RuleRole",
    "RuleScope",
    "FlowRow",
    "UnitRow",
    "FlowType",
    "MergeMode",
    "XmlLoader",
    "XmlLoadResult",
    "RowStore",
    "JsonFlowWriter",
    "JsonFlowReader",
    "ExcelFlowReader",
    "ExcelFlowWriter",
    "AlertFlowService",
    "LoadResult",
]
