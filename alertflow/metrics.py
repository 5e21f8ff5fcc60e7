# -*- coding: utf-8 -*-
"""
Prometheus Metrics - AlertFlow

Prometheus metrics for rule-engine loads and delivery-flow exports.

Metrics:
    1. alertflow_documents_loaded_total (Counter, labels: source_format)
    2. alertflow_load_duration_seconds (Histogram, labels: source_format)
    3. alertflow_load_failures_total (Counter, labels: source_format)
    4. alertflow_flow_rows_total (Counter, labels: flow_type)
    5. alertflow_rules_classified_total (Counter, labels: role)
    6. alertflow_exports_total (Counter, labels: target_format, merge_mode)

Author: AlertFlow Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging

from prometheus_client import Counter, Histogram

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Metric definitions
# ---------------------------------------------------------------------------

# 1. Documents loaded by source format (xml, json, xlsx)
documents_loaded_total = Counter(
    "alertflow_documents_loaded_total",
    "Total source documents loaded into the row store",
    labelnames=["source_format"],
)

# 2. Load duration (sub-second up to large multi-thousand-rule documents)
load_duration_seconds = Histogram(
    "alertflow_load_duration_seconds",
    "Source document load duration in seconds",
    labelnames=["source_format"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

# 3. Failed loads by source format
load_failures_total = Counter(
    "alertflow_load_failures_total",
    "Total source document loads that raised",
    labelnames=["source_format"],
)

# 4. Flow rows produced by flow type
flow_rows_total = Counter(
    "alertflow_flow_rows_total",
    "Total flow rows produced by loads",
    labelnames=["flow_type"],
)

# 5. Rule classification outcomes
rules_classified_total = Counter(
    "alertflow_rules_classified_total",
    "Total XML rules classified by derived role",
    labelnames=["role"],
)

# 6. Exports by target format and merge mode
exports_total = Counter(
    "alertflow_exports_total",
    "Total delivery-flow exports written",
    labelnames=["target_format", "merge_mode"],
)


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------


def record_document_loaded(source_format: str, duration_seconds: float) -> None:
    """Record a completed load with its duration.

    Args:
        source_format: Source format (xml, json, xlsx).
        duration_seconds: Total load duration in seconds.
    """
    documents_loaded_total.labels(source_format=source_format).inc()
    load_duration_seconds.labels(source_format=source_format).observe(
        duration_seconds,
    )


def record_load_failure(source_format: str) -> None:
    """Record a load that raised."""
    load_failures_total.labels(source_format=source_format).inc()


def record_flow_rows(flow_type: str, count: int) -> None:
    """Record flow rows produced for one flow type.

    Args:
        flow_type: NurseCalls, Clinicals or Orders.
        count: Number of rows produced.
    """
    if count > 0:
        flow_rows_total.labels(flow_type=flow_type).inc(count)


def record_rule_classified(role: str) -> None:
    """Record one rule classification outcome."""
    rules_classified_total.labels(role=role).inc()


def record_export(target_format: str, merge_mode: str) -> None:
    """Record an export.

    Args:
        target_format: json or xlsx.
        merge_mode: Merge mode used (none for workbook exports).
    """
    exports_total.labels(
        target_format=target_format, merge_mode=merge_mode,
    ).inc()


__all__ = [
    # Metric objects
    "documents_loaded_total",
    "load_duration_seconds",
    "load_failures_total",
    "flow_rows_total",
    "rules_classified_total",
    "exports_total",
    # Helper functions
    "record_document_loaded",
    "record_load_failure",
    "record_flow_rows",
    "record_rule_classified",
    "record_export",
]
