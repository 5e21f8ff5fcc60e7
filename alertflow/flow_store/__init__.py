# -*- coding: utf-8 -*-
"""
AlertFlow Flow Store

Owns loaded flow rows and unit rows, and reads and writes them as JSON
delivery-flow documents and delivery-flow workbooks.

Components:
    - row_store: Wholesale-replaced row collections and change tracking
    - merge: Merge-mode consolidation of rows into delivery flows
    - json_codec: JSON delivery-flow writer and reader
    - header_detector: Spreadsheet header-row detection and column lookup
    - excel_codec: Spreadsheet reader and writer

Example:
    >>> from alertflow.flow_store import RowStore, JsonFlowWriter
    >>> document = JsonFlowWriter().build_document(store)

Author: AlertFlow Platform Team
Date: October 2026
Status: Production Ready
"""

from alertflow.flow_store.excel_codec import ExcelFlowReader, ExcelFlowWriter, WorkbookContents, cell_text
from alertflow.flow_store.header_detector import HeaderDetector, HeaderMap, normalize_header
from alertflow.flow_store.json_codec import JsonFlowReader, JsonFlowWriter
from alertflow.flow_store.merge import MergedFlow, UnitRef, merge_flows
from alertflow.flow_store.row_store import RowStore

__all__ = [
    "RowStore",
    "UnitRef",
    "MergedFlow",
    "merge_flows",
    "JsonFlowWriter",
    "JsonFlowReader",
    "HeaderDetector",
    "HeaderMap",
    "normalize_header",
    "ExcelFlowReader",
    "ExcelFlowWriter",
    "WorkbookContents",
    "cell_text",
]
