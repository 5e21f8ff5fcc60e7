# -*- coding: utf-8 -*-
"""Tests for the AlertFlow exception hierarchy.

Covers:
- Error code generation
- File path context on document errors
- Serialization
- Exception chain formatting
"""

import json
from datetime import datetime

import pytest

from alertflow.exceptions import (
    AlertFlowException,
    ConfigurationError,
    DocumentError,
    JobError,
    JsonDocumentError,
    WorkbookError,
    XmlDocumentError,
    format_exception_chain,
)


# ==============================================================================
# Base exception
# ==============================================================================

class TestAlertFlowException:
    """Tests for the base exception."""

    def test_basic_exception(self):
        """Message, generated code and timestamp are set."""
        exc = AlertFlowException("Something broke")
        assert exc.message == "Something broke"
        assert exc.error_code == "AF_ALERT_FLOW_EXCEPTION"
        assert exc.context == {}
        assert isinstance(exc.timestamp, datetime)

    def test_custom_error_code(self):
        """An explicit error code wins."""
        exc = AlertFlowException("x", error_code="CUSTOM")
        assert exc.error_code == "CUSTOM"

    def test_str_and_repr(self):
        """str shows code and message; repr shows the class."""
        exc = ConfigurationError("bad value")
        assert str(exc) == "[AF_CONFIGURATION_ERROR] - bad value"
        assert repr(exc).startswith("ConfigurationError(")

    def test_to_dict_and_json(self):
        """Serialization carries type, code, message and context."""
        exc = ConfigurationError("bad", context={"value": "x"})
        data = exc.to_dict()
        assert data["error_type"] == "ConfigurationError"
        assert data["context"] == {"value": "x"}
        assert json.loads(exc.to_json())["message"] == "bad"


# ==============================================================================
# Document exceptions
# ==============================================================================

class TestDocumentErrors:
    """Tests for document errors."""

    @pytest.mark.parametrize("cls,code", [
        (XmlDocumentError, "AF_DOCUMENT_XML_DOCUMENT_ERROR"),
        (JsonDocumentError, "AF_DOCUMENT_JSON_DOCUMENT_ERROR"),
        (WorkbookError, "AF_DOCUMENT_WORKBOOK_ERROR"),
    ])
    def test_error_codes(self, cls, code):
        """Each document error has its own code."""
        exc = cls("failed", file_path="/tmp/a")
        assert exc.error_code == code
        assert isinstance(exc, DocumentError)
        assert isinstance(exc, AlertFlowException)

    def test_file_path_in_context_and_str(self):
        """The file path is carried in context and shown in str."""
        exc = XmlDocumentError("no element found", file_path="engage.xml",
                               context={"position": [1, 0]})
        assert exc.file_path == "engage.xml"
        assert exc.context == {"position": [1, 0], "file_path": "engage.xml"}
        assert str(exc).endswith("(engage.xml)")

    def test_without_file_path(self):
        """A missing path leaves context and str untouched."""
        exc = WorkbookError("cannot open")
        assert exc.file_path is None
        assert "file_path" not in exc.context
        assert str(exc) == "[AF_DOCUMENT_WORKBOOK_ERROR] - cannot open"


class TestJobError:
    """Tests for JobError."""

    def test_job_name_in_context(self):
        """The job name is recorded."""
        exc = JobError("Usage: alertflow export-json", job_name="export-json")
        assert exc.job_name == "export-json"
        assert exc.context["job_name"] == "export-json"
        assert exc.error_code == "AF_JOB_ERROR"


# ==============================================================================
# Utilities
# ==============================================================================

class TestFormatExceptionChain:
    """Tests for format_exception_chain."""

    def test_chain_outermost_first(self):
        """Causes are listed after the outer exception."""
        try:
            try:
                raise OSError("disk gone")
            except OSError as inner:
                raise WorkbookError("cannot open", file_path="a.xlsx") from inner
        except WorkbookError as outer:
            text = format_exception_chain(outer)
        lines = text.splitlines()
        assert lines[0].startswith("WorkbookError: [AF_DOCUMENT_WORKBOOK_ERROR]")
        assert lines[1] == "  Caused by: OSError: disk gone"

    def test_single_exception(self):
        """A lone exception formats as one line."""
        assert format_exception_chain(ValueError("x")) == "ValueError: x"
