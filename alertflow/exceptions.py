# -*- coding: utf-8 -*-
"""AlertFlow Custom Exception Hierarchy.

This module provides the exception hierarchy for AlertFlow with rich error
context for debugging, logging, and CLI feedback.

Exception Hierarchy:
    AlertFlowException (base)
    ├── DocumentError
    │   ├── XmlDocumentError
    │   ├── JsonDocumentError
    │   └── WorkbookError
    ├── ConfigurationError
    └── JobError

All exceptions include rich context:
- error_code: Unique error identifier
- context: Dictionary with error-specific details
- timestamp: When the error occurred
- traceback: Full stack trace for debugging

Only structural failures raise. Unknown view names, missing settings keys and
rules without a qualifying CREATE rule are not errors: the rule engine logs
them and carries on with defaults.

Example:
    >>> from alertflow.exceptions import XmlDocumentError
    >>> raise XmlDocumentError(
    ...     message="mismatched tag: line 12, column 4",
    ...     file_path="/tmp/engage.xml",
    ... )

Author: AlertFlow Platform Team
Date: October 2026
Status: Production Ready
"""

from typing import Any, Dict, Optional
from datetime import datetime
import json
import re
import traceback as tb


# ==============================================================================
# Base Exception
# ==============================================================================

class AlertFlowException(Exception):
    """Base exception for all AlertFlow errors.

    Attributes:
        message: Human-readable error message
        error_code: Unique error identifier (e.g., "AF_DOCUMENT_XML_DOCUMENT_ERROR")
        context: Dictionary with error-specific details
        timestamp: When the error occurred
        traceback_str: Stack at the point the exception was built
    """

    ERROR_PREFIX = "AF"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        """Initialize AlertFlow exception with rich context.

        Args:
            message: Human-readable error message
            error_code: Unique error identifier (auto-generated if not provided)
            context: Dictionary with error-specific details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self._generate_error_code()
        self.context = context or {}
        self.timestamp = datetime.now()
        self.traceback_str = "".join(tb.format_stack()[:-1])

    def _generate_error_code(self) -> str:
        """Generate an error code from the exception class name.

        Returns:
            Error code like "AF_DOCUMENT_WORKBOOK_ERROR"
        """
        error_type = re.sub(r'(?<!^)(?=[A-Z])', '_', self.__class__.__name__).upper()
        return f"{self.ERROR_PREFIX}_{error_type}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "traceback": self.traceback_str,
        }

    def to_json(self) -> str:
        """Convert exception to JSON string."""
        return json.dumps(self.to_dict(), indent=2, default=str)

    def __str__(self) -> str:
        return f"[{self.error_code}] - {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message='{self.message}', "
            f"error_code='{self.error_code}')"
        )


# ==============================================================================
# Document Exceptions
# ==============================================================================

class DocumentError(AlertFlowException):
    """A source document could not be read or is structurally malformed.

    Always carries the offending file path so the caller can present it.
    """

    ERROR_PREFIX = "AF_DOCUMENT"

    def __init__(
        self,
        message: str,
        file_path: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        context = dict(context or {})
        if file_path is not None:
            context["file_path"] = str(file_path)
        super().__init__(message, context=context)
        self.file_path = str(file_path) if file_path is not None else None

    def __str__(self) -> str:
        base = super().__str__()
        if self.file_path:
            return f"{base} ({self.file_path})"
        return base


class XmlDocumentError(DocumentError):
    """Rule-engine XML is malformed or unreadable.

    Example:
        >>> raise XmlDocumentError("no element found", file_path="engage.xml")
    """


class JsonDocumentError(DocumentError):
    """Delivery-flow JSON is malformed or has the wrong top-level shape."""


class WorkbookError(DocumentError):
    """Spreadsheet workbook could not be opened or written."""


# ==============================================================================
# Other Exceptions
# ==============================================================================

class ConfigurationError(AlertFlowException):
    """Invalid configuration value.

    Example:
        >>> raise ConfigurationError(
        ...     message="Unknown merge mode",
        ...     context={"value": "merge_some", "valid": ["none", "merge_all"]},
        ... )
    """

    ERROR_PREFIX = "AF"


class JobError(AlertFlowException):
    """A headless CLI job was invoked incorrectly."""

    ERROR_PREFIX = "AF"

    def __init__(
        self,
        message: str,
        job_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        context = dict(context or {})
        if job_name:
            context["job_name"] = job_name
        super().__init__(message, context=context)
        self.job_name = job_name


# ==============================================================================
# Utilities
# ==============================================================================

def format_exception_chain(exc: BaseException) -> str:
    """Format an exception and its causes into one readable line per link.

    Args:
        exc: Exception to format

    Returns:
        Newline-separated chain, outermost first
    """
    lines = []
    current: Optional[BaseException] = exc
    depth = 0
    while current is not None:
        prefix = "  " * depth + ("Caused by: " if depth else "")
        lines.append(f"{prefix}{current.__class__.__name__}: {current}")
        current = current.__cause__ or current.__context__
        depth += 1
    return "\n".join(lines)


__all__ = [
    "AlertFlowException",
    "DocumentError",
    "XmlDocumentError",
    "JsonDocumentError",
    "WorkbookError",
    "ConfigurationError",
    "JobError",
    "format_exception_chain",
]
