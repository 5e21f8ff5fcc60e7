# -*- coding: utf-8 -*-
"""
Header Detector - Spreadsheet header-row detection and column lookup

Workbooks often carry title or metadata rows above the real header, so
the header row is detected rather than assumed:

    score(row) = vocabulary hits * 10 + non-empty cells

over the first ``header_scan_rows`` rows. The highest score wins and ties
go to the earliest row, so a populated metadata row never beats a row
whose text matches the expected column names.

Column lookup tries an exact normalized synonym match first and then
falls back to the shortest header containing the synonym.

Example:
    >>> detector = HeaderDetector(["Facility", "Common Unit Name"])
    >>> header_index = detector.detect(rows)
    >>> columns = HeaderMap.from_row(rows[header_index])
    >>> columns.find("Facility")

Author: AlertFlow Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence

logger = logging.getLogger(__name__)

__all__ = [
    "normalize_header",
    "HeaderMap",
    "HeaderDetector",
]

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_header(text: Any) -> str:
    """Lowercase, collapse non-alphanumerics to single spaces, drop a trailing ``*``."""
    if text is None:
        return ""
    value = str(text).strip()
    while value.endswith("*"):
        value = value[:-1].rstrip()
    return _NON_ALNUM.sub(" ", value.lower()).strip()


class HeaderMap:
    """Normalized header text -> zero-based column index."""

    def __init__(self, columns: Optional[Dict[str, int]] = None) -> None:
        self._columns: Dict[str, int] = dict(columns or {})

    @classmethod
    def from_row(cls, cells: Sequence[Any]) -> HeaderMap:
        columns: Dict[str, int] = {}
        for index, cell in enumerate(cells):
            key = normalize_header(cell)
            if key and key not in columns:
                columns[key] = index
        return cls(columns)

    def __len__(self) -> int:
        return len(self._columns)

    def headers(self) -> List[str]:
        return list(self._columns)

    def find(self, *synonyms: str, exclude: Sequence[str] = ()) -> int:
        """Column index for the first matching synonym, or -1.

        Exact matches across all synonyms are tried before any partial
        match; a partial match picks the shortest containing header.
        Headers containing any ``exclude`` term are never partial matches.
        """
        if not self._columns:
            return -1
        normalized = [normalize_header(s) for s in synonyms if s]
        for key in normalized:
            if key in self._columns:
                return self._columns[key]
        blocked = [normalize_header(e) for e in exclude if e]
        for key in normalized:
            if not key:
                continue
            candidates = [
                h for h in self._columns
                if key in h and not any(b and b in h for b in blocked)
            ]
            if candidates:
                best = min(candidates, key=lambda h: (len(h), self._columns[h]))
                return self._columns[best]
        return -1


class HeaderDetector:
    """Scores candidate rows against an expected column vocabulary."""

    def __init__(self, vocabulary: Iterable[str], scan_rows: int = 10) -> None:
        self._vocabulary = [v for v in (normalize_header(t) for t in vocabulary) if v]
        self._scan_rows = max(1, scan_rows)

    def score(self, cells: Sequence[Any]) -> int:
        normalized = [normalize_header(c) for c in cells]
        non_empty = sum(1 for c in normalized if c)
        present = set(c for c in normalized if c)
        hits = sum(1 for term in self._vocabulary if term in present)
        return hits * 10 + non_empty

    def detect(self, rows: Sequence[Sequence[Any]]) -> int:
        """Zero-based index of the header row among ``rows`` (0 when empty)."""
        best_index = 0
        best_score = -1
        for index, cells in enumerate(rows[: self._scan_rows]):
            current = self.score(cells or ())
            if current > best_score:
                best_index, best_score = index, current
        logger.debug("Header row detected at %d (score=%d)", best_index, best_score)
        return best_index
