# -*- coding: utf-8 -*-
"""
View Index - Named filter predicates of the rule-engine document

Holds every ``<dataset>/<view>`` definition keyed by name so that rule
conditions can be resolved to their filter clauses. Also provides the
path predicates used throughout the rule engine to recognise alert-type,
facility, unit, role and state filters.

A condition may name a view that does not exist. Resolution never raises
in that case: :meth:`ViewIndex.lookup` returns None and
:meth:`ViewIndex.resolve` returns an empty clause list.

Example:
    >>> from alertflow.rule_engine.view_index import ViewIndex
    >>> index = ViewIndex()
    >>> index.add(view)
    >>> clauses = index.resolve("Alarm_Types_Vent", dataset="Clinicals")

Author: AlertFlow Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, List, Optional, Tuple

from alertflow.models import FilterClause, ViewDefinition

logger = logging.getLogger(__name__)

__all__ = [
    "is_alert_type_path",
    "is_facility_path",
    "is_unit_path",
    "is_role_path",
    "is_state_path",
    "ViewIndex",
]


# ---------------------------------------------------------------------------
# Path predicates
# ---------------------------------------------------------------------------


def is_alert_type_path(path: str) -> bool:
    """``alert_type`` or any path ending in ``.alert_type``."""
    path = path.strip()
    return path == "alert_type" or path.endswith(".alert_type")


def is_facility_path(path: str) -> bool:
    """``facility.name`` anywhere in the path."""
    return "facility.name" in path


def is_unit_path(path: str) -> bool:
    """``unit.name`` or a deep path such as ``bed.room.unit.name``."""
    path = path.strip()
    return path == "unit.name" or path.endswith(".unit.name")


def is_role_path(path: str) -> bool:
    """Role filters, e.g. ``bed.locs.assignments.role.name``."""
    path = path.strip()
    return "role.name" in path or "assignments.role" in path or path == "role"


def is_state_path(path: str) -> bool:
    return path.strip() == "state"


# ---------------------------------------------------------------------------
# ViewIndex
# ---------------------------------------------------------------------------


class ViewIndex:
    """Arena of view definitions indexed by name.

    Views are registered per dataset. A lookup first tries the rule's own
    dataset and then falls back to a view of that name in any dataset,
    because vendor documents occasionally reference shared views.

    Attributes:
        _views: (dataset, name) -> ViewDefinition.
        _by_name: name -> first ViewDefinition registered under that name.
        _misses: Unknown names already reported, to log each once.
    """

    def __init__(self, views: Optional[Iterable[ViewDefinition]] = None) -> None:
        self._views: Dict[Tuple[str, str], ViewDefinition] = {}
        self._by_name: Dict[str, ViewDefinition] = {}
        self._misses: set = set()
        self._lock = threading.Lock()
        for view in views or ():
            self.add(view)

    def __len__(self) -> int:
        return len(self._views)

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    def add(self, view: ViewDefinition) -> None:
        """Register a view. A later duplicate within a dataset replaces the earlier one."""
        key = (view.dataset, view.name)
        if key in self._views:
            logger.debug(
                "View %s redefined in dataset %s", view.name, view.dataset or "-",
            )
        self._views[key] = view
        self._by_name.setdefault(view.name, view)

    def lookup(
        self, name: str, dataset: Optional[str] = None,
    ) -> Optional[ViewDefinition]:
        """Return the named view, or None when it is not defined."""
        name = (name or "").strip()
        if not name:
            return None
        if dataset is not None:
            view = self._views.get((dataset, name))
            if view is not None:
                return view
        view = self._by_name.get(name)
        if view is None:
            with self._lock:
                if name not in self._misses:
                    self._misses.add(name)
                    logger.warning("Condition references unknown view: %s", name)
        return view

    def resolve(
        self, name: str, dataset: Optional[str] = None,
    ) -> List[FilterClause]:
        """Filter clauses of the named view; empty when it is not defined."""
        view = self.lookup(name, dataset)
        return list(view.filters) if view is not None else []

    def resolve_all(
        self, names: Iterable[str], dataset: Optional[str] = None,
    ) -> Tuple[List[FilterClause], List[str]]:
        """Resolve several view names.

        Returns:
            Tuple of (all clauses in condition order, names that did not resolve).
        """
        clauses: List[FilterClause] = []
        unresolved: List[str] = []
        for name in names:
            view = self.lookup(name, dataset)
            if view is None:
                unresolved.append(name)
                continue
            clauses.extend(view.filters)
        return clauses, unresolved

    def names(self) -> List[str]:
        return list(self._by_name)
