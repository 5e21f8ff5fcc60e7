# -*- coding: utf-8 -*-
"""
Rule Classifier

Derives the :class:`~alertflow.models.RuleRole` of every rule exactly once,
so that the rest of the pipeline never re-tests ``purpose`` prefixes or
trigger flags.

Classification:
    - inactive rule -> IGNORED
    - DataUpdate, purpose starting with RESET -> IGNORED
    - DataUpdate, trigger-on create -> CREATE
    - DataUpdate, trigger-on update with a target state, or with a delay
      and no destination -> ESCALATE
    - any other DataUpdate -> IGNORED
    - any other component -> SEND

Author: AlertFlow Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Tuple

from alertflow.metrics import record_rule_classified
from alertflow.models import Rule, RuleRole

logger = logging.getLogger(__name__)

__all__ = ["RuleClassifier"]


class RuleClassifier:
    """Assigns each rule its role and keeps per-role counts.

    Attributes:
        _lock: Threading lock for statistics.
        _stats: Classification counters keyed by role value.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._stats: Dict[str, int] = {role.value: 0 for role in RuleRole}

    def classify(self, rule: Rule) -> Tuple[RuleRole, str]:
        """Classify a rule.

        Returns:
            Tuple of (role, short reason used in debug logs).
        """
        role, reason = self._derive(rule)
        with self._lock:
            self._stats[role.value] += 1
        record_rule_classified(role.value)
        logger.debug("Rule %s classified %s (%s)", rule.label, role.value, reason)
        return role, reason

    @staticmethod
    def _derive(rule: Rule) -> Tuple[RuleRole, str]:
        if not rule.active:
            return RuleRole.IGNORED, "inactive"

        if not rule.is_data_update:
            return RuleRole.SEND, "interface component"

        if rule.is_reset:
            return RuleRole.IGNORED, "reset purpose"

        if rule.trigger_create:
            return RuleRole.CREATE, "create-triggered"

        if rule.trigger_update:
            if rule.settings.target_state:
                return RuleRole.ESCALATE, "state transition"
            if rule.defer_delivery_by and not rule.settings.has_destination:
                return RuleRole.ESCALATE, "delayed update"
            return RuleRole.IGNORED, "update without transition"

        return RuleRole.IGNORED, "no trigger"

    def get_statistics(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._stats)

    def reset_statistics(self) -> None:
        with self._lock:
            for key in self._stats:
                self._stats[key] = 0
