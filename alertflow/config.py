# -*- coding: utf-8 -*-
"""
AlertFlow Service Configuration

Centralized configuration for the AlertFlow converter covering:
- JSON delivery-flow output (document version, default interface)
- Merge-mode consolidation of flow rows on export
- Spreadsheet header detection window
- Recipient parsing (functional-role pattern, no-caregiver naming)
- Logging

All settings can be overridden via environment variables with the
``ALERTFLOW_`` prefix (e.g. ``ALERTFLOW_MERGE_MODE=merge_all``).

Example:
    >>> from alertflow.config import get_config
    >>> cfg = get_config()
    >>> print(cfg.output_version, cfg.merge_mode)

Author: AlertFlow Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from typing import Any, Optional

from alertflow.exceptions import ConfigurationError
from alertflow.models import MergeMode

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Environment variable prefix
# ---------------------------------------------------------------------------

_ENV_PREFIX = "ALERTFLOW_"


# ---------------------------------------------------------------------------
# AlertFlowConfig
# ---------------------------------------------------------------------------


@dataclass
class AlertFlowConfig:
    """Complete configuration for the AlertFlow converter.

    Attributes:
        output_version: ``version`` field written to JSON delivery-flow documents.
        default_interface: Interface component used when Device-A names none.
        merge_mode: Default consolidation mode for JSON export.
        header_scan_rows: Number of leading rows searched for a sheet header.
        functional_role_regex: Recipients matching this pattern are
            functional roles; everything else is a group.
        no_caregiver_destination_name: destinationName of the clinical
            no-caregiver fallback destination.
        log_level: Logging level for the CLI.
    """

    # -- JSON output ---------------------------------------------------------
    output_version: str = "1.1.0"
    default_interface: str = "OutgoingWCTP"
    merge_mode: str = MergeMode.NONE.value

    # -- Spreadsheet ---------------------------------------------------------
    header_scan_rows: int = 10

    # -- Recipient parsing ---------------------------------------------------
    functional_role_regex: str = r"(?i)^(vassign:.*|.*\[room\].*)$"
    no_caregiver_destination_name: str = "NoCaregivers"

    # -- Logging -------------------------------------------------------------
    log_level: str = "INFO"

    @property
    def merge_mode_enum(self) -> MergeMode:
        """Return :attr:`merge_mode` as a :class:`MergeMode`.

        Raises:
            ConfigurationError: If the configured value is not a known mode.
        """
        return parse_merge_mode(self.merge_mode)

    # ------------------------------------------------------------------
    # Factory helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> AlertFlowConfig:
        """Build an AlertFlowConfig from environment variables.

        Every field can be overridden via ``ALERTFLOW_<FIELD_UPPER>``.
        Integer values are parsed via ``int()``.

        Returns:
            Populated AlertFlowConfig instance.
        """
        prefix = _ENV_PREFIX

        def _env(name: str, default: Any = None) -> Optional[str]:
            return os.environ.get(f"{prefix}{name}", default)

        def _int(name: str, default: int) -> int:
            val = _env(name)
            if val is None:
                return default
            try:
                return int(val)
            except ValueError:
                logger.warning(
                    "Invalid integer for %s%s=%s, using default %d",
                    prefix, name, val, default,
                )
                return default

        def _str(name: str, default: str) -> str:
            val = _env(name)
            if val is None:
                return default
            return val

        config = cls(
            output_version=_str("OUTPUT_VERSION", cls.output_version),
            default_interface=_str("DEFAULT_INTERFACE", cls.default_interface),
            merge_mode=_str("MERGE_MODE", cls.merge_mode),
            header_scan_rows=_int("HEADER_SCAN_ROWS", cls.header_scan_rows),
            functional_role_regex=_str(
                "FUNCTIONAL_ROLE_REGEX", cls.functional_role_regex,
            ),
            no_caregiver_destination_name=_str(
                "NO_CAREGIVER_DESTINATION_NAME",
                cls.no_caregiver_destination_name,
            ),
            log_level=_str("LOG_LEVEL", cls.log_level),
        )

        logger.info(
            "AlertFlowConfig loaded: output_version=%s, merge_mode=%s, "
            "header_scan_rows=%d, default_interface=%s",
            config.output_version,
            config.merge_mode,
            config.header_scan_rows,
            config.default_interface,
        )
        return config


def parse_merge_mode(value: Any) -> MergeMode:
    """Coerce a user-supplied merge mode into a :class:`MergeMode`.

    Accepts enum members, values (``merge_all``) and names (``MERGE_ALL``),
    with dashes treated as underscores.

    Raises:
        ConfigurationError: If the value names no known mode.
    """
    if isinstance(value, MergeMode):
        return value
    text = str(value or "").strip().lower().replace("-", "_")
    if not text:
        return MergeMode.NONE
    for mode in MergeMode:
        if text in (mode.value, mode.name.lower()):
            return mode
    raise ConfigurationError(
        message=f"Unknown merge mode: {value!r}",
        context={"value": value, "valid": [m.value for m in MergeMode]},
    )


# ---------------------------------------------------------------------------
# Thread-safe singleton accessor
# ---------------------------------------------------------------------------

_config_instance: Optional[AlertFlowConfig] = None
_config_lock = threading.Lock()


def get_config() -> AlertFlowConfig:
    """Return the singleton AlertFlowConfig, creating from env if needed."""
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = AlertFlowConfig.from_env()
    return _config_instance


def set_config(config: AlertFlowConfig) -> None:
    """Replace the singleton AlertFlowConfig (useful for testing).

    Args:
        config: New configuration to install.
    """
    global _config_instance
    with _config_lock:
        _config_instance = config
    logger.info("AlertFlowConfig replaced programmatically")


def reset_config() -> None:
    """Reset the singleton (primarily for test teardown)."""
    global _config_instance
    with _config_lock:
        _config_instance = None


__all__ = [
    "AlertFlowConfig",
    "parse_merge_mode",
    "get_config",
    "set_config",
    "reset_config",
]
