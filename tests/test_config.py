# -*- coding: utf-8 -*-
"""Tests for AlertFlow configuration."""

import pytest

from alertflow.config import (
    AlertFlowConfig,
    get_config,
    parse_merge_mode,
    reset_config,
    set_config,
)
from alertflow.exceptions import ConfigurationError
from alertflow.models import MergeMode


@pytest.fixture(autouse=True)
def _clean_singleton():
    reset_config()
    yield
    reset_config()


class TestDefaults:
    """Tests for default values."""

    def test_defaults(self):
        """Defaults match the documented values."""
        config = AlertFlowConfig()
        assert config.output_version == "1.1.0"
        assert config.default_interface == "OutgoingWCTP"
        assert config.merge_mode_enum == MergeMode.NONE
        assert config.header_scan_rows == 10
        assert config.no_caregiver_destination_name == "NoCaregivers"


class TestFromEnv:
    """Tests for environment overrides."""

    def test_overrides(self, monkeypatch):
        """ALERTFLOW_ variables override fields."""
        monkeypatch.setenv("ALERTFLOW_MERGE_MODE", "merge_all")
        monkeypatch.setenv("ALERTFLOW_HEADER_SCAN_ROWS", "25")
        monkeypatch.setenv("ALERTFLOW_DEFAULT_INTERFACE", "VMP")
        config = AlertFlowConfig.from_env()
        assert config.merge_mode_enum == MergeMode.MERGE_ALL
        assert config.header_scan_rows == 25
        assert config.default_interface == "VMP"

    def test_invalid_integer_falls_back(self, monkeypatch):
        """A non-numeric integer keeps the default."""
        monkeypatch.setenv("ALERTFLOW_HEADER_SCAN_ROWS", "lots")
        assert AlertFlowConfig.from_env().header_scan_rows == 10

    def test_invalid_merge_mode_raises_on_use(self, monkeypatch):
        """An unknown merge mode fails when resolved."""
        monkeypatch.setenv("ALERTFLOW_MERGE_MODE", "sideways")
        config = AlertFlowConfig.from_env()
        with pytest.raises(ConfigurationError):
            config.merge_mode_enum


class TestParseMergeMode:
    """Tests for parse_merge_mode."""

    @pytest.mark.parametrize("value,expected", [
        ("none", MergeMode.NONE),
        ("", MergeMode.NONE),
        (None, MergeMode.NONE),
        ("merge_all", MergeMode.MERGE_ALL),
        ("MERGE_ALL", MergeMode.MERGE_ALL),
        ("merge-by-config-group", MergeMode.MERGE_BY_CONFIG_GROUP),
        (MergeMode.MERGE_BY_CONFIG_GROUP, MergeMode.MERGE_BY_CONFIG_GROUP),
    ])
    def test_accepted_values(self, value, expected):
        """Values, names and dashed forms are accepted."""
        assert parse_merge_mode(value) == expected

    def test_unknown_value(self):
        """Unknown modes raise with the valid choices in context."""
        with pytest.raises(ConfigurationError) as info:
            parse_merge_mode("merge_some")
        assert info.value.context["valid"] == ["none", "merge_all", "merge_by_config_group"]


class TestSingleton:
    """Tests for the config singleton."""

    def test_get_config_is_cached(self):
        """get_config returns one instance until reset."""
        first = get_config()
        assert get_config() is first
        reset_config()
        assert get_config() is not first

    def test_set_config(self):
        """set_config installs the given instance."""
        custom = AlertFlowConfig(output_version="2.0.0")
        set_config(custom)
        assert get_config() is custom
