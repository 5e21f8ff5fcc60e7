# -*- coding: utf-8 -*-
"""Tests for the headless CLI jobs."""

import json

import pytest
from typer.testing import CliRunner

from alertflow.cli.main import JOBS, app


@pytest.fixture
def runner():
    """Create a CLI test runner."""
    return CliRunner()


class TestDispatch:
    """Tests for job dispatch."""

    def test_help(self, runner):
        """--help exits 0."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0

    def test_fail_job(self, runner):
        """fail exits 0 without the flag and 1 with it."""
        assert runner.invoke(app, ["fail"]).exit_code == 0
        assert runner.invoke(app, ["fail", "--expect-failure"]).exit_code == 1
        assert runner.invoke(app, ["fail", "-f"]).exit_code == 1

    def test_unknown_job(self, runner):
        """Unknown jobs print the job list and exit 1."""
        result = runner.invoke(app, ["frobnicate"])
        assert result.exit_code == 1
        assert "Unknown job" in result.output
        assert "export-json" in result.output

    def test_jobs_lists_every_job(self, runner):
        """jobs prints every job name."""
        result = runner.invoke(app, ["jobs"])
        assert result.exit_code == 0
        for name in JOBS:
            assert name in result.output

    def test_version(self, runner):
        """--version prints the version."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "AlertFlow v" in result.output


class TestConversionJobs:
    """Tests for export-json and convert-xml."""

    def test_export_json_wrong_arity(self, runner, tmp_path):
        """Missing or extra arguments exit 1 with usage."""
        result = runner.invoke(app, ["export-json", str(tmp_path / "in.xlsx")])
        assert result.exit_code == 1
        assert "Usage" in result.output
        result = runner.invoke(app, ["export-json", "a", "b", "c"])
        assert result.exit_code == 1

    def test_export_json(self, runner, make_workbook, tmp_path, config):
        """A workbook converts into a JSON document."""
        source = make_workbook({
            "Unit Breakdown": [{"Facility": "Main", "Common Unit Name": "ICU",
                                "Nurse Call Configuration Group": "NC"}],
            "Nurse Call": [{"Configuration Group": "NC", "Common Alert or Alarm Name": "Bath",
                            "1st Recipient": "VGroup Team"}],
        })
        target = tmp_path / "flows.json"
        result = runner.invoke(app, ["export-json", str(source), str(target),
                                     "--merge-mode", "merge_all"])
        assert result.exit_code == 0, result.output
        document = json.loads(target.read_text(encoding="utf-8"))
        assert document["deliveryFlows"][0]["alarmsAlerts"] == ["Bath"]

    def test_export_json_bad_merge_mode(self, runner, make_workbook, tmp_path, config):
        """An unknown merge mode exits 1."""
        source = make_workbook({"Nurse Call": []})
        result = runner.invoke(app, ["export-json", str(source), str(tmp_path / "o.json"),
                                     "--merge-mode", "sideways"])
        assert result.exit_code == 1
        assert "AF_CONFIGURATION_ERROR" in result.output

    def test_export_json_load_failure(self, runner, tmp_path, config):
        """A missing workbook prints the error code and exits 1."""
        result = runner.invoke(app, ["export-json", str(tmp_path / "none.xlsx"),
                                     str(tmp_path / "o.json")])
        assert result.exit_code == 1
        assert "AF_DOCUMENT_WORKBOOK_ERROR" in result.output

    def test_convert_xml(self, runner, vent_document, tmp_path, config):
        """Rule-engine XML converts into a JSON document."""
        source = vent_document.write(tmp_path / "engage.xml")
        target = tmp_path / "flows.json"
        result = runner.invoke(app, ["convert-xml", str(source), str(target)])
        assert result.exit_code == 0, result.output
        document = json.loads(target.read_text(encoding="utf-8"))
        assert len(document["deliveryFlows"]) == 2

    def test_convert_xml_malformed(self, runner, tmp_path, config):
        """Malformed XML exits 1 with its error code."""
        source = tmp_path / "bad.xml"
        source.write_text("<package>", encoding="utf-8")
        result = runner.invoke(app, ["convert-xml", str(source), str(tmp_path / "o.json")])
        assert result.exit_code == 1
        assert "AF_DOCUMENT_XML_DOCUMENT_ERROR" in result.output
