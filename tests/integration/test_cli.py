"""Tests for the consult-facts CLI."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
import structlog
import yaml
from typer.testing import CliRunner

from consult_facts.cli.main import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def _cli_env(monkeypatch, tmp_path: Path):
    """File-backed store in tmp_path, quiet logs, and restored root logging afterwards."""
    monkeypatch.setenv("CONSULT_FACTS_PERSISTENCE_BACKEND", "file")
    monkeypatch.setenv("CONSULT_FACTS_PERSISTENCE_STORE_PATH", str(tmp_path / "store"))
    monkeypatch.setenv("CONSULT_FACTS_OBSERVABILITY_LOG_LEVEL", "CRITICAL")
    root = logging.getLogger()
    package = logging.getLogger("consult_facts")
    handlers, level, package_level = root.handlers[:], root.level, package.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    package.setLevel(package_level)
    structlog.reset_defaults()


@pytest.fixture
def note_file(tmp_path: Path, full_content) -> Path:
    path = tmp_path / "note.json"
    path.write_text(
        json.dumps({"consultNoteId": "note-1", "patientId": "patient-1", "content": full_content}),
        encoding="utf-8",
    )
    return path


class TestCheckConfig:
    def test_ok(self) -> None:
        result = runner.invoke(app, ["check-config"])
        assert result.exit_code == 0
        assert "Configuration OK" in result.stdout

    def test_bad_policy(self, monkeypatch, tmp_path: Path) -> None:
        policy = tmp_path / "policy.yaml"
        policy.write_text("confidence:\n  unknown_key: 0.5\n", encoding="utf-8")
        monkeypatch.setenv("CONSULT_FACTS_PIPELINE_POLICY_PATH", str(policy))
        result = runner.invoke(app, ["check-config"])
        assert result.exit_code == 1
        assert "Unknown confidence key" in result.stdout

    def test_unresolvable_funnel(self, monkeypatch) -> None:
        monkeypatch.setenv("CONSULT_FACTS_PIPELINE_DEFAULT_FUNNEL_SLUG", "sleep-check")
        result = runner.invoke(app, ["check-config"])
        assert result.exit_code == 1
        assert "sleep-check" in result.stdout


class TestExtract:
    def test_json_output(self, note_file: Path) -> None:
        result = runner.invoke(app, ["extract", str(note_file), "--json"])
        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["consultNoteId"] == "note-1"
        assert payload["metadata"]["totalFactsExtracted"] == 4
        assert payload["validation"] == {"valid": True, "errors": []}

    def test_yaml_input(self, tmp_path: Path, sparse_content) -> None:
        path = tmp_path / "note.yaml"
        path.write_text(
            yaml.safe_dump({"id": "note-2", "patient_id": "p", "content": sparse_content}),
            encoding="utf-8",
        )
        result = runner.invoke(app, ["extract", str(path), "--json", "--min-confidence", "0.9"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["extractedFacts"] == []

    def test_table_output(self, note_file: Path) -> None:
        result = runner.invoke(app, ["extract", str(note_file)])
        assert result.exit_code == 0
        assert "4 fact(s)" in result.stdout

    def test_invalid_content(self, tmp_path: Path) -> None:
        path = tmp_path / "note.json"
        path.write_text(json.dumps({"id": "n", "patientId": "p", "content": "text"}), encoding="utf-8")
        result = runner.invoke(app, ["extract", str(path)])
        assert result.exit_code == 1
        assert "INVALID_CONTENT_STRUCTURE" in result.stdout


class TestImportAndRun:
    def test_import_run_show(self, note_file: Path) -> None:
        imported = runner.invoke(app, ["import-note", str(note_file)])
        assert imported.exit_code == 0
        assert "Imported consultation note-1" in imported.stdout

        first = runner.invoke(app, ["run", "note-1", "--json"])
        assert first.exit_code == 0
        first_payload = json.loads(first.stdout)
        assert first_payload["success"] is True
        assert first_payload["factCount"] == 4

        second = runner.invoke(app, ["run", "note-1", "--json"])
        assert json.loads(second.stdout)["recordId"] == first_payload["recordId"]

        shown = runner.invoke(app, ["show-record", "note-1"])
        assert shown.exit_code == 0
        assert first_payload["recordId"] in shown.stdout
        assert "4 fact(s)" in shown.stdout

    def test_dry_run(self, note_file: Path) -> None:
        runner.invoke(app, ["import-note", str(note_file)])
        result = runner.invoke(app, ["run", "note-1", "--dry-run", "--json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["recordId"] is None
        assert runner.invoke(app, ["show-record", "note-1"]).exit_code == 1

    def test_options_override_settings(self, note_file: Path) -> None:
        runner.invoke(app, ["import-note", str(note_file)])
        result = runner.invoke(
            app, ["run", "note-1", "--dry-run", "--json", "--min-confidence", "0.95"]
        )
        payload = json.loads(result.stdout)
        assert payload["factCount"] == 1
        assert payload["skippedFactCount"] == 3

    def test_missing_note(self) -> None:
        result = runner.invoke(app, ["run", "absent"])
        assert result.exit_code == 1
        assert "CONSULT_NOTE_NOT_FOUND" in result.stdout

    def test_unknown_funnel(self, note_file: Path) -> None:
        runner.invoke(app, ["import-note", str(note_file)])
        result = runner.invoke(app, ["run", "note-1", "--funnel", "nope", "--json"])
        assert result.exit_code == 1
        assert json.loads(result.stdout)["errorCode"] == "MAPPING_CONFIG_MISSING"
