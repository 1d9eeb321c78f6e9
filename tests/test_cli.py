"""Tests for the calindex command line."""

import json

import pytest
from typer.testing import CliRunner

from calindex.cli import app

from conftest import write_note


@pytest.fixture(autouse=True)
def calindex_home(tmp_path, monkeypatch):
    """Keep the ops and error logs out of the real home directory."""
    home = tmp_path / "home"
    monkeypatch.setenv("CALINDEX_HOME", str(home))
    return home


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def invoke(runner, vault_dir):
    def _invoke(*args):
        return runner.invoke(app, ["--vault", str(vault_dir), *args])
    return _invoke


class TestDay:

    def test_text(self, invoke):
        result = invoke("day", "2024-05-01")
        assert result.exit_code == 0, result.output
        assert "daily note" in result.output
        assert "Meeting" in result.output
        assert "Write report" in result.output

    def test_json(self, invoke):
        result = invoke("--json", "day", "2024-05-03")
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["date"] == "2024-05-03"
        assert [r["path"] for r in data["ranges"]] == ["Trip.md"]
        assert data["ranges"][0]["lane"] == 0
        assert [n["symbol"] for n in data["notes"]] == ["📅"]

    def test_recurring_occurrence(self, invoke):
        result = invoke("--json", "day", "2024-05-06")
        data = json.loads(result.output)
        assert [(n["name"], n["recurring"]) for n in data["notes"]] == [("Gym", True)]

    def test_bad_date(self, invoke):
        result = invoke("day", "yesterday")
        assert result.exit_code == 1

    def test_missing_vault(self, runner, tmp_path):
        result = runner.invoke(app, ["--vault", str(tmp_path / "nope"), "day", "2024-05-01"])
        assert result.exit_code == 1


class TestRanges:

    def test_lanes(self, invoke):
        result = invoke("ranges", "2024-05-01", "2024-05-10")
        assert result.exit_code == 0, result.output
        lines = result.output.strip().splitlines()
        assert lines == [
            "2024-05-02  0:Trip.md",
            "2024-05-03  0:Trip.md",
            "2024-05-04  0:Trip.md",
        ]

    def test_inverted_span(self, invoke):
        assert invoke("ranges", "2024-05-10", "2024-05-01").exit_code == 1


class TestTasks:

    def test_carried_forward(self, invoke):
        result = invoke("--json", "tasks", "2024-06-01")
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert [t["name"] for t in data] == ["Write report"]
        assert data[0]["due"] == "2024-05-03"

    def test_open_filter(self, invoke, vault_dir):
        write_note(vault_dir, "tasks/Done.md", """
            tags: task
            status: done
            completedDate: 2024-05-01
        """)
        result = invoke("--json", "tasks", "2024-05-01", "--open")
        data = json.loads(result.output)
        assert [t["name"] for t in data] == ["Write report"]

    def test_open_help_describes_status_filter(self, runner):
        result = runner.invoke(app, ["tasks", "--help"])
        assert result.exit_code == 0
        assert "Show only open/todo tasks" in result.output


class TestHolidays:

    def test_stored_holidays(self, invoke, vault_dir):
        (vault_dir / "calendar.toml").write_text(
            '[[holidays.sources]]\ntype = "country"\ncountry_code = "US"\n', encoding="utf-8")
        write_note(vault_dir, "Holidays/2024 Holidays US.md", """
            year: 2024
            holidays:
              - date: 2024-12-25
                name: Christmas Day
        """)
        result = invoke("holidays", "2024")
        assert result.exit_code == 0, result.output
        assert "2024-12-25  Christmas Day" in result.output

    def test_no_sources(self, invoke):
        result = invoke("--json", "holidays", "2024")
        assert json.loads(result.output) == []


class TestCheck:

    def test_counts(self, invoke):
        result = invoke("--json", "check")
        assert result.exit_code == 0, result.output
        counts = json.loads(result.output)
        assert counts["documents"] == 6
        assert counts["ranges"] == 1
        assert counts["tasks"] == 1
        assert counts["recurring"] == 1
