"""Tests for the Snitch CLI."""

import pytest
from typer.testing import CliRunner

from snitch.cli import app
from snitch.ids import compute_id
from snitch.tracker import TrackerStore

runner = CliRunner()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("SNITCH_TRACKING_FILE", "SNITCH_KEY_PREFIX", "SNITCH_LEDGER_FILE", "SNITCH_SUBMODULE_INDEPENDENT"):
        monkeypatch.delenv(name, raising=False)


def test_init_creates_config_and_tracker(project_root):
    result = runner.invoke(app, ["init", "--project", str(project_root)])

    assert result.exit_code == 0, result.output
    assert (project_root / ".snitch" / "config.toml").exists()
    text = (project_root / "TRACKER.md").read_text(encoding="utf-8")
    assert "## Tasks" in text and "## Issues" in text and "## Notes" in text

    again = runner.invoke(app, ["init", "--project", str(project_root)])
    assert again.exit_code == 0
    assert (project_root / "TRACKER.md").read_text(encoding="utf-8") == text


def test_init_outside_project_fails(tmp_path):
    result = runner.invoke(app, ["init", "--project", str(tmp_path)])
    assert result.exit_code == 1
    assert "Not inside a project" in result.output


def test_capture_with_match_rewrites_file(project_root):
    source = project_root / "src" / "app.py"
    source.write_text("def run():\n    pass  # TODO fix race condition\n", encoding="utf-8")

    result = runner.invoke(
        app,
        ["capture", str(source), "-t", "st", "--title", "Fix race condition", "-m", "TODO fix race condition"],
    )

    assert result.exit_code == 0, result.output
    entry_id = compute_id("Fix race condition")
    assert source.read_text(encoding="utf-8") == (
        f"def run():\n    pass  # (#1) [[id:{entry_id}][TODO fix race condition]]\n"
    )
    entries = list(TrackerStore().entries(project_root / "TRACKER.md"))
    assert [(e.title, e.sequence_number, e.id) for e in entries] == [("Fix race condition", 1, entry_id)]


def test_capture_with_offsets_and_without_region(project_root):
    source = project_root / "src" / "lib.py"
    source.write_text("XXXX rest\n", encoding="utf-8")

    first = runner.invoke(app, ["capture", str(source), "-t", "si", "--title", "One", "--start", "0", "--end", "4"])
    second = runner.invoke(app, ["capture", str(source), "-t", "sn", "--title", "Two"])

    assert first.exit_code == 0, first.output
    assert second.exit_code == 0, second.output
    assert source.read_text(encoding="utf-8") == f"(#1) [[id:{compute_id('One')}][XXXX]] rest\n"
    numbers = {e.title: e.sequence_number for e in TrackerStore().entries(project_root / "TRACKER.md")}
    assert numbers == {"One": 1, "Two": 2}


def test_capture_rejects_bad_arguments(project_root):
    source = project_root / "src" / "lib.py"
    source.write_text("abc\n", encoding="utf-8")

    unknown = runner.invoke(app, ["capture", str(source), "-t", "zz", "--title", "T"])
    missing = runner.invoke(app, ["capture", str(source), "-t", "st", "--title", "T", "-m", "nope"])
    half = runner.invoke(app, ["capture", str(source), "-t", "st", "--title", "T", "--start", "1"])
    out_of_range = runner.invoke(app, ["capture", str(source), "-t", "st", "--title", "T", "--start", "0", "--end", "99"])

    for result in (unknown, missing, half, out_of_range):
        assert result.exit_code == 1
    assert source.read_text(encoding="utf-8") == "abc\n"
    assert not (project_root / "TRACKER.md").exists()


def test_list_shows_entries(project_root):
    source = project_root / "src" / "lib.py"
    source.write_text("abc\n", encoding="utf-8")
    runner.invoke(app, ["capture", str(source), "-t", "st", "--title", "Listed task"])

    result = runner.invoke(app, ["list", "--project", str(project_root)])

    assert result.exit_code == 0, result.output
    assert "Listed task" in result.output
    assert "Tasks" in result.output


def test_render_shows_labels(project_root):
    source = project_root / "notes.txt"
    source.write_text("See [[id:abc123][Fix race condition]] for details\n", encoding="utf-8")

    result = runner.invoke(app, ["render", str(source)])

    assert result.exit_code == 0, result.output
    assert "See [Fix race condition] for details" in result.output
    assert "id:abc123" not in result.output


def test_templates_and_ledger_tail(project_root):
    templates = runner.invoke(app, ["templates", "--project", str(project_root)])
    assert templates.exit_code == 0
    assert "st" in templates.output and "Issues" in templates.output

    source = project_root / "src" / "lib.py"
    source.write_text("abc\n", encoding="utf-8")
    runner.invoke(app, ["capture", str(source), "-t", "st", "--title", "Logged", "-m", "abc"])

    tail = runner.invoke(app, ["ledger", "tail", "--project", str(project_root)])
    assert tail.exit_code == 0, tail.output
    assert "LINK_INSERTED" in tail.output

    prefix = compute_id("Logged")[:8]
    filtered = runner.invoke(app, ["ledger", "tail", "--project", str(project_root), "--entry", prefix])
    assert filtered.exit_code == 0, filtered.output
    assert "LINK_INSERTED" in filtered.output
    assert "CAPTURE_STARTED" not in filtered.output

    none = runner.invoke(app, ["ledger", "tail", "--project", str(project_root), "-e", "ffffffff"])
    assert "No events in ledger" in none.output


def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "Snitch v" in result.output
