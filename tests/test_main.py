"""Tests for the command line entry point."""

from __future__ import annotations

import io

import pytest

import main

pytestmark = pytest.mark.unit


@pytest.fixture
def notes(tmp_path):
    path = tmp_path / "notes.txt"
    path.write_text("Team Meeting 2025-01-15 2:00 PM\nProject Review on December 25, 2024 at 10:30 AM\n", encoding="utf-8")
    return path


def test_main_writes_calendar(tmp_path, notes, capsys):
    out_dir = tmp_path / "out"
    out_dir.mkdir()

    code = main.main([str(notes), "-o", str(out_dir), "--timezone", "Europe/Paris"])

    assert code == 0
    files = list(out_dir.glob("team-meeting-2events-*.ics"))
    assert len(files) == 1
    content = files[0].read_bytes()
    assert b"SUMMARY:Project Review\r\n" in content
    assert "Downloaded 2 events successfully" in capsys.readouterr().out


def test_main_custom_filename_from_stdin(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr("sys.stdin", io.StringIO('{"events":[{"DTSTART":"20250915T080000Z","SUMMARY":"PHYSIQUE-CHIMIE"}]}'))

    code = main.main(["-", "-o", str(tmp_path), "--filename", "physique.ics"])

    assert code == 0
    assert b"SUMMARY:PHYSIQUE-CHIMIE" in (tmp_path / "physique.ics").read_bytes()
    assert "Downloaded 1 event successfully" in capsys.readouterr().out


def test_main_reports_export_failure(notes, tmp_path):
    code = main.main([str(notes), "-o", str(tmp_path / "missing-dir")])

    assert code == 1


def test_main_missing_input_is_usage_error(tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        main.main([str(tmp_path / "nope.txt")])

    assert excinfo.value.code == 2


def test_main_gemini_requires_key(notes, monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)

    with pytest.raises(SystemExit) as excinfo:
        main.main([str(notes), "--gemini"])

    assert excinfo.value.code == 2
