"""Tests for the command line entry point."""

import sys
from unittest.mock import patch

import pytest

import main

PAGE = """<!DOCTYPE html>
<html>
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<meta name="description" content="Crumbs bakery">
<title>Crumbs</title>
</head>
<body>
<h1>Crumbs</h1>
<button onclick="go()">Go</button>
</body>
</html>
"""


def _run(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", ["siteforge", *argv])
    main.main()


def test_plan_uses_fallback_without_upstream(monkeypatch, capsys):
    with patch("agents.planner.call_llm", side_effect=RuntimeError("no key")):
        _run(monkeypatch, "plan", "--prompt", "bakery site with a contact page")
    out = capsys.readouterr().out
    assert "Mode:     flat-markup" in out
    assert "Source:   fallback" in out
    assert "contact.html" in out


@pytest.mark.parametrize("argv", [
    ["plan", "--prompt", "bakery site", "--verbose"],
    ["--verbose", "plan", "--prompt", "bakery site"],
])
def test_verbose_accepted_before_or_after_command(monkeypatch, capsys, argv):
    with patch("agents.planner.call_llm", side_effect=RuntimeError("no key")):
        _run(monkeypatch, *argv)
    out = capsys.readouterr().out
    assert "Mode:     flat-markup" in out
    assert "full-stack" in out


def test_plan_without_verbose_hides_mode_scores(monkeypatch, capsys):
    with patch("agents.planner.call_llm", side_effect=RuntimeError("no key")):
        _run(monkeypatch, "plan", "--prompt", "bakery site")
    assert "full-stack" not in capsys.readouterr().out


def test_validate_failing_file_exits_nonzero(monkeypatch, capsys, tmp_path):
    page = tmp_path / "index.html"
    page.write_text("<h1>a</h1><h1>b</h1>")
    with pytest.raises(SystemExit) as exc:
        _run(monkeypatch, "validate", str(page))
    assert exc.value.code == 1
    assert "heading-count" in capsys.readouterr().out


def test_validate_clean_file(monkeypatch, capsys, tmp_path):
    sheet = tmp_path / "style.css"
    sheet.write_text(":root { --ink: #222; }\np { color: var(--ink); }\n")
    _run(monkeypatch, "validate", str(sheet))
    assert "passed" in capsys.readouterr().out


def test_unknown_kind_needs_flag(monkeypatch, tmp_path):
    notes = tmp_path / "notes.txt"
    notes.write_text("hello")
    with pytest.raises(SystemExit) as exc:
        _run(monkeypatch, "validate", str(notes))
    assert exc.value.code == 2


def test_fix_writes_file(monkeypatch, capsys, tmp_path):
    page = tmp_path / "index.html"
    page.write_text(PAGE)
    _run(monkeypatch, "fix", str(page), "--write")
    out = capsys.readouterr().out
    assert "fixed:" in out
    assert "Remaining issues: 0" in out
    assert "onclick" not in page.read_text()


def test_fix_without_write_leaves_file(monkeypatch, tmp_path):
    page = tmp_path / "index.html"
    page.write_text(PAGE)
    _run(monkeypatch, "fix", str(page))
    assert page.read_text() == PAGE


def test_classify_iteration_from_files(monkeypatch, capsys, tmp_path):
    page = tmp_path / "index.html"
    page.write_text(PAGE)
    sheet = tmp_path / "style.css"
    sheet.write_text("p {}")
    _run(monkeypatch, "classify-iteration", "--prompt", "use a bigger font", str(page), str(sheet))
    out = capsys.readouterr().out
    assert "Mode:      amend" in out
    assert "  style.css" in out


def test_no_command_prints_help(monkeypatch):
    with pytest.raises(SystemExit):
        _run(monkeypatch)
