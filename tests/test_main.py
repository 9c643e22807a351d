"""Tests for the headless entry point."""

import json
import sys

from main import load_board, main


BOARD = {
    "project": {"id": "demo", "name": "Demo", "description": "Sample"},
    "blocks": [
        {"id": "b1", "title": "Parser", "lane": "current", "priority": "urgent",
         "last_worked": "2026-03-09T10:00:00"},
        {"id": "b2", "title": "Docs", "lane": "context", "priority": "low"},
        {"id": "b3", "title": "Hidden", "lane": "next"},
    ],
    "config": {"max_items": 5},
    "important": ["b2"],
    "overrides": {"b3": "exclude"},
}


def test_load_board(tmp_path):
    path = tmp_path / "board.json"
    path.write_text(json.dumps(BOARD), encoding="utf-8")
    project, items, config, data = load_board(path)
    assert project.name == "Demo"
    assert [i.id for i in items] == ["b1", "b2", "b3"]
    assert config.max_items == 5
    assert data["overrides"] == {"b3": "exclude"}


def test_main_prints_export(tmp_path, monkeypatch, capsys):
    path = tmp_path / "board.json"
    path.write_text(json.dumps(BOARD), encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(sys, "argv", ["main.py", str(path), "txt"])
    main()
    out = capsys.readouterr().out
    assert out.startswith("Project: Demo")
    assert "Parser" in out
    assert "Hidden" not in out
