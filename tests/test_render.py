"""Tests for rich table rendering."""

from rich.console import Console

from relaygate import render
from relaygate.services.index_query import query_index

ITEMS = [
    {"genre": ["Crime", "Drama"], "title": "Heat", "studio": "WB", "_branch": "main",
     "_meta_dir": "data/heat", "_created_at": "T1", "_updated_at": "T2"},
    {"title": "Alien", "release_date": "1979-05-25", "_branch": "dev",
     "_meta_dir": "data/alien", "_created_at": "T1", "_updated_at": "T1"},
]


def capture(monkeypatch, result):
    console = Console(record=True, width=200)
    monkeypatch.setattr(render, "console", console)
    render.render_index_table(result)
    return console.export_text()


def test_index_columns_put_schema_fields_first():
    assert render.index_columns(ITEMS) == ["title", "release_date", "genre", "studio"]


def test_render_table(monkeypatch):
    text = capture(monkeypatch, query_index(ITEMS, branch="all"))
    assert "data/heat" in text
    assert "Crime, Drama" in text
    assert "1-2 of 2" in text
    assert "Branch" in text


def test_render_single_branch_hides_branch_column(monkeypatch):
    text = capture(monkeypatch, query_index(ITEMS, branch="main"))
    assert "Branch" not in text
    assert "Alien" not in text


def test_render_empty(monkeypatch):
    text = capture(monkeypatch, query_index([], branch="main"))
    assert "No index entries found." in text
