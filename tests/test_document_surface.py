"""Tests for the in-memory document surface."""

from pathlib import Path

import pytest

from chronicle.documents import DocumentSurface, TextDocument


def test_text_document_satisfies_surface_protocol():
    assert isinstance(TextDocument(), DocumentSurface)


def test_get_text_strips_surrounding_whitespace():
    document = TextDocument(text="\n  First paragraph.\n\nSecond paragraph.  \n")
    assert document.get_text() == "First paragraph.\n\nSecond paragraph."


def test_append_text_bumps_version():
    document = TextDocument(text="The sky was")

    document.append_text(" turning orange.")

    assert document.text == "The sky was turning orange."
    assert document.version_id == 2
    assert document.dirty is True
    assert document.caret == len(document.text)


def test_append_empty_text_is_ignored():
    document = TextDocument(text="Unchanged")
    document.append_text("")
    assert document.version_id == 1
    assert document.dirty is False


def test_focus_moves_caret_to_end():
    document = TextDocument(text="abc")
    document.caret = 0

    document.focus()

    assert document.focused is True
    assert document.caret == 3


def test_from_path_and_save_roundtrip(tmp_path: Path):
    source = tmp_path / "story.txt"
    source.write_text("Once upon a time", encoding="utf-8")

    document = TextDocument.from_path(source)
    document.append_text(", there was a fox.")
    saved = document.save()

    assert saved == source
    assert source.read_text(encoding="utf-8") == "Once upon a time, there was a fox."
    assert document.dirty is False
    assert not (tmp_path / "story.txt.tmp").exists()


def test_save_without_path_raises():
    with pytest.raises(ValueError):
        TextDocument(text="orphan").save()


def test_line_endings_survive_load_and_save(tmp_path: Path):
    source = tmp_path / "crlf.txt"
    source.write_bytes(b"First line\r\nSecond line\r\n")

    document = TextDocument.from_path(source)
    assert document.text == "First line\r\nSecond line\r\n"

    document.append_text("Third line\r\n")
    document.save()

    assert source.read_bytes() == b"First line\r\nSecond line\r\nThird line\r\n"
