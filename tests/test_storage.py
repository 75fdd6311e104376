"""Tests for local export storage."""

from __future__ import annotations

from pathlib import Path

from gmail_export.storage.local import LocalStorage


def test_write_file_creates_parents_and_writes_atomically(tmp_path: Path) -> None:
    """write_file should create parent directories and leave no temp files."""
    storage = LocalStorage()
    target = tmp_path / "2024" / "01" / "m1.eml"

    storage.write_file(target, b"Subject: Test\r\n\r\nHello")

    assert target.read_bytes() == b"Subject: Test\r\n\r\nHello"
    assert [p.name for p in target.parent.iterdir()] == ["m1.eml"]


def test_write_file_encodes_text(tmp_path: Path) -> None:
    """Text data is encoded with the requested encoding."""
    storage = LocalStorage()
    target = tmp_path / "note.eml"
    storage.write_file(target, "héllo", encoding="utf-8")
    assert target.read_bytes() == "héllo".encode()


def test_exists_and_create_directory(tmp_path: Path) -> None:
    """create_directory is idempotent and exists reflects the filesystem."""
    storage = LocalStorage()
    directory = tmp_path / "a" / "b"
    assert storage.exists(directory) is False

    storage.create_directory(directory)
    storage.create_directory(directory)

    assert storage.exists(directory) is True
    assert storage.is_directory_writable(directory) is True
    assert storage.is_directory_writable(tmp_path / "missing") is False
