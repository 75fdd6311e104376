"""Tests for header extraction and folding."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from conftest import make_metadata
from gmail_export.gmail.headers import (
    MessageSummaryError,
    find_header,
    fold_header,
    parse_header_date,
    summarize_message,
)


def test_fold_header_keeps_short_lines() -> None:
    """Headers that fit in 78 columns are returned unchanged."""
    assert fold_header("GmExport-Id", "abc123") == "GmExport-Id: abc123"


def test_fold_header_wraps_long_values() -> None:
    """Long values are split into CRLF continuation lines of at most 78 columns."""
    value = "x" * 300
    folded = fold_header("GmExport-Snippet", value)
    lines = folded.split("\r\n")

    assert len(lines) > 1
    assert len(lines[0]) == 78
    assert lines[0].startswith("GmExport-Snippet: ")
    for line in lines[1:]:
        assert line.startswith(" ")
        assert len(line) <= 78
    assert "".join([lines[0][len("GmExport-Snippet: ") :], *(ln[1:] for ln in lines[1:])]) == value


def test_fold_header_exact_boundary() -> None:
    """A header of exactly 78 columns is not folded."""
    value = "y" * (78 - len("Name: "))
    assert fold_header("Name", value) == f"Name: {value}"
    assert "\r\n" in fold_header("Name", value + "z")


def test_find_header_is_case_insensitive() -> None:
    """Header lookup should ignore case and return the first match."""
    headers = [{"name": "Message-Id", "value": "<a@b>"}, {"name": "MESSAGE-ID", "value": "<c@d>"}]
    assert find_header(headers, "Message-ID") == "<a@b>"
    assert find_header(headers, "Subject") is None


def test_parse_header_date_assumes_utc_for_naive() -> None:
    """Dates without a zone are treated as UTC."""
    parsed = parse_header_date("Tue, 02 Jan 2024 12:34:56 -0000")
    assert parsed == datetime(2024, 1, 2, 12, 34, 56, tzinfo=UTC)


def test_parse_header_date_rejects_garbage() -> None:
    """Unparseable dates raise MessageSummaryError."""
    with pytest.raises(MessageSummaryError):
        parse_header_date("not a date")


def test_summarize_message_projects_headers() -> None:
    """summarize_message should expose headers and label IDs."""
    summary = summarize_message(make_metadata("m1", label_ids=["INBOX", "Work"]))
    assert summary.id == "m1"
    assert summary.from_ == "Alice <alice@example.com>"
    assert summary.to == "bob@example.com"
    assert summary.subject == "Hello"
    assert summary.date == datetime(2024, 1, 2, 12, 34, 56, tzinfo=UTC)
    assert summary.label_ids == frozenset({"INBOX", "Work"})


@pytest.mark.parametrize(
    ("kwargs", "message"),
    [
        ({"date": None}, "Date"),
        ({"from_": None}, "From"),
    ],
)
def test_summarize_message_requires_date_and_from(kwargs: dict[str, None], message: str) -> None:
    """Missing Date or From headers are errors."""
    with pytest.raises(MessageSummaryError, match=message):
        summarize_message(make_metadata("m1", **kwargs))


def test_summarize_message_requires_headers() -> None:
    """A payload without headers is an error."""
    with pytest.raises(MessageSummaryError, match="headers"):
        summarize_message({"id": "m1", "payload": {}})
