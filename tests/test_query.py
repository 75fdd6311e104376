"""Tests for Gmail search query construction."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from gmail_export.gmail.query import build_query
from gmail_export.models.types import DateRange


def _range(start: datetime, end: datetime) -> DateRange:
    return DateRange(start=start, end=end)


def test_query_for_january_without_labels() -> None:
    """The upper bound should be the day after the inclusive end date."""
    date_range = _range(datetime(2024, 1, 1, tzinfo=UTC), datetime(2024, 1, 31, tzinfo=UTC))
    assert build_query(date_range) == "after:2024/01/01 before:2024/02/01"


def test_query_single_day_range() -> None:
    """A one-day range should still span exactly one day."""
    day = datetime(2024, 3, 5, tzinfo=UTC)
    assert build_query(_range(day, day)) == "after:2024/03/05 before:2024/03/06"


def test_query_crosses_year_boundary() -> None:
    """Adding a day to Dec 31 should roll over into the next year."""
    date_range = _range(datetime(2023, 12, 1, tzinfo=UTC), datetime(2023, 12, 31, tzinfo=UTC))
    assert build_query(date_range).endswith("before:2024/01/01")


def test_query_with_include_and_exclude_labels() -> None:
    """Include labels are OR-ed and exclude labels are negated and AND-ed."""
    date_range = _range(datetime(2024, 1, 1, tzinfo=UTC), datetime(2024, 1, 31, tzinfo=UTC))
    query = build_query(date_range, include_labels=["INBOX"], exclude_labels=["SPAM"])
    assert query == "after:2024/01/01 before:2024/02/01 label:INBOX -label:SPAM"


def test_query_with_multiple_labels() -> None:
    """Multiple labels should be joined with their connectives."""
    date_range = _range(datetime(2024, 1, 1, tzinfo=UTC), datetime(2024, 1, 2, tzinfo=UTC))
    query = build_query(
        date_range,
        include_labels=["INBOX", "Work"],
        exclude_labels=["SPAM", "TRASH"],
    )
    assert query.endswith("label:INBOX OR label:Work -label:SPAM AND -label:TRASH")


def test_date_range_rejects_end_before_start() -> None:
    """DateRange should reject inverted ranges."""
    with pytest.raises(ValueError):
        _range(datetime(2024, 2, 1, tzinfo=UTC), datetime(2024, 1, 1, tzinfo=UTC))
