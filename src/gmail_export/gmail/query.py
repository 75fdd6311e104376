"""Gmail search query construction."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date, datetime

from gmail_export.models.types import DateRange

logger = logging.getLogger(__name__)

QUERY_DATE_FORMAT = "%Y/%m/%d"


def format_query_date(value: date | datetime) -> str:
    """Format a date the way Gmail's `after:`/`before:` operators expect."""
    return value.strftime(QUERY_DATE_FORMAT)


def build_query(
    date_range: DateRange,
    *,
    include_labels: Sequence[str] = (),
    exclude_labels: Sequence[str] = (),
) -> str:
    """Build the Gmail search predicate for a date range and label filters.

    `before:` is exclusive in Gmail, so the inclusive end date is shifted by
    one day.

    Args:
        date_range: Inclusive range of days to export.
        include_labels: Labels of which at least one must be present.
        exclude_labels: Labels of which none may be present.

    Returns:
        Gmail search query string.
    """
    after = format_query_date(date_range.start)
    before = format_query_date(date_range.exclusive_end)

    query = f"after:{after} before:{before}"
    if include_labels:
        query += " label:" + " OR label:".join(include_labels)
    if exclude_labels:
        query += " -label:" + " AND -label:".join(exclude_labels)

    logger.info(
        "Gmail search parameters",
        extra={
            "after": after,
            "before": before,
            "include_labels": list(include_labels),
            "exclude_labels": list(exclude_labels),
            "query": query,
        },
    )
    return query
