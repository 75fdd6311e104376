"""Date range resolution for CLI runs."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from gmail_export.config.settings import ExportConfigError
from gmail_export.models.types import DateRange

logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK_DAYS = 31


def _at_midnight(day: date, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def resolve_date_range(
    *,
    tz: ZoneInfo,
    start: date | None = None,
    end: date | None = None,
    current_month: bool = False,
    today: date | None = None,
) -> DateRange:
    """Turn CLI date options into an inclusive DateRange in `tz`.

    Args:
        tz: Export timezone.
        start: First day to export; defaults to 31 days before `end`.
        end: Last day to export; defaults to today.
        current_month: Export from the first of the current month to today.
        today: Override for the current date.

    Returns:
        Validated DateRange.

    Raises:
        ExportConfigError: If options conflict or the end precedes the start.
    """
    if current_month and (start or end):
        raise ExportConfigError(
            "--current-month cannot be used together with --start or --end",
        )

    today = today or datetime.now(tz=tz).date()
    if current_month:
        start_day, end_day = today.replace(day=1), today
        logger.info("Using current month date range: %s to %s", start_day, end_day)
    else:
        end_day = end or today
        start_day = start or (end_day - timedelta(days=DEFAULT_LOOKBACK_DAYS))
        if end is None:
            logger.info("No end date specified, defaulting to today.")
        if start is None:
            logger.info(
                "No start date specified, defaulting to %d days before end date.",
                DEFAULT_LOOKBACK_DAYS,
            )

    try:
        return DateRange(start=_at_midnight(start_day, tz), end=_at_midnight(end_day, tz))
    except ValidationError as exc:
        raise ExportConfigError(
            f"End date ({end_day}) must be on or after start date ({start_day}).",
        ) from exc
