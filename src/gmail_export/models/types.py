"""Shared enums and lightweight Pydantic models."""

from __future__ import annotations

import re
from datetime import datetime, timedelta
from enum import StrEnum

from pydantic import Field, field_validator, model_validator

from gmail_export.models.base import AppModel


class OutputStructure(StrEnum):
    """Directory nesting depth below the output directory."""

    none = "none"
    year = "year"
    month = "month"
    day = "day"


class FilenameOption(StrEnum):
    """Optional components of an exported message filename."""

    date = "date"
    time = "time"
    subject = "subject"


class ExportFormat(StrEnum):
    """Shape of the artifact written for each message."""

    eml = "eml"
    structured = "structured"


class MessageDisposition(StrEnum):
    """Terminal states of a single message in an export run."""

    processed = "processed"
    skipped = "skipped"
    filtered = "filtered"
    error = "error"


class DateRange(AppModel):
    """Inclusive date range used to build the search query."""

    start: datetime
    end: datetime

    @model_validator(mode="after")
    def _start_not_after_end(self) -> DateRange:
        """Reject ranges whose end precedes their start."""
        if self.end < self.start:
            raise ValueError(
                f"End date ({self.end.isoformat()}) must be on or after "
                f"start date ({self.start.isoformat()}).",
            )
        return self

    @property
    def exclusive_end(self) -> datetime:
        """Return the day after `end`, the exclusive bound used by Gmail search."""
        return self.end + timedelta(days=1)


class MessageFilter(AppModel):
    """Label set plus header patterns used by include/exclude filtering."""

    labels: list[str] = Field(default_factory=list)
    from_: list[str] = Field(default_factory=list, alias="from")
    to: list[str] = Field(default_factory=list)
    subject: list[str] = Field(default_factory=list)

    @field_validator("from_", "to", "subject")
    @classmethod
    def _patterns_must_compile(cls, value: list[str]) -> list[str]:
        """Ensure every pattern is a valid regular expression.

        Args:
            value: Raw pattern list.

        Returns:
            The unchanged pattern list.

        Raises:
            ValueError: If a pattern does not compile.
        """
        for pattern in value:
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ValueError(f"Invalid filter pattern {pattern!r}: {exc}") from exc
        return value


class ExportSummary(AppModel):
    """Counts reported at the end of an export run."""

    processed: int = Field(default=0, ge=0)
    skipped: int = Field(default=0, ge=0)
    filtered: int = Field(default=0, ge=0)
    errors: int = Field(default=0, ge=0)
    dry_run: bool = False

    @property
    def total(self) -> int:
        """Return the number of messages found across all dispositions."""
        return self.processed + self.skipped + self.filtered + self.errors

    def lines(self) -> list[str]:
        """Render the fixed-format summary block."""
        return [
            "Export Summary:",
            f"\tTotal messages found: {self.total}",
            f"\tSuccessfully processed: {self.processed}",
            f"\tSkipped (already exists): {self.skipped}",
            f"\tFiltered out: {self.filtered}",
            f"\tErrors: {self.errors}",
            f"\tDry run mode: {'Yes' if self.dry_run else 'No'}",
        ]
