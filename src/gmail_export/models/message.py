"""Run-time value types for a single export pass."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from gmail_export.models.types import ExportSummary, MessageDisposition


@dataclass(frozen=True)
class MessageSummary:
    """Normalized header projection of one Gmail message."""

    id: str
    from_: str
    date_raw: str
    date: datetime
    to: str | None = None
    subject: str | None = None
    message_id: str | None = None
    delivered_to: str | None = None
    reply_to: str | None = None
    content_type: str | None = None
    cc: str | None = None
    bcc: str | None = None
    label_ids: frozenset[str] = frozenset()


@dataclass(frozen=True)
class PartNode:
    """Read-only view of one node in a Gmail message payload tree."""

    mime_type: str
    data: str | None = None
    attachment_id: str | None = None
    filename: str | None = None
    parts: tuple[PartNode, ...] = ()

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> PartNode:
        """Build a part tree from a Gmail `MessagePart` resource.

        Args:
            payload: Message part dict as returned by the Gmail API.

        Returns:
            PartNode with all nested parts converted.
        """
        body = payload.get("body") or {}
        return cls(
            mime_type=str(payload.get("mimeType") or ""),
            data=body.get("data") or None,
            attachment_id=body.get("attachmentId") or None,
            filename=payload.get("filename") or None,
            parts=tuple(cls.from_api(child) for child in payload.get("parts") or []),
        )

    @property
    def is_composite(self) -> bool:
        """Return True when the node has child parts."""
        return bool(self.parts)


@dataclass(frozen=True)
class ExtractionResult:
    """Body and attachments collected from a part tree."""

    body: str | None = None
    mime_type: str | None = None
    attachments: tuple[Path, ...] = ()


@dataclass(frozen=True)
class MessageOutcome:
    """Disposition of a single message, with an optional reason and path."""

    message_id: str
    disposition: MessageDisposition
    reason: str | None = None
    path: Path | None = None


@dataclass
class RunCounters:
    """Per-run tallies derived from message outcomes."""

    processed: int = 0
    skipped: int = 0
    filtered: int = 0
    errors: int = 0

    def record(self, outcome: MessageOutcome) -> None:
        """Add one outcome to the tallies."""
        if outcome.disposition == MessageDisposition.processed:
            self.processed += 1
        elif outcome.disposition == MessageDisposition.skipped:
            self.skipped += 1
        elif outcome.disposition == MessageDisposition.filtered:
            self.filtered += 1
        else:
            self.errors += 1

    def record_all(self, outcomes: Iterable[MessageOutcome]) -> None:
        """Add a batch of outcomes."""
        for outcome in outcomes:
            self.record(outcome)

    def to_summary(self, *, dry_run: bool) -> ExportSummary:
        """Freeze the current tallies into an ExportSummary."""
        return ExportSummary(
            processed=self.processed,
            skipped=self.skipped,
            filtered=self.filtered,
            errors=self.errors,
            dry_run=dry_run,
        )
