"""Async orchestration of a Gmail date-range export."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from gmail_export.config.settings import ExportSettings, FilterSettings, check_filename_options
from gmail_export.gmail.api import METADATA_HEADERS, GmailApi
from gmail_export.gmail.attachments import AttachmentSaver, decode_base64url
from gmail_export.gmail.headers import fold_header, summarize_message
from gmail_export.gmail.parts import decode_text, walk_message_parts
from gmail_export.gmail.query import build_query
from gmail_export.models.message import (
    ExtractionResult,
    MessageOutcome,
    MessageSummary,
    PartNode,
    RunCounters,
)
from gmail_export.models.types import (
    DateRange,
    ExportFormat,
    ExportSummary,
    MessageDisposition,
)
from gmail_export.pipeline.filters import MessageFilterEngine
from gmail_export.pipeline.paths import DEFAULT_SUBJECT, message_path
from gmail_export.storage.local import Storage

logger = logging.getLogger(__name__)


def _header_value(value: object) -> str:
    return "" if value is None else str(value)


def synthetic_headers(message_id: str, resource: Mapping[str, Any]) -> list[str]:
    """Build the folded `GmExport-*` headers describing a Gmail message.

    Args:
        message_id: Gmail message ID.
        resource: Message resource carrying Gmail metadata.

    Returns:
        Folded header lines, in a fixed order.
    """
    label_ids = resource.get("labelIds") or []
    return [
        fold_header("GmExport-Id", message_id),
        fold_header("GmExport-LabelIds", ",".join(str(x) for x in label_ids)),
        fold_header("GmExport-ThreadId", _header_value(resource.get("threadId"))),
        fold_header("GmExport-Snippet", _header_value(resource.get("snippet"))),
        fold_header("GmExport-SizeEstimate", _header_value(resource.get("sizeEstimate"))),
        fold_header("GmExport-HistoryId", _header_value(resource.get("historyId"))),
        fold_header("GmExport-InternalDate", _header_value(resource.get("internalDate"))),
    ]


def compose_raw_artifact(message_id: str, resource: Mapping[str, Any]) -> bytes:
    """Prepend the synthetic headers to the decoded RFC 2822 message.

    Args:
        message_id: Gmail message ID.
        resource: Message resource in "raw" format.

    Returns:
        Bytes to write to the `.eml` file.

    Raises:
        ValueError: If the resource carries no raw content.
    """
    raw = resource.get("raw")
    if not raw:
        raise ValueError(f"Message {message_id} has no raw content")
    header_block = "\n".join(synthetic_headers(message_id, resource))
    return header_block.encode("utf-8") + b"\n" + decode_base64url(str(raw))


def compose_structured_artifact(
    *,
    summary: MessageSummary,
    resource: Mapping[str, Any],
    extraction: ExtractionResult,
    label_names: Mapping[str, str],
) -> str:
    """Render a message from its parsed parts: headers, blank line, chosen body.

    Args:
        summary: Header projection of the message.
        resource: Message resource in "full" format.
        extraction: Selected body and saved attachment paths.
        label_names: Label ID to display name mapping.

    Returns:
        Text to write to the export file.
    """
    lines = synthetic_headers(summary.id, resource)
    lines.append(fold_header("From", summary.from_))
    for name, value in (("To", summary.to), ("Cc", summary.cc), ("Bcc", summary.bcc)):
        if value:
            lines.append(fold_header(name, value))
    lines.append(fold_header("Subject", summary.subject or DEFAULT_SUBJECT))
    lines.append(fold_header("Date", summary.date_raw))

    names = [label_names.get(label_id, label_id) for label_id in resource.get("labelIds") or []]
    lines.append(fold_header("GmExport-Labels", ", ".join(names)))
    lines.append(fold_header("Content-Type", extraction.mime_type or "text/plain"))
    for path in extraction.attachments:
        lines.append(fold_header("GmExport-Attachment", str(path)))

    return "\n".join(lines) + "\n\n" + (extraction.body or "")


class ExportOrchestrator:
    """Lists, filters, and writes the messages of a date range.

    Pages are processed strictly one after another; the messages of a page
    are processed concurrently and all of them settle before the next page is
    requested. A failure inside one message becomes an `error` outcome and
    never affects its siblings; a failure of the listing itself aborts the run.
    """

    def __init__(
        self,
        *,
        api: GmailApi,
        storage: Storage,
        export: ExportSettings,
        filters: FilterSettings,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            api: Gmail API accessor.
            storage: Storage for existence checks and writes.
            export: Output settings.
            filters: Include/exclude rules.
        """
        self._api = api
        self._storage = storage
        self._export = export
        self._filters = filters
        self._filter_engine = MessageFilterEngine.from_settings(filters)
        self._tz = export.tz
        self._attachments = AttachmentSaver(
            api=api,
            storage=storage,
            base_dir=export.output_dir,
            tz=self._tz,
            dry_run=export.dry_run,
        )
        self._label_names: dict[str, str] = {}

    async def run(self, date_range: DateRange) -> ExportSummary:
        """Export every message in `date_range` and return the run summary.

        Args:
            date_range: Inclusive range of days to export.

        Returns:
            ExportSummary with per-disposition counts.

        Raises:
            ExportConfigError: If the filename options conflict with the output structure.
            GmailApiError: If listing messages fails; counts of pages already
                processed are logged before the error propagates.
        """
        settings = self._export
        check_filename_options(
            output_structure=settings.output_structure,
            filename_options=settings.filename_options,
        )

        counters = RunCounters()
        query = build_query(
            date_range,
            include_labels=self._filters.include.labels,
            exclude_labels=self._filters.exclude.labels,
        )

        if settings.format == ExportFormat.structured:
            self._label_names = await self._load_label_names()

        try:
            async for page in self._api.iter_message_pages(
                query=query,
                page_size=settings.page_size,
            ):
                logger.info("Processing %d messages", len(page))
                counters.record_all(await self.process_page(page))
        except Exception:
            logger.error("Error fetching emails; partial results follow")
            self._log_summary(counters.to_summary(dry_run=settings.dry_run))
            raise

        summary = counters.to_summary(dry_run=settings.dry_run)
        self._log_summary(summary)
        if settings.dry_run:
            logger.info("This was a dry run. No files were actually saved.")
        return summary

    async def process_page(self, page: list[dict[str, Any]]) -> list[MessageOutcome]:
        """Process all messages of one listing page concurrently.

        Args:
            page: Message stubs returned by the listing endpoint.

        Returns:
            One outcome per stub, in page order.
        """
        tasks = [self.process_message(str(stub.get("id") or "")) for stub in page]
        if not tasks:
            return []
        return list(await asyncio.gather(*tasks))

    async def process_message(self, message_id: str) -> MessageOutcome:
        """Export one message, turning any failure into an `error` outcome.

        Args:
            message_id: Gmail message ID.

        Returns:
            The message's outcome.
        """
        try:
            return await self._export_message(message_id)
        except Exception as exc:
            logger.error("Error processing message %s: %s", message_id, exc, exc_info=True)
            return MessageOutcome(
                message_id=message_id,
                disposition=MessageDisposition.error,
                reason=str(exc) or type(exc).__name__,
            )

    async def _export_message(self, message_id: str) -> MessageOutcome:
        """Run the per-message state machine; may raise."""
        settings = self._export

        metadata = await self._api.get_message(
            message_id=message_id,
            fmt="metadata",
            metadata_headers=METADATA_HEADERS,
        )
        if not metadata:
            logger.error("Skipping message with no metadata: %s", message_id)
            return MessageOutcome(
                message_id=message_id,
                disposition=MessageDisposition.error,
                reason="Message has no metadata",
            )

        summary = summarize_message({**metadata, "id": metadata.get("id") or message_id})
        decision = self._filter_engine.decide(summary)
        if decision.skip:
            logger.debug("Filtered email %s: %s", message_id, decision.reason)
            return MessageOutcome(
                message_id=message_id,
                disposition=MessageDisposition.filtered,
                reason=decision.reason,
            )

        target = message_path(
            base_dir=settings.output_dir,
            message_id=message_id,
            when=summary.date.astimezone(self._tz),
            subject=summary.subject,
            output_structure=settings.output_structure,
            filename_options=settings.filename_options,
        )
        if self._storage.exists(target):
            logger.debug("Skipping existing file: %s", target)
            return MessageOutcome(
                message_id=message_id,
                disposition=MessageDisposition.skipped,
                reason="File already exists",
                path=target,
            )

        if settings.format == ExportFormat.structured:
            artifact = await self._build_structured(message_id, summary)
        else:
            artifact = await self._build_raw(message_id)
        if artifact is None:
            return MessageOutcome(
                message_id=message_id,
                disposition=MessageDisposition.error,
                reason="Message has no content",
            )

        if settings.dry_run:
            logger.info("[dry run] Would export email: %s", target)
        else:
            self._write(target, artifact)
            logger.info("Exported email: %s", target)
        return MessageOutcome(
            message_id=message_id,
            disposition=MessageDisposition.processed,
            path=target,
        )

    async def _build_raw(self, message_id: str) -> bytes | None:
        resource = await self._api.get_message(message_id=message_id, fmt="raw")
        if not resource or not resource.get("raw"):
            logger.error("Skipping raw export for message with no data: %s", message_id)
            return None
        return compose_raw_artifact(message_id, resource)

    async def _build_structured(self, message_id: str, summary: MessageSummary) -> str | None:
        resource = await self._api.get_message(message_id=message_id, fmt="full")
        if not resource or not resource.get("payload"):
            logger.error("Skipping structured export for message with no data: %s", message_id)
            return None

        root = PartNode.from_api(resource["payload"])
        subject = summary.subject or DEFAULT_SUBJECT
        if root.data and not root.is_composite:
            extraction = ExtractionResult(
                body=decode_text(root.data),
                mime_type=root.mime_type or "text/plain",
            )
        else:
            extraction = await walk_message_parts(
                root,
                saver=self._attachments,
                message_id=message_id,
                when=summary.date,
                subject=subject,
            )
        return compose_structured_artifact(
            summary=summary,
            resource=resource,
            extraction=extraction,
            label_names=self._label_names,
        )

    async def _load_label_names(self) -> dict[str, str]:
        labels = await self._api.list_labels()
        names = {
            str(label["id"]): str(label["name"])
            for label in labels
            if "id" in label and "name" in label
        }
        logger.info("Retrieved %d labels from Gmail", len(names))
        return names

    def _write(self, target: Path, artifact: bytes | str) -> None:
        self._storage.create_directory(target.parent)
        self._storage.write_file(target, artifact)

    @staticmethod
    def _log_summary(summary: ExportSummary) -> None:
        for line in summary.lines():
            logger.info(line)
