"""Body and attachment extraction from Gmail message part trees."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from datetime import datetime
from pathlib import Path

from gmail_export.gmail.attachments import AttachmentSaver, decode_base64url
from gmail_export.models.message import ExtractionResult, PartNode

HTML = "text/html"
PLAIN = "text/plain"
TEXT_TYPES = frozenset({HTML, PLAIN})

AttachmentSink = Callable[[PartNode, str], Awaitable[Path]]


def attachment_filename(part: PartNode, *, now_ms: int | None = None) -> str:
    """Return the part's filename, or synthesize `attachment-<ms>[.<subtype>]`.

    Args:
        part: Attachment part.
        now_ms: Timestamp in milliseconds; defaults to the current time.

    Returns:
        Filename to save the attachment under.
    """
    if part.filename:
        return part.filename
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    subtype = part.mime_type.split("/", 1)[1] if "/" in part.mime_type else ""
    return f"attachment-{stamp}.{subtype}" if subtype else f"attachment-{stamp}"


def decode_text(data: str) -> str:
    """Decode a base64url text body as UTF-8, replacing invalid bytes."""
    return decode_base64url(data).decode("utf-8", errors="replace")


async def extract_parts(part: PartNode, *, save_attachment: AttachmentSink) -> ExtractionResult:
    """Walk a part tree depth-first, choosing a body and saving attachments.

    A text leaf with inline data is a body candidate. A part with an
    attachment reference and no inline data is handed to `save_attachment`.
    At every composite level the candidates returned by the children are
    merged, later children overriding earlier ones of the same type, and an
    HTML candidate wins over a plain-text one.

    Args:
        part: Root of the tree to walk.
        save_attachment: Called with each attachment part and its filename.

    Returns:
        Selected body and MIME type, plus every attachment path in tree order.
    """
    body: str | None = None
    mime_type: str | None = None
    attachments: list[Path] = []

    if part.mime_type in TEXT_TYPES and part.data:
        body = decode_text(part.data)
        mime_type = part.mime_type
    elif part.attachment_id and not part.data:
        attachments.append(await save_attachment(part, attachment_filename(part)))

    if part.is_composite:
        candidates: dict[str, str] = {}
        for child in part.parts:
            result = await extract_parts(child, save_attachment=save_attachment)
            if result.body is not None and result.mime_type in TEXT_TYPES:
                candidates[result.mime_type] = result.body
            attachments.extend(result.attachments)

        for preferred in (HTML, PLAIN):
            if preferred in candidates:
                body = candidates[preferred]
                mime_type = preferred
                break

    return ExtractionResult(body=body, mime_type=mime_type, attachments=tuple(attachments))


async def walk_message_parts(
    root: PartNode,
    *,
    saver: AttachmentSaver,
    message_id: str,
    when: datetime,
    subject: str,
) -> ExtractionResult:
    """Extract a message's body and save its attachments through `saver`.

    Args:
        root: Message payload.
        saver: Attachment saver bound to the export root, timezone and dry-run flag.
        message_id: Gmail message ID.
        when: Message date.
        subject: Message subject.

    Returns:
        ExtractionResult for the payload.
    """

    async def _save(part: PartNode, filename: str) -> Path:
        """Save one attachment part of this message."""
        assert part.attachment_id is not None
        return await saver.save(
            message_id=message_id,
            attachment_id=part.attachment_id,
            filename=filename,
            when=when,
            subject=subject,
        )

    return await extract_parts(root, save_attachment=_save)
