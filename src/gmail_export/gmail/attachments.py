"""Download and placement of message attachments."""

from __future__ import annotations

import base64
import binascii
import logging
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from gmail_export.gmail.api import GmailApi
from gmail_export.pipeline.paths import attachment_path
from gmail_export.storage.local import Storage

logger = logging.getLogger(__name__)


class AttachmentError(RuntimeError):
    """Raised when Gmail returns no attachment or no attachment data."""


def decode_base64url(data: str) -> bytes:
    """Decode Gmail's base64url payloads, tolerating missing padding.

    Args:
        data: base64url (or standard base64) text.

    Returns:
        Decoded bytes.

    Raises:
        ValueError: If the text is not valid base64.
    """
    normalized = data.replace("+", "-").replace("/", "_")
    padded = normalized + "=" * (-len(normalized) % 4)
    try:
        return base64.urlsafe_b64decode(padded)
    except binascii.Error as exc:
        raise ValueError(f"Invalid base64 payload: {exc}") from exc


class AttachmentSaver:
    """Fetches attachment bytes and writes them under the export root."""

    def __init__(
        self,
        *,
        api: GmailApi,
        storage: Storage,
        base_dir: Path,
        tz: ZoneInfo,
        dry_run: bool,
    ) -> None:
        """Initialize the saver.

        Args:
            api: Gmail API accessor.
            storage: Storage used for directory creation and writes.
            base_dir: Export root directory.
            tz: Timezone used for date components of the path.
            dry_run: Compute paths and fetch data, but never write.
        """
        self._api = api
        self._storage = storage
        self._base_dir = base_dir
        self._tz = tz
        self._dry_run = dry_run

    async def save(
        self,
        *,
        message_id: str,
        attachment_id: str,
        filename: str,
        when: datetime,
        subject: str,
    ) -> Path:
        """Download one attachment and write it to its deterministic path.

        Args:
            message_id: Gmail message ID.
            attachment_id: Gmail attachment ID.
            filename: Attachment filename.
            when: Message date.
            subject: Message subject.

        Returns:
            Destination path (also returned in dry-run mode).

        Raises:
            AttachmentError: If Gmail returns no attachment or no data.
        """
        attachment = await self._api.get_attachment(
            message_id=message_id,
            attachment_id=attachment_id,
        )
        if not attachment:
            raise AttachmentError("Attachment is null")
        if not attachment.get("data"):
            raise AttachmentError("Attachment data is null")

        data = decode_base64url(str(attachment["data"]))
        target = attachment_path(
            base_dir=self._base_dir,
            when=when.astimezone(self._tz),
            subject=subject,
            attachment_name=filename,
        )

        if self._dry_run:
            logger.info("[dry run] Would save attachment: %s", target)
            return target

        self._storage.create_directory(target.parent)
        self._storage.write_file(target, data)
        logger.info("Saved attachment: %s (%d bytes)", target, len(data))
        return target
