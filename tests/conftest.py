"""Shared fakes for exercising the export pipeline without Gmail."""

from __future__ import annotations

import base64
from collections.abc import AsyncIterator, Sequence
from pathlib import Path
from typing import Any

import pytest

from gmail_export.storage.local import LocalStorage


def b64url(data: bytes | str) -> str:
    """Encode like Gmail does: base64url without padding."""
    raw = data.encode("utf-8") if isinstance(data, str) else data
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def make_metadata(
    message_id: str,
    *,
    from_: str | None = "Alice <alice@example.com>",
    to: str | None = "bob@example.com",
    subject: str | None = "Hello",
    date: str | None = "Tue, 02 Jan 2024 12:34:56 +0000",
    label_ids: Sequence[str] = ("INBOX",),
) -> dict[str, Any]:
    """Build a Gmail "metadata" format message resource."""
    headers = []
    for name, value in (("From", from_), ("To", to), ("Subject", subject), ("Date", date)):
        if value is not None:
            headers.append({"name": name, "value": value})
    return {
        "id": message_id,
        "threadId": f"t-{message_id}",
        "labelIds": list(label_ids),
        "payload": {"headers": headers},
    }


def make_raw(message_id: str, body: bytes = b"Subject: Hello\r\n\r\nBody") -> dict[str, Any]:
    """Build a Gmail "raw" format message resource."""
    return {
        "id": message_id,
        "threadId": f"t-{message_id}",
        "labelIds": ["INBOX", "UNREAD"],
        "snippet": "Body",
        "sizeEstimate": len(body),
        "historyId": "4242",
        "internalDate": "1704198896000",
        "raw": b64url(body),
    }


class FakeGmailApi:
    """In-memory stand-in for GmailApi."""

    def __init__(
        self,
        *,
        pages: list[list[str]] | None = None,
        metadata: dict[str, dict[str, Any] | None] | None = None,
        raw: dict[str, dict[str, Any] | None] | None = None,
        full: dict[str, dict[str, Any] | None] | None = None,
        attachments: dict[str, dict[str, Any] | None] | None = None,
        labels: list[dict[str, Any]] | None = None,
        fail_on_page: int | None = None,
    ) -> None:
        self.pages = pages or []
        self.metadata = metadata or {}
        self.raw = raw or {}
        self.full = full or {}
        self.attachments = attachments or {}
        self.labels = labels or []
        self.fail_on_page = fail_on_page
        self.queries: list[str] = []
        self.pages_requested = 0
        self.get_calls: list[tuple[str, str]] = []
        self.attachment_calls: list[tuple[str, str]] = []

    @property
    def user_id(self) -> str:
        return "me"

    async def list_labels(self) -> list[dict[str, Any]]:
        return list(self.labels)

    async def iter_message_pages(
        self,
        *,
        query: str,
        page_size: int,
    ) -> AsyncIterator[list[dict[str, Any]]]:
        self.queries.append(query)
        for index, ids in enumerate(self.pages):
            self.pages_requested += 1
            if self.fail_on_page == index:
                raise RuntimeError("listing failed")
            yield [{"id": message_id, "threadId": f"t-{message_id}"} for message_id in ids]

    async def get_message(
        self,
        *,
        message_id: str,
        fmt: str,
        metadata_headers: Sequence[str] | None = None,
    ) -> dict[str, Any] | None:
        self.get_calls.append((message_id, fmt))
        source = {"metadata": self.metadata, "raw": self.raw, "full": self.full}[fmt]
        value = source.get(message_id)
        if isinstance(value, Exception):
            raise value
        return value

    async def get_attachment(
        self,
        *,
        message_id: str,
        attachment_id: str,
    ) -> dict[str, Any] | None:
        self.attachment_calls.append((message_id, attachment_id))
        return self.attachments.get(attachment_id)


class RecordingStorage(LocalStorage):
    """LocalStorage that remembers every write."""

    def __init__(self) -> None:
        self.writes: list[Path] = []
        self.created: list[Path] = []

    def create_directory(self, path: Path) -> None:
        self.created.append(path)
        super().create_directory(path)

    def write_file(self, path: Path, data: bytes | str, *, encoding: str = "utf-8") -> None:
        self.writes.append(path)
        super().write_file(path, data, encoding=encoding)


@pytest.fixture
def storage() -> RecordingStorage:
    """Recording storage backed by the real filesystem."""
    return RecordingStorage()
