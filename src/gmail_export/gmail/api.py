"""Async accessor for the Gmail API endpoints used by the exporter."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from typing import Any

import httplib2
from google.auth.exceptions import GoogleAuthError
from googleapiclient.errors import HttpError

logger = logging.getLogger(__name__)

METADATA_HEADERS: list[str] = [
    "From",
    "To",
    "Subject",
    "Date",
    "Message-ID",
    "Delivered-To",
    "Reply-To",
    "Content-Type",
    "Cc",
    "Bcc",
]

PageCallback = Callable[[list[dict[str, Any]]], Awaitable[None] | None]


class GmailApiError(RuntimeError):
    """Raised when a Gmail API call fails."""


class GmailApi:
    """Runs blocking Gmail API requests in worker threads.

    Each request is executed on a fresh transport from `http_factory` when one
    is given, since the default httplib2 transport is shared by the service
    object and is not safe to use from several threads at once.
    """

    def __init__(
        self,
        *,
        service: Any,
        user_id: str = "me",
        http_factory: Callable[[], Any] | None = None,
    ) -> None:
        """Initialize the accessor.

        Args:
            service: Gmail API service object.
            user_id: Gmail user identifier (email or "me").
            http_factory: Optional factory returning an authorized transport per call.
        """
        self._service = service
        self._user_id = user_id
        self._http_factory = http_factory

    @property
    def user_id(self) -> str:
        """Return the Gmail user the accessor acts for."""
        return self._user_id

    def _execute(self, request: Any, *, endpoint: str) -> Any:
        """Execute a prepared request, wrapping HTTP failures.

        Args:
            request: googleapiclient HttpRequest.
            endpoint: Endpoint name used in error messages.

        Returns:
            Decoded JSON response.

        Raises:
            GmailApiError: If executing the request fails.
        """
        try:
            if self._http_factory is not None:
                return request.execute(http=self._http_factory())
            return request.execute()
        except HttpError as exc:
            raise GmailApiError(f"Gmail {endpoint} failed: {exc}") from exc
        except (GoogleAuthError, httplib2.HttpLib2Error) as exc:
            raise GmailApiError(f"Gmail {endpoint} failed: {type(exc).__name__}: {exc}") from exc

    async def _call(self, request: Any, *, endpoint: str) -> Any:
        """Run `_execute` in a worker thread."""
        return await asyncio.to_thread(self._execute, request, endpoint=endpoint)

    async def list_labels(self) -> list[dict[str, Any]]:
        """Return all labels of the mailbox."""
        logger.debug("Fetching labels for user_id=%s", self._user_id)
        request = self._service.users().labels().list(userId=self._user_id)
        resp = await self._call(request, endpoint="labels.list")
        labels = resp.get("labels", []) if isinstance(resp, dict) else []
        return [label for label in labels if isinstance(label, dict)]

    async def iter_message_pages(
        self,
        *,
        query: str,
        page_size: int,
    ) -> AsyncIterator[list[dict[str, Any]]]:
        """Yield one list of message stubs per listing page.

        The next page is only requested when the consumer asks for it, and the
        sequence ends once Gmail stops returning a `nextPageToken`.

        Args:
            query: Gmail search query.
            page_size: `maxResults` per page.

        Yields:
            Message stubs (`id`, `threadId`) in provider order; possibly empty.
        """
        page_token: str | None = None
        while True:
            if page_token:
                logger.info("Fetching next page of messages (page_token=%s)", page_token)
            request = (
                self._service.users()
                .messages()
                .list(
                    userId=self._user_id,
                    q=query,
                    maxResults=page_size,
                    pageToken=page_token,
                )
            )
            resp = await self._call(request, endpoint="messages.list")
            resp = resp if isinstance(resp, dict) else {}
            messages = [m for m in resp.get("messages") or [] if isinstance(m, dict)]
            logger.info("Found %d messages for query %r", len(messages), query)

            yield messages

            page_token = resp.get("nextPageToken") or None
            if not page_token:
                return

    async def list_messages(
        self,
        *,
        query: str,
        page_size: int,
        on_page: PageCallback,
    ) -> None:
        """Invoke `on_page` once per listing page, awaiting it when it is async.

        Args:
            query: Gmail search query.
            page_size: `maxResults` per page.
            on_page: Callback receiving each page's message stubs.
        """
        async for page in self.iter_message_pages(query=query, page_size=page_size):
            result = on_page(page)
            if result is not None:
                await result

    async def get_message(
        self,
        *,
        message_id: str,
        fmt: str,
        metadata_headers: Sequence[str] | None = None,
    ) -> dict[str, Any] | None:
        """Fetch a single message.

        Args:
            message_id: Gmail message ID.
            fmt: One of "metadata", "raw", "full" or "minimal".
            metadata_headers: Header names to return in "metadata" format.

        Returns:
            Message resource, or None when Gmail returns nothing.
        """
        kwargs: dict[str, Any] = {"userId": self._user_id, "id": message_id, "format": fmt}
        if metadata_headers:
            kwargs["metadataHeaders"] = list(metadata_headers)
        request = self._service.users().messages().get(**kwargs)
        resp = await self._call(request, endpoint="messages.get")
        return resp if isinstance(resp, dict) and resp else None

    async def get_attachment(
        self,
        *,
        message_id: str,
        attachment_id: str,
    ) -> dict[str, Any] | None:
        """Fetch an attachment body.

        Args:
            message_id: Gmail message ID.
            attachment_id: Attachment ID from the message part body.

        Returns:
            `MessagePartBody` resource with base64url `data`, or None.
        """
        request = (
            self._service.users()
            .messages()
            .attachments()
            .get(userId=self._user_id, messageId=message_id, id=attachment_id)
        )
        resp = await self._call(request, endpoint="attachments.get")
        return resp if isinstance(resp, dict) and resp else None
