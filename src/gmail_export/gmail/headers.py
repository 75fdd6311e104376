"""Header extraction, date parsing, and header folding for Gmail messages."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Any

from gmail_export.models.message import MessageSummary

MAX_HEADER_LINE = 78
_FOLD_INDENT = " "


class MessageSummaryError(ValueError):
    """Raised when Gmail metadata lacks the headers an export needs."""


def find_header(headers: Iterable[Mapping[str, Any]], name: str) -> str | None:
    """Return the first non-empty value of header `name`, matched case-insensitively.

    Args:
        headers: Gmail `MessagePartHeader` dicts.
        name: Header name.

    Returns:
        Header value or None.
    """
    wanted = name.lower()
    for header in headers:
        if str(header.get("name", "")).lower() == wanted:
            value = header.get("value")
            return str(value) if value else None
    return None


def parse_header_date(value: str) -> datetime:
    """Parse an RFC 2822 `Date` header into an aware datetime.

    Args:
        value: Raw header value.

    Returns:
        Timezone-aware datetime; naive values are assumed to be UTC.

    Raises:
        MessageSummaryError: If the value cannot be parsed.
    """
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError) as exc:
        raise MessageSummaryError(f"Unparseable Date header: {value!r}") from exc
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)


def summarize_message(message: Mapping[str, Any]) -> MessageSummary:
    """Project a Gmail message resource onto the headers the exporter uses.

    Args:
        message: Message resource in "metadata" or "full" format.

    Returns:
        MessageSummary for the message.

    Raises:
        MessageSummaryError: If headers, `Date` or `From` are missing.
    """
    payload = message.get("payload") or {}
    headers = payload.get("headers")
    if not headers:
        raise MessageSummaryError("Message is missing headers")

    date_raw = find_header(headers, "Date")
    if not date_raw:
        raise MessageSummaryError("Message is missing Date header")
    from_ = find_header(headers, "From")
    if not from_:
        raise MessageSummaryError("Message is missing From header")

    return MessageSummary(
        id=str(message.get("id") or ""),
        from_=from_,
        date_raw=date_raw,
        date=parse_header_date(date_raw),
        to=find_header(headers, "To"),
        subject=find_header(headers, "Subject"),
        message_id=find_header(headers, "Message-ID"),
        delivered_to=find_header(headers, "Delivered-To"),
        reply_to=find_header(headers, "Reply-To"),
        content_type=find_header(headers, "Content-Type"),
        cc=find_header(headers, "Cc"),
        bcc=find_header(headers, "Bcc"),
        label_ids=frozenset(str(x) for x in message.get("labelIds") or []),
    )


def fold_header(name: str, value: str) -> str:
    """Render `Name: Value`, soft-wrapping it at 78 columns.

    The first line takes as much of the value as fits after `Name: `; each
    continuation is CRLF, one space, and up to 77 further characters.

    Args:
        name: Header name.
        value: Unfolded header value.

    Returns:
        Folded header text without a trailing line break.
    """
    line = f"{name}: {value}"
    if len(line) <= MAX_HEADER_LINE:
        return line

    first_len = max(0, MAX_HEADER_LINE - len(name) - 2)
    chunk_len = MAX_HEADER_LINE - len(_FOLD_INDENT)

    folded = [f"{name}: {value[:first_len]}"]
    remaining = value[first_len:]
    while remaining:
        folded.append(_FOLD_INDENT + remaining[:chunk_len])
        remaining = remaining[chunk_len:]
    return "\r\n".join(folded)
