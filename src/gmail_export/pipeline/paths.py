"""Destination paths for exported messages and attachments."""

from __future__ import annotations

import re
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

from gmail_export.config.settings import check_filename_options
from gmail_export.models.types import FilenameOption, OutputStructure

MESSAGE_SUFFIX = ".eml"
SUBJECT_MAX_LENGTH = 50
DEFAULT_SUBJECT = "No Subject"

_SUBJECT_UNSAFE_RE = re.compile(r"[^a-zA-Z0-9\s-]")
_WHITESPACE_RE = re.compile(r"\s+")
_FILENAME_UNSAFE_RE = re.compile(r'[<>:"/\\|?*]')


def sanitize_filename(value: str) -> str:
    """Replace characters that are invalid in filenames with `-`."""
    return _FILENAME_UNSAFE_RE.sub("-", value)


def slugify_subject(subject: str) -> str:
    """Lowercase a subject, drop punctuation, hyphenate spaces, and cap its length.

    Args:
        subject: Raw subject line.

    Returns:
        Filesystem-safe subject slug of at most 50 characters.
    """
    cleaned = _SUBJECT_UNSAFE_RE.sub("", subject)
    cleaned = _WHITESPACE_RE.sub("-", cleaned)
    return cleaned.lower()[:SUBJECT_MAX_LENGTH]


def _filename_date(when: datetime, output_structure: OutputStructure) -> str:
    """Return the part of the date not already captured by the directory."""
    if output_structure == OutputStructure.year:
        return when.strftime("%m-%d")
    if output_structure == OutputStructure.month:
        return when.strftime("%d")
    if output_structure == OutputStructure.none:
        return when.strftime("%Y-%m-%d")
    raise ValueError(f'Cannot use date in filename when output structure is "{output_structure}"')


def format_filename(
    *,
    message_id: str,
    when: datetime,
    subject: str,
    filename_options: Sequence[FilenameOption],
    output_structure: OutputStructure,
) -> str:
    """Compose `[date-][time-]<id>[-subject].eml`.

    Args:
        message_id: Gmail message ID.
        when: Message date, already converted to the export timezone.
        subject: Message subject.
        filename_options: Requested optional components.
        output_structure: Directory nesting mode.

    Returns:
        Filename for the exported message.
    """
    parts: list[str] = []
    if FilenameOption.date in filename_options:
        parts.append(_filename_date(when, output_structure))
    if FilenameOption.time in filename_options:
        parts.append(when.strftime("%H%M"))
    parts.append(message_id)
    if FilenameOption.subject in filename_options:
        parts.append(slugify_subject(subject))
    return "-".join(parts) + MESSAGE_SUFFIX


def message_directory(base_dir: Path, when: datetime, output_structure: OutputStructure) -> Path:
    """Return `<base>[/<YYYY>[/<MM>[/<DD>]]]` for the given nesting mode."""
    if output_structure == OutputStructure.none:
        return base_dir
    directory = base_dir / when.strftime("%Y")
    if output_structure == OutputStructure.year:
        return directory
    directory = directory / when.strftime("%m")
    if output_structure == OutputStructure.month:
        return directory
    return directory / when.strftime("%d")


def message_path(
    *,
    base_dir: Path,
    message_id: str,
    when: datetime,
    subject: str | None,
    output_structure: OutputStructure,
    filename_options: Sequence[FilenameOption],
) -> Path:
    """Compute the destination file for an exported message.

    Args:
        base_dir: Export root directory.
        message_id: Gmail message ID.
        when: Message date, already converted to the export timezone.
        subject: Message subject, if any.
        output_structure: Directory nesting mode.
        filename_options: Requested optional filename components.

    Returns:
        Destination path.

    Raises:
        ExportConfigError: If `date` is requested together with the `day` structure.
    """
    check_filename_options(
        output_structure=output_structure,
        filename_options=list(filename_options),
    )
    filename = format_filename(
        message_id=message_id,
        when=when,
        subject=subject or DEFAULT_SUBJECT,
        filename_options=filename_options,
        output_structure=output_structure,
    )
    return message_directory(base_dir, when, output_structure) / filename


def attachment_path(
    *,
    base_dir: Path,
    when: datetime,
    subject: str,
    attachment_name: str,
) -> Path:
    """Compute `<base>/<YYYY>/<M>/attachments/<D>-<HHmm>-<subject>-<name><ext>`.

    Args:
        base_dir: Export root directory.
        when: Message date, already converted to the export timezone.
        subject: Message subject.
        attachment_name: Attachment filename as supplied by the message.

    Returns:
        Destination path for the attachment.
    """
    name = Path(attachment_name).name
    stem, ext = _split_ext(name)
    filename = (
        f"{when.day}-{when.strftime('%H%M')}-"
        f"{sanitize_filename(subject)}-{sanitize_filename(stem)}{ext}"
    )
    return base_dir / when.strftime("%Y") / str(when.month) / "attachments" / filename


def _split_ext(name: str) -> tuple[str, str]:
    """Split a filename into stem and extension; dotfiles have no extension."""
    dot = name.rfind(".")
    if dot <= 0:
        return name, ""
    return name[:dot], name[dot:]
