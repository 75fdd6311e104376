"""Validated domain models (Pydantic) and run-time value types."""

from __future__ import annotations

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
    FilenameOption,
    MessageDisposition,
    MessageFilter,
    OutputStructure,
)

__all__ = [
    "DateRange",
    "ExportFormat",
    "ExportSummary",
    "ExtractionResult",
    "FilenameOption",
    "MessageDisposition",
    "MessageFilter",
    "MessageOutcome",
    "MessageSummary",
    "OutputStructure",
    "PartNode",
    "RunCounters",
]
