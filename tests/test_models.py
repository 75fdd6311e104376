"""Tests for run-time message models."""

from __future__ import annotations

from dataclasses import fields

from gmail_export.models.message import MessageOutcome, PartNode, RunCounters
from gmail_export.models.types import MessageDisposition


def test_part_node_from_api_keeps_body_and_children() -> None:
    """Gmail payload dicts become a PartNode tree of body data and attachment references."""
    node = PartNode.from_api(
        {
            "mimeType": "multipart/mixed",
            "headers": [{"name": "Content-Type", "value": "multipart/mixed"}],
            "body": {"size": 0},
            "parts": [
                {"mimeType": "text/plain", "body": {"data": "aGk"}},
                {
                    "mimeType": "application/pdf",
                    "filename": "doc.pdf",
                    "body": {"attachmentId": "att-1"},
                },
            ],
        },
    )

    assert [f.name for f in fields(PartNode)] == [
        "mime_type",
        "data",
        "attachment_id",
        "filename",
        "parts",
    ]
    assert node.is_composite
    assert node.data is None
    assert node.parts[0].data == "aGk"
    assert node.parts[1].attachment_id == "att-1"
    assert node.parts[1].filename == "doc.pdf"


def test_run_counters_tally_outcomes() -> None:
    """Counters hold only the per-disposition tallies."""
    counters = RunCounters()
    counters.record_all(
        [
            MessageOutcome(message_id="a", disposition=MessageDisposition.processed),
            MessageOutcome(message_id="b", disposition=MessageDisposition.skipped),
            MessageOutcome(message_id="c", disposition=MessageDisposition.filtered),
            MessageOutcome(message_id="d", disposition=MessageDisposition.error, reason="boom"),
            MessageOutcome(message_id="e", disposition=MessageDisposition.processed),
        ],
    )

    summary = counters.to_summary(dry_run=True)
    assert [f.name for f in fields(RunCounters)] == ["processed", "skipped", "filtered", "errors"]
    assert (summary.processed, summary.skipped, summary.filtered, summary.errors) == (2, 1, 1, 1)
    assert summary.total == 5
    assert summary.dry_run is True
