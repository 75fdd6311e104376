"""Tests for include/exclude message filtering."""

from __future__ import annotations

from datetime import UTC, datetime

from gmail_export.models.message import MessageSummary
from gmail_export.models.types import MessageFilter
from gmail_export.pipeline.filters import MessageFilterEngine


def _message(
    *,
    from_: str = "a@x.com",
    to: str | None = "b@x.com",
    subject: str | None = "Quarterly report",
    labels: frozenset[str] = frozenset({"INBOX"}),
) -> MessageSummary:
    return MessageSummary(
        id="m1",
        from_=from_,
        date_raw="Tue, 02 Jan 2024 12:34:56 +0000",
        date=datetime(2024, 1, 2, 12, 34, 56, tzinfo=UTC),
        to=to,
        subject=subject,
        label_ids=labels,
    )


def test_no_filters_keeps_everything() -> None:
    """Empty include and exclude filters should keep every message."""
    engine = MessageFilterEngine(include=MessageFilter(), exclude=MessageFilter())
    decision = engine.decide(_message())
    assert decision.skip is False
    assert decision.reason is None


def test_include_match_wins_over_exclude() -> None:
    """A message matching an include pattern is kept even if excluded."""
    engine = MessageFilterEngine(
        include=MessageFilter.model_validate({"from": ["a@x.com"]}),
        exclude=MessageFilter(to=["b@x.com"]),
    )
    assert engine.decide(_message()).skip is False


def test_include_miss_skips_without_consulting_exclude() -> None:
    """An active include filter that does not match skips the message."""
    engine = MessageFilterEngine(
        include=MessageFilter(subject=["invoice"]),
        exclude=MessageFilter(to=["b@x.com"]),
    )
    decision = engine.decide(_message())
    assert decision.skip is True
    assert decision.reason == "No include patterns matched"


def test_include_patterns_are_case_insensitive() -> None:
    """Include patterns should ignore case."""
    engine = MessageFilterEngine(
        include=MessageFilter(subject=["QUARTERLY"]),
        exclude=MessageFilter(),
    )
    assert engine.decide(_message()).skip is False


def test_include_by_label() -> None:
    """Label membership alone can satisfy an include filter."""
    engine = MessageFilterEngine(include=MessageFilter(labels=["Work"]), exclude=MessageFilter())
    assert engine.decide(_message(labels=frozenset({"Work"}))).skip is False
    assert engine.decide(_message(labels=frozenset({"INBOX"}))).skip is True


def test_exclude_reasons_follow_fixed_order() -> None:
    """Exclude rules are checked sender, subject, recipient, then label."""
    exclude = MessageFilter.model_validate(
        {
            "from": ["a@x\\.com"],
            "subject": ["report"],
            "to": ["b@x\\.com"],
            "labels": ["INBOX"],
        },
    )
    engine = MessageFilterEngine(include=MessageFilter(), exclude=exclude)
    assert engine.decide(_message()).reason == "Skipped sender pattern"
    assert engine.decide(_message(from_="c@y.com")).reason == "Skipped subject pattern"
    assert (
        engine.decide(_message(from_="c@y.com", subject="Hi")).reason
        == "Skipped recipient pattern"
    )
    assert (
        engine.decide(_message(from_="c@y.com", subject="Hi", to="d@y.com")).reason
        == "Skipped label"
    )
    assert engine.decide(
        _message(from_="c@y.com", subject="Hi", to="d@y.com", labels=frozenset()),
    ).skip is False


def test_absent_header_never_matches() -> None:
    """A missing To or Subject header should not match any pattern."""
    engine = MessageFilterEngine(
        include=MessageFilter(),
        exclude=MessageFilter(to=[".*"], subject=[".*"]),
    )
    assert engine.decide(_message(to=None, subject=None)).skip is False
