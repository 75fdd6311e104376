"""Include/exclude filtering of listed messages."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from gmail_export.config.settings import FilterSettings
from gmail_export.models.message import MessageSummary
from gmail_export.models.types import MessageFilter

REASON_NO_INCLUDE_MATCH = "No include patterns matched"
REASON_SENDER = "Skipped sender pattern"
REASON_SUBJECT = "Skipped subject pattern"
REASON_RECIPIENT = "Skipped recipient pattern"
REASON_LABEL = "Skipped label"


@dataclass(frozen=True)
class FilterDecision:
    """Whether to skip a message, and why."""

    skip: bool
    reason: str | None = None


KEEP = FilterDecision(skip=False)


@dataclass(frozen=True)
class _CompiledFilter:
    """Case-insensitive patterns compiled from a MessageFilter."""

    labels: frozenset[str]
    from_: tuple[re.Pattern[str], ...]
    to: tuple[re.Pattern[str], ...]
    subject: tuple[re.Pattern[str], ...]

    @classmethod
    def compile(cls, rules: MessageFilter) -> _CompiledFilter:
        return cls(
            labels=frozenset(rules.labels),
            from_=_compile_all(rules.from_),
            to=_compile_all(rules.to),
            subject=_compile_all(rules.subject),
        )

    @property
    def is_active(self) -> bool:
        return bool(self.labels or self.from_ or self.to or self.subject)


def _compile_all(patterns: Sequence[str]) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


def _any_match(patterns: Sequence[re.Pattern[str]], value: str | None) -> bool:
    """Return True if any pattern matches; an absent value never matches."""
    if value is None:
        return False
    return any(p.search(value) for p in patterns)


class MessageFilterEngine:
    """Decides keep/skip for a message from include and exclude rules.

    An active include filter (any non-empty list) is decisive: a message that
    matches it is kept even if exclude rules would drop it, and a message that
    misses it is skipped without consulting exclude rules.
    """

    def __init__(self, *, include: MessageFilter, exclude: MessageFilter) -> None:
        """Compile both rule sets.

        Args:
            include: Rules of which one must match when any are set.
            exclude: Rules checked only when no include rules are set.
        """
        self._include = _CompiledFilter.compile(include)
        self._exclude = _CompiledFilter.compile(exclude)

    @classmethod
    def from_settings(cls, settings: FilterSettings) -> MessageFilterEngine:
        """Create an engine from filter settings."""
        return cls(include=settings.include, exclude=settings.exclude)

    def decide(self, message: MessageSummary) -> FilterDecision:
        """Return the keep/skip decision for one message.

        Args:
            message: Header projection of the message, including its label IDs.

        Returns:
            FilterDecision; `reason` is set when `skip` is True.
        """
        if self._include.is_active:
            if self._matches_include(message):
                return KEEP
            return FilterDecision(skip=True, reason=REASON_NO_INCLUDE_MATCH)
        return self._check_exclude(message)

    def _matches_include(self, message: MessageSummary) -> bool:
        rules = self._include
        return (
            _any_match(rules.from_, message.from_)
            or _any_match(rules.subject, message.subject)
            or _any_match(rules.to, message.to)
            or bool(rules.labels & message.label_ids)
        )

    def _check_exclude(self, message: MessageSummary) -> FilterDecision:
        rules = self._exclude
        if _any_match(rules.from_, message.from_):
            return FilterDecision(skip=True, reason=REASON_SENDER)
        if _any_match(rules.subject, message.subject):
            return FilterDecision(skip=True, reason=REASON_SUBJECT)
        if _any_match(rules.to, message.to):
            return FilterDecision(skip=True, reason=REASON_RECIPIENT)
        if rules.labels & message.label_ids:
            return FilterDecision(skip=True, reason=REASON_LABEL)
        return KEEP
