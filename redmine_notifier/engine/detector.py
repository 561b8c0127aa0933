"""Merge and change detection over the issues returned by one polling cycle.

The queries filter with an *inclusive* lower bound (``updated_on >= watermark``)
because Redmine timestamps only have second resolution: an exclusive bound
would lose issues updated later within the same second as the watermark. The
price is that every issue sitting exactly on the watermark is returned again
on the next cycle. ``PollState.boundary`` remembers which of those were
already reported so they can be told apart from issues that only arrived at
that second after the previous poll.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Sequence

import structlog

from .parser import Issue, parse_issues

logger = structlog.get_logger("redmine_notifier.detector")


@dataclass(frozen=True, slots=True)
class PollState:
    """State carried between cycles."""

    watermark: datetime | None = None
    boundary: frozenset[int] = field(default_factory=frozenset)


@dataclass(frozen=True, slots=True)
class ChangeSet:
    notify: tuple[Issue, ...]
    state: PollState
    merged_count: int


def merge_issues(batches: Iterable[Iterable[Issue]]) -> dict[int, Issue]:
    """Collapse issues from all queries by id; the copy seen last wins."""

    merged: dict[int, Issue] = {}
    for batch in batches:
        for issue in batch:
            merged[issue.id] = issue
    return merged


def is_new(issue: Issue, state: PollState) -> bool:
    if state.watermark is None:
        return True
    return issue.id not in state.boundary or issue.updated_at > state.watermark


def advance_state(state: PollState, issues: Iterable[Issue]) -> PollState:
    issues = list(issues)
    watermark = state.watermark
    for issue in issues:
        if watermark is None or issue.updated_at > watermark:
            watermark = issue.updated_at

    at_watermark = {issue.id for issue in issues if issue.updated_at == watermark}
    if watermark == state.watermark:
        return PollState(watermark=watermark, boundary=state.boundary | at_watermark)
    return PollState(watermark=watermark, boundary=frozenset(at_watermark))


def _parse_each(
    payloads: Sequence[str], parse: Callable[[str], list[Issue]]
) -> Iterable[list[Issue]]:
    for index, payload in enumerate(payloads):
        try:
            yield parse(payload)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "payload_parse_failed",
                payload_index=index,
                error=f"{type(exc).__name__}: {exc}",
            )
            yield []


def detect_changes(
    payloads: Sequence[str],
    state: PollState,
    parse: Callable[[str], list[Issue]] = parse_issues,
) -> ChangeSet:
    """Parse, merge and classify one cycle's payloads against ``state``."""

    merged = merge_issues(_parse_each(payloads, parse))
    notify = sorted(
        (issue for issue in merged.values() if is_new(issue, state)),
        key=lambda issue: (issue.updated_at, issue.id),
    )
    return ChangeSet(
        notify=tuple(notify),
        state=advance_state(state, merged.values()),
        merged_count=len(merged),
    )


__all__ = ["ChangeSet", "PollState", "advance_state", "detect_changes", "is_new", "merge_issues"]
