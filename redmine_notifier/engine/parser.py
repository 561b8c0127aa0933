"""Parsing of Redmine issue listings into issue records."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import structlog

logger = structlog.get_logger("redmine_notifier.parser")

# Issue ids are stored as SQLite INTEGER.
MAX_ISSUE_ID = 2**63 - 1


@dataclass(frozen=True, slots=True)
class Issue:
    """A single tracker issue as seen by one query."""

    id: int
    subject: str
    updated_at: datetime

    def url(self, server: str) -> str:
        return f"{server.rstrip('/')}/issues/{self.id}"


def parse_timestamp(value: Any) -> datetime | None:
    """Parse Redmine's ISO-8601 timestamps into UTC datetimes at second resolution.

    Accepts ``2024-01-10T10:00:00Z``, ``2024-01-10T10:00:00+02:00`` and naive
    values, which are treated as UTC.
    """
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    try:
        return dt.astimezone(timezone.utc).replace(microsecond=0)
    except (OverflowError, ValueError):
        # Offsets that push the value outside the datetime range.
        return None


def format_timestamp(value: datetime) -> str:
    """Render a datetime the way Redmine filters expect it."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _coerce_issue(item: Any) -> Issue | None:
    if not isinstance(item, dict):
        return None
    raw_id = item.get("id")
    if isinstance(raw_id, bool):
        return None
    if isinstance(raw_id, float) and not raw_id.is_integer():
        return None
    try:
        issue_id = int(raw_id)
    except (TypeError, ValueError, OverflowError):
        return None
    if not 1 <= issue_id <= MAX_ISSUE_ID:
        return None
    updated_at = parse_timestamp(item.get("updated_on"))
    if updated_at is None:
        return None
    return Issue(id=issue_id, subject=str(item.get("subject") or ""), updated_at=updated_at)


def parse_issues(payload: str | bytes) -> list[Issue]:
    """Parse an ``issues.json`` response body; malformed input yields ``[]``."""

    try:
        data = json.loads(payload)
    except (TypeError, ValueError) as exc:
        logger.warning("payload_parse_failed", error=str(exc))
        return []
    if not isinstance(data, dict) or not isinstance(data.get("issues"), list):
        logger.warning("payload_unexpected_shape", payload_type=type(data).__name__)
        return []
    issues: list[Issue] = []
    for item in data["issues"]:
        issue = _coerce_issue(item)
        if issue is None:
            logger.debug("issue_skipped", item=item)
            continue
        issues.append(issue)
    return issues


__all__ = ["Issue", "format_timestamp", "parse_issues", "parse_timestamp"]
