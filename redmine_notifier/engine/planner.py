"""Query planning: which Redmine listings to request this cycle."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ..config import TrackingConfig

ASSIGNED_TO_FIELD = "assigned_to_id"
AUTHOR_FIELD = "author_id"
WATCHER_FIELD = "watcher_id"


@dataclass(frozen=True, slots=True)
class QueryDescriptor:
    """One filtered listing request; ``lower_bound`` is inclusive."""

    filter_field: str
    lower_bound: datetime | None = None


def plan_queries(tracking: TrackingConfig, watermark: datetime | None) -> list[QueryDescriptor]:
    fields: list[str] = []
    if tracking.assigned_to_me:
        fields.append(ASSIGNED_TO_FIELD)
    if tracking.authored_by_me:
        fields.append(AUTHOR_FIELD)
    if tracking.watched_by_me:
        fields.append(WATCHER_FIELD)
    return [QueryDescriptor(filter_field=field, lower_bound=watermark) for field in fields]


__all__ = [
    "ASSIGNED_TO_FIELD",
    "AUTHOR_FIELD",
    "QueryDescriptor",
    "WATCHER_FIELD",
    "plan_queries",
]
