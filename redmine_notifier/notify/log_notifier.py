"""Notifier writing one structured log event per changed issue."""

from __future__ import annotations

from typing import Sequence

import structlog

from ..engine.parser import Issue
from .base import BaseNotifier


class LogNotifier(BaseNotifier):
    def __init__(self, server: str, logger: structlog.BoundLogger | None = None) -> None:
        super().__init__(server)
        self.logger = logger or structlog.get_logger("redmine_notifier.notify").bind(channel="log")

    def notify(self, issues: Sequence[Issue]) -> None:
        for issue in issues:
            self.logger.info(
                "issue_changed",
                issue_id=issue.id,
                subject=issue.subject,
                updated_at=issue.updated_at.isoformat(),
                url=issue.url(self.server),
            )


__all__ = ["LogNotifier"]
