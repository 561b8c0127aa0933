"""Notification channels."""

from __future__ import annotations

from ..config import NotifierKind, NotifierSettings
from .base import BaseNotifier
from .console_notifier import ConsoleNotifier
from .log_notifier import LogNotifier


def build_notifiers(settings: NotifierSettings) -> list[BaseNotifier]:
    notifiers: list[BaseNotifier] = []
    for kind in dict.fromkeys(settings.notifiers):
        if kind is NotifierKind.LOG:
            notifiers.append(LogNotifier(settings.server))
        elif kind is NotifierKind.CONSOLE:
            notifiers.append(ConsoleNotifier(settings.server))
        else:  # pragma: no cover - enum is exhaustive
            raise ValueError(f"Unsupported notifier: {kind}")
    return notifiers


__all__ = ["BaseNotifier", "ConsoleNotifier", "LogNotifier", "build_notifiers"]
