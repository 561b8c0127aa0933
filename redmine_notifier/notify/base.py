"""Notifier Service Provider Interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from ..engine.parser import Issue


class BaseNotifier(ABC):
    """Uniform notifier contract; receives each cycle's newly changed issues."""

    def __init__(self, server: str) -> None:
        self.server = server

    @abstractmethod
    def notify(self, issues: Sequence[Issue]) -> None:
        """Present the issues; called once per cycle, possibly with none."""

    def close(self) -> None:
        """Release underlying resources."""


__all__ = ["BaseNotifier"]
