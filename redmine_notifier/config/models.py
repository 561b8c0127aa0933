"""Pydantic models describing the notifier settings file."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

DEFAULT_INTERVAL_SECONDS = 60


class NotifierKind(str, Enum):
    """Built-in notification channels."""

    LOG = "log"
    CONSOLE = "console"


class TrackingConfig(BaseModel):
    """Which of the user's issue relations are polled."""

    assigned_to_me: bool = True
    authored_by_me: bool = True
    watched_by_me: bool = True

    def any_enabled(self) -> bool:
        return self.assigned_to_me or self.authored_by_me or self.watched_by_me


class NotifierSettings(BaseModel):
    """Top-level settings: tracker connection, polling cadence, state location."""

    server: str = "http://localhost:3000"
    api_key: str = ""
    interval: int = Field(
        default=DEFAULT_INTERVAL_SECONDS,
        description="Polling interval in seconds; values below 1 fall back to 60.",
    )
    tracking: TrackingConfig = Field(default_factory=TrackingConfig)
    page_size: int = Field(default=100, ge=1, le=100)
    request_timeout: float = Field(default=30.0, gt=0)
    thread_pool_workers: int = Field(default=3, ge=1)
    state_path: Path = Field(default=Path("state.db"))
    notify_on_first_run: bool = True
    notifiers: list[NotifierKind] = Field(default_factory=lambda: [NotifierKind.LOG])

    @field_validator("server", mode="before")
    @classmethod
    def _normalise_server(cls, value: Any) -> str:
        text = str(value or "").strip().rstrip("/")
        if not text.startswith(("http://", "https://")):
            raise ValueError("server must be an http(s) URL")
        return text

    @field_validator("interval", mode="before")
    @classmethod
    def _coerce_interval(cls, value: Any) -> int:
        if value in (None, "") or isinstance(value, bool):
            return DEFAULT_INTERVAL_SECONDS
        try:
            seconds = int(value)
        except (TypeError, ValueError):
            return DEFAULT_INTERVAL_SECONDS
        if seconds < 1:
            return DEFAULT_INTERVAL_SECONDS
        return seconds

    @field_validator("state_path", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path:
        return Path(value)

    def resolved_state_path(self, base_dir: Path) -> Path:
        """Return the state database path relative to the data directory."""

        if not self.state_path.is_absolute():
            return (base_dir / self.state_path).resolve()
        return self.state_path


__all__ = [
    "DEFAULT_INTERVAL_SECONDS",
    "NotifierKind",
    "NotifierSettings",
    "TrackingConfig",
]
