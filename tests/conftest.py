"""Shared fixtures for the notifier test-suite."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Iterable

import pytest

from redmine_notifier.config import ConfigLocator, ConfigRepository, NotifierSettings


@pytest.fixture(autouse=True)
def notifier_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("REDMINE_NOTIFIER_HOME", str(tmp_path))
    monkeypatch.delenv("REDMINE_API_KEY", raising=False)
    return tmp_path


@pytest.fixture
def sample_settings() -> Callable[..., NotifierSettings]:
    def _builder(**overrides: Any) -> NotifierSettings:
        base: dict[str, Any] = {
            "server": "https://redmine.example.com",
            "api_key": "abc123",
            "interval": 60,
        }
        base.update(overrides)
        return NotifierSettings(**base)

    return _builder


@pytest.fixture
def temp_config_repository(notifier_home: Path) -> Iterable[ConfigRepository]:
    locator = ConfigLocator(project_root=notifier_home)
    repository = ConfigRepository(locator)
    yield repository


@pytest.fixture
def issues_payload() -> Callable[..., str]:
    """Build an ``issues.json`` body from ``(id, updated_on)`` pairs."""

    def _builder(*items: tuple[int, str]) -> str:
        return json.dumps(
            {
                "issues": [
                    {"id": issue_id, "subject": f"Issue {issue_id}", "updated_on": updated_on}
                    for issue_id, updated_on in items
                ],
                "total_count": len(items),
            }
        )

    return _builder
