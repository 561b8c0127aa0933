"""Configuration loading helpers for the Redmine notifier."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

import yaml

from .models import NotifierSettings

CONFIG_EXTENSIONS = (".yaml", ".yml", ".json")
SETTINGS_FILENAME = "settings.yaml"
API_KEY_ENV = "REDMINE_API_KEY"


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {path}")
    return data


def _write_file(path: Path, payload: dict) -> None:
    with path.open("w", encoding="utf-8") as stream:
        if path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(payload, stream, allow_unicode=True, sort_keys=False)
        else:
            json.dump(payload, stream, indent=2, ensure_ascii=False)


@dataclass(slots=True)
class ConfigLocator:
    """Resolve important paths from project root."""

    project_root: Path | None = None
    data_dir: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        env_root = os.environ.get("REDMINE_NOTIFIER_HOME")
        if env_root:
            root = Path(env_root).expanduser().resolve()
        else:
            root = (self.project_root or Path(__file__).resolve().parents[2]).resolve()
        self.project_root = root
        self.data_dir = (root / "data").resolve()
        self.logs_dir = (root / "logs").resolve()
        self.ensure_directories()

    def ensure_directories(self) -> None:
        for directory in (self.data_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def settings_path(self) -> Path:
        for suffix in CONFIG_EXTENSIONS:
            candidate = self.data_dir / f"settings{suffix}"
            if candidate.exists():
                return candidate
        return self.data_dir / SETTINGS_FILENAME


class ConfigRepository:
    """Repository encapsulating settings IO and schema validation."""

    def __init__(self, locator: ConfigLocator | None = None) -> None:
        self.locator = locator or ConfigLocator()
        self._cache: NotifierSettings | None = None

    def load_settings(self) -> NotifierSettings:
        if self._cache is not None:
            return self._cache
        path = self.locator.settings_path()
        if path.exists():
            payload = _read_file(path)
            settings = NotifierSettings.model_validate(payload)
        else:
            settings = NotifierSettings()
            self.save_settings(settings)
        env_key = os.environ.get(API_KEY_ENV)
        if env_key:
            settings = settings.model_copy(update={"api_key": env_key})
        self._cache = settings
        return settings

    def save_settings(self, settings: NotifierSettings) -> Path:
        path = self.locator.settings_path()
        payload = settings.model_dump(mode="json")
        _write_file(path, payload)
        self._cache = settings
        return path

    def state_path(self) -> Path:
        return self.load_settings().resolved_state_path(self.locator.data_dir)


__all__ = ["API_KEY_ENV", "CONFIG_EXTENSIONS", "ConfigLocator", "ConfigRepository"]
