"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import DEFAULT_INTERVAL_SECONDS, NotifierKind, NotifierSettings, TrackingConfig

__all__ = [
    "ConfigLocator",
    "ConfigRepository",
    "DEFAULT_INTERVAL_SECONDS",
    "NotifierKind",
    "NotifierSettings",
    "TrackingConfig",
]
