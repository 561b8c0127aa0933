"""Redmine notifier: poll Redmine issue listings and report each change once."""

from .engine import Issue, PollState

__all__ = ["Issue", "PollState"]
