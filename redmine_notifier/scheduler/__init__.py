"""Scheduling helpers."""

from .apsched_adapter import CYCLE_JOB_ID, APSchedulerAdapter

__all__ = ["APSchedulerAdapter", "CYCLE_JOB_ID"]
