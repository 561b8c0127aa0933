"""Infra layer utilities (state storage)."""

from .storage import SQLiteManager, SQLiteStateStore, StateStore

__all__ = ["SQLiteManager", "SQLiteStateStore", "StateStore"]
