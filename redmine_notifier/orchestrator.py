"""Polling engine wiring planner, fan-out, change detection, state and notifiers."""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Lock
from typing import Sequence

import structlog

from .config import NotifierSettings
from .engine import FanOutExecutor, Issue, PollState, TrackerClient, detect_changes, plan_queries
from .infra import StateStore
from .logging_conf import configure_logging
from .notify import BaseNotifier


@dataclass(slots=True)
class CycleReport:
    started_at: datetime
    duration_ms: int = 0
    queries: int = 0
    failed_queries: int = 0
    issues_fetched: int = 0
    notified: int = 0
    state_changed: bool = False
    state_saved: bool = False
    skipped: bool = False
    error: str | None = None


class Orchestrator:
    """Own the poll state and run one non-reentrant cycle per trigger."""

    def __init__(
        self,
        settings: NotifierSettings,
        client: TrackerClient,
        fan_out: FanOutExecutor,
        state_store: StateStore,
        notifiers: Sequence[BaseNotifier],
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.settings = settings
        self.client = client
        self.fan_out = fan_out
        self.state_store = state_store
        self.notifiers = tuple(notifiers)
        self.logger = logger or configure_logging().bind(component="orchestrator")
        self._cycle_lock = Lock()
        self._state: PollState | None = None
        # Last state known to be on disk; None forces the next change to be written.
        self._persisted: PollState | None = None

    @property
    def state(self) -> PollState | None:
        return self._state

    # ------------------------------------------------------------------
    def run_cycle(self) -> CycleReport:
        report = CycleReport(started_at=datetime.now(timezone.utc))
        if not self._cycle_lock.acquire(blocking=False):
            self.logger.warning("cycle_skipped_in_flight")
            report.skipped = True
            return report
        start_t = time.monotonic()
        try:
            self._run_cycle(report)
        finally:
            report.duration_ms = int((time.monotonic() - start_t) * 1000)
            self._cycle_lock.release()
        self.logger.info(
            "cycle_finished",
            duration_ms=report.duration_ms,
            queries=report.queries,
            failed_queries=report.failed_queries,
            issues_fetched=report.issues_fetched,
            notified=report.notified,
            state_changed=report.state_changed,
            state_saved=report.state_saved,
        )
        return report

    def _run_cycle(self, report: CycleReport) -> None:
        state = self._ensure_state()
        if state is None:
            report.error = "state_load_failed"
            return

        descriptors = plan_queries(self.settings.tracking, state.watermark)
        report.queries = len(descriptors)
        if not descriptors:
            self.logger.debug("cycle_no_queries")
            self._persist(state, report)
            return

        self.logger.debug(
            "cycle_started",
            queries=[d.filter_field for d in descriptors],
            watermark=state.watermark.isoformat() if state.watermark else None,
            boundary=sorted(state.boundary),
        )
        fan_out = self.fan_out.run(descriptors, lambda d: self.client.fetch(d).text)
        report.failed_queries = len(fan_out.failures)

        changes = detect_changes(fan_out.payloads, state)
        report.issues_fetched = changes.merged_count
        report.state_changed = changes.state != state
        self._state = changes.state
        self._persist(changes.state, report)

        notify = changes.notify
        if state.watermark is None and not self.settings.notify_on_first_run and notify:
            self.logger.info("first_run_notifications_suppressed", count=len(notify))
            notify = ()
        report.notified = len(notify)
        self._dispatch(notify)

    def _ensure_state(self) -> PollState | None:
        if self._state is not None:
            return self._state
        try:
            loaded = self.state_store.load()
        except Exception:  # noqa: BLE001
            self.logger.exception("state_load_failed")
            return None
        self._state = loaded
        self._persisted = loaded
        self.logger.info(
            "state_loaded",
            watermark=loaded.watermark.isoformat() if loaded.watermark else None,
            boundary=sorted(loaded.boundary),
        )
        return loaded

    def _persist(self, state: PollState, report: CycleReport) -> None:
        if state == self._persisted:
            return
        try:
            self.state_store.save(state)
        except Exception:  # noqa: BLE001
            self.logger.exception(
                "state_save_failed",
                watermark=state.watermark.isoformat() if state.watermark else None,
            )
            return
        self._persisted = state
        report.state_saved = True

    def _dispatch(self, issues: Sequence[Issue]) -> None:
        for notifier in self.notifiers:
            try:
                notifier.notify(issues)
            except Exception as exc:  # noqa: BLE001
                self.logger.error(
                    "notify_failed",
                    notifier=type(notifier).__name__,
                    error=str(exc),
                )

    def close(self) -> None:
        self.client.close()
        self.fan_out.shutdown()
        for notifier in self.notifiers:
            notifier.close()


__all__ = ["CycleReport", "Orchestrator"]
