"""APScheduler wrapper driving the periodic polling cycle."""

from __future__ import annotations

from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config import DEFAULT_INTERVAL_SECONDS
from ..logging_conf import configure_logging

CYCLE_JOB_ID = "poll::cycle"


class APSchedulerAdapter:
    """Manage the single interval job that triggers polling cycles."""

    def __init__(self) -> None:
        self.scheduler = BackgroundScheduler()
        self.logger = configure_logging().bind(component="scheduler")
        self.started = False

    def start(self) -> None:
        if not self.started:
            self.scheduler.start()
            self.started = True
            self.logger.info("apscheduler_started")

    def shutdown(self) -> None:
        if self.started:
            self.scheduler.shutdown(wait=True)
            self.started = False
            self.logger.info("apscheduler_stopped")

    def schedule_cycle(self, callback: Callable[[], object], interval: int) -> None:
        trigger = self._build_trigger(interval)
        # One cycle at a time; a missed run is merged into the next instead of queued.
        self.scheduler.add_job(
            callback,
            trigger=trigger,
            id=CYCLE_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.logger.info("job_scheduled", job_id=CYCLE_JOB_ID, interval=interval)

    @staticmethod
    def _build_trigger(interval: int) -> IntervalTrigger:
        seconds = int(interval) if isinstance(interval, (int, float)) else 0
        if seconds < 1:
            seconds = DEFAULT_INTERVAL_SECONDS
        return IntervalTrigger(seconds=seconds)

    def list_jobs(self) -> list[dict]:
        jobs = []
        for job in self.scheduler.get_jobs():
            jobs.append(
                {
                    "id": job.id,
                    "next_run_time": getattr(job, "next_run_time", None),
                    "trigger": str(job.trigger),
                }
            )
        return jobs


__all__ = ["APSchedulerAdapter", "CYCLE_JOB_ID"]
