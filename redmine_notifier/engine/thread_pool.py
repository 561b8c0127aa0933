"""Concurrent dispatch of a cycle's queries with a full join barrier."""

from __future__ import annotations

from concurrent.futures import ALL_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from threading import Lock
from typing import Callable, Sequence

import structlog

from .planner import QueryDescriptor


@dataclass(slots=True)
class QueryFailure:
    descriptor: QueryDescriptor
    error: str


@dataclass(slots=True)
class FanOutResult:
    """Successful payloads in descriptor order plus the failed queries."""

    payloads: list[str] = field(default_factory=list)
    failures: list[QueryFailure] = field(default_factory=list)


class FanOutExecutor:
    """Run every query concurrently and return once all of them have finished.

    A failing query is recorded and otherwise ignored; it never cancels the
    remaining queries or breaks the barrier.
    """

    def __init__(self, max_workers: int = 3, logger: structlog.BoundLogger | None = None) -> None:
        self.max_workers = max_workers
        self.logger = logger or structlog.get_logger("redmine_notifier.fan_out")
        self._executor: ThreadPoolExecutor | None = None
        self._lock = Lock()

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.max_workers, thread_name_prefix="poller"
                )
            return self._executor

    def run(
        self,
        descriptors: Sequence[QueryDescriptor],
        fetch: Callable[[QueryDescriptor], str],
    ) -> FanOutResult:
        result = FanOutResult()
        if not descriptors:
            return result

        executor = self._get_executor()
        futures: list[Future[str]] = [executor.submit(fetch, descriptor) for descriptor in descriptors]
        wait(futures, return_when=ALL_COMPLETED)

        for descriptor, future in zip(descriptors, futures):
            exc = future.exception()
            if exc is not None:
                self.logger.warning(
                    "query_failed",
                    filter_field=descriptor.filter_field,
                    error=f"{type(exc).__name__}: {exc}",
                )
                result.failures.append(QueryFailure(descriptor, f"{type(exc).__name__}: {exc}"))
                continue
            result.payloads.append(future.result())
        return result

    def shutdown(self) -> None:
        with self._lock:
            if self._executor is not None:
                self._executor.shutdown(wait=True)
                self._executor = None


__all__ = ["FanOutExecutor", "FanOutResult", "QueryFailure"]
