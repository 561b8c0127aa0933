from __future__ import annotations

import threading
from datetime import datetime, timezone
from types import SimpleNamespace

import structlog

from redmine_notifier.engine import FanOutExecutor, PollState, QueryDescriptor
from redmine_notifier.engine.planner import ASSIGNED_TO_FIELD, AUTHOR_FIELD, WATCHER_FIELD
from redmine_notifier.notify import BaseNotifier
from redmine_notifier.orchestrator import Orchestrator

T = datetime(2024, 1, 10, 10, 0, 0, tzinfo=timezone.utc)
LATER = datetime(2024, 1, 10, 10, 5, 0, tzinfo=timezone.utc)


class StubClient:
    def __init__(self, responses: dict[str, object]) -> None:
        self.responses = responses
        self.requests: list[QueryDescriptor] = []
        self.closed = False

    def fetch(self, descriptor: QueryDescriptor) -> SimpleNamespace:
        self.requests.append(descriptor)
        outcome = self.responses.get(descriptor.filter_field, '{"issues": []}')
        if isinstance(outcome, Exception):
            raise outcome
        return SimpleNamespace(text=outcome)

    def close(self) -> None:
        self.closed = True


class MemoryStore:
    def __init__(self, state: PollState | None = None) -> None:
        self.state = state or PollState()
        self.saves: list[PollState] = []
        self.fail_saves = 0
        self.fail_loads = 0

    def load(self) -> PollState:
        if self.fail_loads:
            self.fail_loads -= 1
            raise OSError("disk unavailable")
        return self.state

    def save(self, state: PollState) -> None:
        if self.fail_saves:
            self.fail_saves -= 1
            raise OSError("disk full")
        self.saves.append(state)
        self.state = state


class RecordingNotifier(BaseNotifier):
    def __init__(self) -> None:
        super().__init__("https://redmine.example.com")
        self.batches: list[list[int]] = []

    def notify(self, issues) -> None:  # noqa: ANN001
        self.batches.append([issue.id for issue in issues])


class ExplodingNotifier(BaseNotifier):
    def __init__(self) -> None:
        super().__init__("https://redmine.example.com")

    def notify(self, issues) -> None:  # noqa: ANN001
        raise RuntimeError("toast service down")


def make_orchestrator(settings, client, store, notifiers=None) -> Orchestrator:
    logger = structlog.get_logger("test")
    return Orchestrator(
        settings=settings,
        client=client,
        fan_out=FanOutExecutor(3, logger=logger),
        state_store=store,
        notifiers=notifiers if notifiers is not None else [RecordingNotifier()],
        logger=logger,
    )


def test_cycle_notifies_and_persists(sample_settings, issues_payload) -> None:
    client = StubClient(
        {
            ASSIGNED_TO_FIELD: issues_payload((1, "2024-01-10T10:00:00Z")),
            WATCHER_FIELD: issues_payload((1, "2024-01-10T10:00:00Z"), (2, "2024-01-10T09:00:00Z")),
        }
    )
    store = MemoryStore()
    orchestrator = make_orchestrator(sample_settings(), client, store)

    report = orchestrator.run_cycle()

    assert report.queries == 3
    assert report.failed_queries == 0
    assert report.issues_fetched == 2
    assert report.notified == 2
    assert report.state_saved
    assert orchestrator.notifiers[0].batches == [[2, 1]]
    assert store.saves == [PollState(watermark=T, boundary=frozenset({1}))]
    assert all(d.lower_bound is None for d in client.requests)

    # With the lower bound applied the server only returns the boundary issue.
    client.responses = {ASSIGNED_TO_FIELD: issues_payload((1, "2024-01-10T10:00:00Z"))}
    client.requests.clear()
    second = orchestrator.run_cycle()
    assert {d.lower_bound for d in client.requests} == {T}
    assert second.notified == 0
    assert not second.state_saved
    assert len(store.saves) == 1


def test_partial_failure_still_advances(sample_settings, issues_payload) -> None:
    client = StubClient(
        {
            ASSIGNED_TO_FIELD: ConnectionError("refused"),
            AUTHOR_FIELD: issues_payload((4, "2024-01-10T10:05:00Z")),
            WATCHER_FIELD: TimeoutError("slow"),
        }
    )
    store = MemoryStore(PollState(watermark=T, boundary=frozenset({1})))
    orchestrator = make_orchestrator(sample_settings(), client, store)

    report = orchestrator.run_cycle()

    assert report.failed_queries == 2
    assert report.notified == 1
    assert orchestrator.notifiers[0].batches == [[4]]
    assert store.saves == [PollState(watermark=LATER, boundary=frozenset({4}))]


def test_empty_cycle_never_saves(sample_settings) -> None:
    store = MemoryStore(PollState(watermark=T, boundary=frozenset({1})))
    orchestrator = make_orchestrator(sample_settings(), StubClient({}), store)

    report = orchestrator.run_cycle()

    assert report.notified == 0
    assert not report.state_changed
    assert store.saves == []
    assert orchestrator.state == store.state
    assert orchestrator.notifiers[0].batches == [[]]


def test_all_queries_failing_keeps_state(sample_settings) -> None:
    error = ConnectionError("offline")
    client = StubClient({ASSIGNED_TO_FIELD: error, AUTHOR_FIELD: error, WATCHER_FIELD: error})
    store = MemoryStore(PollState(watermark=T, boundary=frozenset({1})))
    orchestrator = make_orchestrator(sample_settings(), client, store)

    report = orchestrator.run_cycle()

    assert report.failed_queries == 3
    assert report.error is None
    assert store.saves == []


def test_failed_save_is_retried_next_cycle(sample_settings, issues_payload) -> None:
    client = StubClient({AUTHOR_FIELD: issues_payload((4, "2024-01-10T10:05:00Z"))})
    store = MemoryStore()
    store.fail_saves = 1
    orchestrator = make_orchestrator(sample_settings(), client, store)

    first = orchestrator.run_cycle()
    assert first.state_changed
    assert not first.state_saved
    assert orchestrator.state == PollState(watermark=LATER, boundary=frozenset({4}))

    second = orchestrator.run_cycle()
    assert second.notified == 0
    assert second.state_saved
    assert store.saves == [PollState(watermark=LATER, boundary=frozenset({4}))]


def test_failed_load_aborts_cycle_and_retries(sample_settings, issues_payload) -> None:
    client = StubClient({AUTHOR_FIELD: issues_payload((4, "2024-01-10T10:05:00Z"))})
    store = MemoryStore()
    store.fail_loads = 1
    orchestrator = make_orchestrator(sample_settings(), client, store)

    first = orchestrator.run_cycle()
    assert first.error == "state_load_failed"
    assert client.requests == []

    second = orchestrator.run_cycle()
    assert second.error is None
    assert second.notified == 1


def test_cycle_is_not_reentrant(sample_settings) -> None:
    orchestrator = make_orchestrator(sample_settings(), StubClient({}), MemoryStore())
    orchestrator._cycle_lock.acquire()
    try:
        report = orchestrator.run_cycle()
    finally:
        orchestrator._cycle_lock.release()
    assert report.skipped
    assert orchestrator.client.requests == []


def test_overlapping_trigger_is_skipped(sample_settings) -> None:
    entered = threading.Event()
    release = threading.Event()

    class BlockingClient(StubClient):
        def fetch(self, descriptor):  # noqa: ANN001
            entered.set()
            release.wait(timeout=5)
            return super().fetch(descriptor)

    tracking = {"assigned_to_me": True, "authored_by_me": False, "watched_by_me": False}
    orchestrator = make_orchestrator(
        sample_settings(tracking=tracking), BlockingClient({}), MemoryStore()
    )
    worker = threading.Thread(target=orchestrator.run_cycle)
    worker.start()
    assert entered.wait(timeout=5)
    overlapping = orchestrator.run_cycle()
    release.set()
    worker.join(timeout=5)
    assert overlapping.skipped
    assert len(orchestrator.client.requests) == 1


def test_no_tracking_modes_means_no_queries(sample_settings) -> None:
    tracking = {"assigned_to_me": False, "authored_by_me": False, "watched_by_me": False}
    client = StubClient({})
    store = MemoryStore()
    orchestrator = make_orchestrator(sample_settings(tracking=tracking), client, store)

    report = orchestrator.run_cycle()

    assert report.queries == 0
    assert client.requests == []
    assert store.saves == []
    assert orchestrator.notifiers[0].batches == []


def test_first_run_notifications_can_be_suppressed(sample_settings, issues_payload) -> None:
    client = StubClient({ASSIGNED_TO_FIELD: issues_payload((1, "2024-01-10T10:00:00Z"))})
    store = MemoryStore()
    orchestrator = make_orchestrator(sample_settings(notify_on_first_run=False), client, store)

    first = orchestrator.run_cycle()
    assert first.notified == 0
    assert first.state_saved
    assert orchestrator.notifiers[0].batches == [[]]

    client.responses[ASSIGNED_TO_FIELD] = issues_payload((2, "2024-01-10T10:05:00Z"))
    second = orchestrator.run_cycle()
    assert second.notified == 1
    assert orchestrator.notifiers[0].batches[-1] == [2]


def test_notifier_errors_do_not_break_the_cycle(sample_settings, issues_payload) -> None:
    client = StubClient({ASSIGNED_TO_FIELD: issues_payload((1, "2024-01-10T10:00:00Z"))})
    recorder = RecordingNotifier()
    store = MemoryStore()
    orchestrator = make_orchestrator(
        sample_settings(), client, store, notifiers=[ExplodingNotifier(), recorder]
    )

    report = orchestrator.run_cycle()

    assert report.notified == 1
    assert recorder.batches == [[1]]
    assert store.saves


def test_close_releases_resources(sample_settings) -> None:
    client = StubClient({})
    orchestrator = make_orchestrator(sample_settings(), client, MemoryStore())
    orchestrator.run_cycle()
    orchestrator.close()
    assert client.closed
    assert orchestrator.fan_out._executor is None


def test_unparseable_body_only_drops_its_own_query(sample_settings, issues_payload) -> None:
    client = StubClient(
        {
            ASSIGNED_TO_FIELD: '{"issues": [{"id": 1e400, "updated_on": "2024-01-10T10:00:00Z"}]}',
            AUTHOR_FIELD: issues_payload((4, "2024-01-10T10:05:00Z")),
            WATCHER_FIELD: '{"issues": [{"id": 5, "updated_on": "0001-01-01T00:00:00+01:00"}]}',
        }
    )
    store = MemoryStore(PollState(watermark=T, boundary=frozenset({1})))
    orchestrator = make_orchestrator(sample_settings(), client, store)

    report = orchestrator.run_cycle()

    assert report.error is None
    assert report.failed_queries == 0
    assert report.issues_fetched == 1
    assert report.notified == 1
    assert report.state_saved
    assert orchestrator.notifiers[0].batches == [[4]]
    assert store.saves == [PollState(watermark=LATER, boundary=frozenset({4}))]
