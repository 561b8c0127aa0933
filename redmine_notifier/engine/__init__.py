"""Engine components orchestrating plan → fetch → merge → detect."""

from .detector import ChangeSet, PollState, detect_changes, merge_issues
from .fetcher import FetchResponse, TrackerClient
from .parser import Issue, parse_issues
from .planner import QueryDescriptor, plan_queries
from .thread_pool import FanOutExecutor, FanOutResult, QueryFailure

__all__ = [
    "ChangeSet",
    "FanOutExecutor",
    "FanOutResult",
    "FetchResponse",
    "Issue",
    "PollState",
    "QueryDescriptor",
    "QueryFailure",
    "TrackerClient",
    "detect_changes",
    "merge_issues",
    "parse_issues",
    "plan_queries",
]
