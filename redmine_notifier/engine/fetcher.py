"""HTTP access to the Redmine issues listing."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

import httpx
import structlog

from ..config import NotifierSettings
from .parser import format_timestamp
from .planner import QueryDescriptor


@dataclass(slots=True)
class FetchResponse:
    """Standardised response wrapper."""

    url: str
    status_code: int
    text: str
    headers: Dict[str, str]
    raw: httpx.Response | None = field(repr=False, default=None)


class TrackerClient:
    """Issue one ``issues.json`` request per query descriptor."""

    def __init__(
        self,
        settings: NotifierSettings,
        client: httpx.Client | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.settings = settings
        self.logger = logger or structlog.get_logger("redmine_notifier.fetcher")
        self._client = client or httpx.Client(
            follow_redirects=True,
            timeout=settings.request_timeout,
            headers={"Accept": "application/json"},
        )

    def close(self) -> None:
        self._client.close()

    def build_params(self, descriptor: QueryDescriptor) -> dict[str, Any]:
        params: dict[str, Any] = {
            "key": self.settings.api_key,
            "sort": "updated_on:desc",
            descriptor.filter_field: "me",
            "limit": self.settings.page_size,
        }
        if descriptor.lower_bound is not None:
            params["updated_on"] = ">=" + format_timestamp(descriptor.lower_bound)
        return params

    def fetch(self, descriptor: QueryDescriptor) -> FetchResponse:
        url = f"{self.settings.server}/issues.json"
        response = self._client.get(url, params=self.build_params(descriptor))
        response.raise_for_status()
        self.logger.debug(
            "query_fetched",
            filter_field=descriptor.filter_field,
            status=response.status_code,
            size=len(response.content),
        )
        return FetchResponse(
            url=str(response.url),
            status_code=response.status_code,
            text=response.text,
            headers=dict(response.headers),
            raw=response,
        )


__all__ = ["FetchResponse", "TrackerClient"]
