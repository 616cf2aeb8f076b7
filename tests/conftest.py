from __future__ import annotations

from typing import Any, Callable

import pytest
import requests

from basednews.config import AppConfig
from basednews.storage import Storage


class DummyResponse:
    def __init__(self, payload: Any, status_code: int = 200) -> None:
        self._payload = payload
        self.status_code = status_code

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    """Routes requests by URL prefix to canned payloads, responses or exceptions."""

    def __init__(self, routes: dict[str, Any]) -> None:
        self.routes = routes
        self.calls: list[dict[str, Any]] = []

    def _respond(self, method: str, url: str, **kwargs: Any) -> DummyResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        for prefix, result in self.routes.items():
            if url.startswith(prefix):
                if isinstance(result, Exception):
                    raise result
                if isinstance(result, DummyResponse):
                    return result
                return DummyResponse(result)
        raise requests.ConnectionError(f"no route for {url}")

    def get(self, url: str, **kwargs: Any) -> DummyResponse:
        return self._respond("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> DummyResponse:
        return self._respond("POST", url, **kwargs)

    def close(self) -> None:
        pass


@pytest.fixture
def storage() -> Storage:
    store = Storage.from_url("sqlite://")
    yield store
    store.dispose()


@pytest.fixture
def config() -> AppConfig:
    return AppConfig(database_url="sqlite://", scheduler_enabled=False)


@pytest.fixture
def fake_session() -> Callable[[dict[str, Any]], FakeSession]:
    return FakeSession


@pytest.fixture
def dummy_response() -> type[DummyResponse]:
    return DummyResponse
