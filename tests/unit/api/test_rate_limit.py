"""Tests for the per-client API rate limiter."""

from __future__ import annotations

from fastapi.testclient import TestClient

from sardocs.api.app import RateLimiter, create_app
from sardocs.api.reports import get_record_store
from sardocs.settings import Settings
from sardocs.store import RecordPage


class _Clock:
    def __init__(self, now: float) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class _EmptyStore:
    def search(self, text=None, page=1, size=None) -> RecordPage:
        return RecordPage(reports=[], total=0, page=page, size=size or 10)

    def health(self) -> dict:
        return {"status": "green", "number_of_nodes": 1}


def test_rate_limiter_rolls_window():
    clock = _Clock(1000.0)
    limiter = RateLimiter(limit=2, window_seconds=60, clock=clock)

    assert limiter.allow("10.0.0.1")
    assert limiter.allow("10.0.0.1")
    assert not limiter.allow("10.0.0.1")
    assert limiter.allow("10.0.0.2")

    clock.now += 61
    assert limiter.allow("10.0.0.1")


def test_rate_limiter_evicts_idle_clients():
    clock = _Clock(1000.0)
    limiter = RateLimiter(limit=2, window_seconds=60, clock=clock)
    limiter.allow("10.0.0.1")
    limiter.allow("10.0.0.2")

    clock.now += 61
    limiter.allow("10.0.0.3")

    assert set(limiter.requests) == {"10.0.0.3"}


def test_zero_limit_disables_limiter():
    assert not RateLimiter(limit=0, window_seconds=60).enabled


def test_api_requests_are_limited_but_health_is_not():
    settings = Settings(
        api={"rate_limit_requests": 2, "rate_limit_window_seconds": 900, "trust_forwarded_for": True}
    )
    app = create_app(settings)
    app.dependency_overrides[get_record_store] = lambda: _EmptyStore()
    client = TestClient(app)
    headers = {"X-Forwarded-For": "203.0.113.7"}

    assert client.get("/api/sar-reports", headers=headers).status_code == 200
    assert client.get("/api/sar-reports", headers=headers).status_code == 200
    limited = client.get("/api/sar-reports", headers=headers)
    assert limited.status_code == 429
    assert limited.json()["error"] == "Too many requests"
    assert limited.headers["retry-after"] == "900"

    for _ in range(5):
        assert client.get("/api/health", headers=headers).status_code == 200
    assert client.get("/api/sar-reports", headers={"X-Forwarded-For": "198.51.100.1"}).status_code == 200


def test_forwarded_for_is_ignored_unless_trusted():
    settings = Settings(api={"rate_limit_requests": 2, "rate_limit_window_seconds": 900})
    app = create_app(settings)
    app.dependency_overrides[get_record_store] = lambda: _EmptyStore()
    client = TestClient(app)

    assert client.get("/api/sar-reports", headers={"X-Forwarded-For": "203.0.113.1"}).status_code == 200
    assert client.get("/api/sar-reports", headers={"X-Forwarded-For": "203.0.113.2"}).status_code == 200
    assert client.get("/api/sar-reports", headers={"X-Forwarded-For": "203.0.113.3"}).status_code == 429
    assert set(app.state.rate_limiter.requests) == {"testclient"}
