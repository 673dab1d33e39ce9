"""
tests/test_rate_limit.py — Request Rate Limiting Tests
=======================================================
Sliding-window admission per (client address, category), repeat-offender
blocking, and the 429 dependency's headers and payload.
"""

from __future__ import annotations

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from starlette.requests import Request

from pawprint.api.rate_limit import (
    DEFAULT_RULES,
    InMemoryRateLimiter,
    RateLimitRule,
    client_address,
    configure_rate_limiter,
    get_rate_limiter,
    rate_limit,
    rate_limit_headers,
)
from pawprint.config import PawprintConfig


class FakeClock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Unit tests for the in-memory limiter
# ---------------------------------------------------------------------------
class TestInMemoryRateLimiter:

    @pytest.fixture(autouse=True)
    def _limiter(self):
        self.clock = FakeClock()
        self.limiter = InMemoryRateLimiter(clock=self.clock)

    def test_allows_requests_within_limit(self):
        remaining = [self.limiter.check("1.1.1.1", "write").remaining for _ in range(5)]
        assert remaining == [4, 3, 2, 1, 0]

    def test_blocks_after_limit_exceeded(self):
        for _ in range(5):
            assert self.limiter.check("1.1.1.1", "write").allowed
        decision = self.limiter.check("1.1.1.1", "write")
        assert not decision.allowed
        assert decision.remaining == 0
        assert decision.limit == 5
        assert 0 < decision.reset_in <= 60

    def test_window_slides(self):
        for _ in range(5):
            self.limiter.check("1.1.1.1", "write")
        self.clock.advance(61)
        decision = self.limiter.check("1.1.1.1", "write")
        assert decision.allowed
        assert decision.remaining == 4

    def test_denied_calls_are_counted(self):
        limiter = InMemoryRateLimiter({"write": RateLimitRule(2, 60)}, clock=self.clock)
        limiter.check("k", "write")
        limiter.check("k", "write")
        self.clock.advance(30)
        assert not limiter.check("k", "write").allowed
        self.clock.advance(31)
        # The two allowed calls expired; the denied one at t+30 still counts
        assert limiter.check("k", "write").remaining == 0
        assert not limiter.check("k", "write").allowed

    def test_separate_keys_and_categories(self):
        for _ in range(5):
            self.limiter.check("1.1.1.1", "write")
        assert not self.limiter.check("1.1.1.1", "write").allowed
        assert self.limiter.check("2.2.2.2", "write").allowed
        assert self.limiter.check("1.1.1.1", "general").allowed

    def test_unknown_category_uses_general(self):
        decision = self.limiter.check("1.1.1.1", "mystery")
        assert decision.limit == DEFAULT_RULES["general"].max_requests

    def test_repeat_offender_is_blocked(self):
        limiter = InMemoryRateLimiter(
            {"write": RateLimitRule(1, 60)},
            violation_threshold=3,
            block_seconds=1800,
            clock=self.clock,
        )
        assert limiter.check("k", "write").allowed
        for _ in range(3):
            assert not limiter.check("k", "write").allowed
        assert limiter.is_blocked("k")

        # A block covers every category
        decision = limiter.check("k", "general")
        assert not decision.allowed
        assert decision.reset_in == 1800

        self.clock.advance(1801)
        assert not limiter.is_blocked("k")
        assert limiter.check("k", "general").allowed

    def test_calls_while_blocked_are_not_recorded(self):
        limiter = InMemoryRateLimiter(
            {"write": RateLimitRule(1, 60)},
            violation_threshold=3,
            block_seconds=120,
            clock=self.clock,
        )
        limiter.check("k", "write")
        for _ in range(3):
            limiter.check("k", "write")
        assert limiter.is_blocked("k")
        hits_at_block = list(limiter._hits[("k", "write")])

        for _ in range(50):
            assert not limiter.check("k", "write").allowed
        assert limiter._hits[("k", "write")] == hits_at_block
        assert "k" not in limiter._violations  # cleared when the block began

        self.clock.advance(121)
        assert limiter.check("k", "write").allowed

    def test_old_violations_expire(self):
        limiter = InMemoryRateLimiter(
            {"write": RateLimitRule(1, 60)}, violation_threshold=3, clock=self.clock
        )
        limiter.check("k", "write")
        limiter.check("k", "write")
        limiter.check("k", "write")
        self.clock.advance(3601)
        limiter.check("k", "write")
        limiter.check("k", "write")
        assert not limiter.is_blocked("k")

    def test_reset_single_key(self):
        for _ in range(6):
            self.limiter.check("a", "write")
            self.limiter.check("b", "write")
        self.limiter.reset("a")
        assert self.limiter.check("a", "write").allowed
        assert not self.limiter.check("b", "write").allowed

    def test_reset_all(self):
        for _ in range(6):
            self.limiter.check("a", "write")
        self.limiter.reset()
        assert self.limiter.check("a", "write").remaining == 4

    def test_cleanup_drops_expired_state(self):
        self.limiter.check("a", "write")
        self.clock.advance(7200)
        self.limiter.cleanup()
        assert self.limiter._hits == {}


# ---------------------------------------------------------------------------
# Configuration & helpers
# ---------------------------------------------------------------------------
def test_configure_from_config_overrides_rules():
    cfg = PawprintConfig(
        community_name="Test",
        rate_limits={"write": (2, 30)},
        violation_threshold=5,
        block_seconds=60,
    )
    limiter = configure_rate_limiter(cfg)
    assert get_rate_limiter() is limiter
    assert limiter.rules["write"] == RateLimitRule(2, 30)
    assert limiter.rules["general"] == DEFAULT_RULES["general"]
    assert limiter.violation_threshold == 5
    assert limiter.block_seconds == 60


def _request(headers: dict[str, str] | None = None, client=("9.9.9.9", 1234)) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


class TestClientAddress:
    def test_forwarded_for_first_entry(self):
        req = _request({"X-Forwarded-For": "1.2.3.4, 10.0.0.1"})
        assert client_address(req) == "1.2.3.4"

    def test_real_ip(self):
        assert client_address(_request({"X-Real-IP": "5.6.7.8"})) == "5.6.7.8"

    def test_cloudflare(self):
        assert client_address(_request({"CF-Connecting-IP": "7.7.7.7"})) == "7.7.7.7"

    def test_socket_peer(self):
        assert client_address(_request()) == "9.9.9.9"

    def test_unknown(self):
        assert client_address(_request(client=None)) == "unknown"


def test_headers_include_retry_after_only_on_denial():
    limiter = InMemoryRateLimiter({"write": RateLimitRule(1, 60)}, clock=FakeClock())
    allowed = rate_limit_headers(limiter.check("k", "write"))
    denied = rate_limit_headers(limiter.check("k", "write"))
    assert "Retry-After" not in allowed
    assert denied["Retry-After"] == denied["X-RateLimit-Reset"]
    assert denied["X-RateLimit-Remaining"] == "0"


# ---------------------------------------------------------------------------
# HTTP behaviour of the dependency
# ---------------------------------------------------------------------------
class TestRateLimitDependency:

    @pytest.fixture
    def client(self):
        configure_rate_limiter(
            limiter=InMemoryRateLimiter({"write": RateLimitRule(2, 60)})
        )
        app = FastAPI()

        @app.post("/thing", dependencies=[Depends(rate_limit("write"))])
        def thing():
            return {"ok": True}

        return TestClient(app)

    def test_allowed_response_carries_headers(self, client):
        resp = client.post("/thing")
        assert resp.status_code == 200
        assert resp.headers["X-RateLimit-Limit"] == "2"
        assert resp.headers["X-RateLimit-Remaining"] == "1"

    def test_returns_429_with_headers_and_payload(self, client):
        client.post("/thing")
        client.post("/thing")
        resp = client.post("/thing")
        assert resp.status_code == 429
        assert resp.headers["X-RateLimit-Remaining"] == "0"
        assert int(resp.headers["Retry-After"]) > 0
        detail = resp.json()["detail"]
        assert detail["error"] == "rate_limit_exceeded"
        assert detail["retry_after"] == int(resp.headers["Retry-After"])

    def test_keyed_by_forwarded_address(self, client):
        client.post("/thing", headers={"X-Forwarded-For": "1.1.1.1"})
        client.post("/thing", headers={"X-Forwarded-For": "1.1.1.1"})
        assert client.post("/thing", headers={"X-Forwarded-For": "1.1.1.1"}).status_code == 429
        assert client.post("/thing", headers={"X-Forwarded-For": "2.2.2.2"}).status_code == 200
