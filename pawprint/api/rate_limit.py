"""
pawprint.api.rate_limit — Per-Client Request Rate Limiting
===========================================================

Sliding-window admission control keyed by (client address, category).
Every call is counted, allowed or not, so hammering a denied endpoint does
not shorten the wait.  Clients that keep getting denied are blocked
outright for a while; calls during a block are refused without counting.

State is process-local and guarded by a :class:`threading.Lock`; it
resets on restart.  Routes opt in with::

    @router.post("/points/award", dependencies=[Depends(rate_limit("write"))])

Denials raise HTTP 429 carrying ``X-RateLimit-*`` and ``Retry-After``
headers.
"""

from __future__ import annotations

import logging
import math
import time
from collections import defaultdict
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from threading import Lock
from typing import TYPE_CHECKING, Protocol

from fastapi import HTTPException, Request, Response, status

if TYPE_CHECKING:
    from pawprint.config import PawprintConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RateLimitRule:
    max_requests: int
    window_seconds: int


# category -> rule
DEFAULT_RULES: dict[str, RateLimitRule] = {
    "general": RateLimitRule(60, 60),
    "write": RateLimitRule(5, 60),
    "message": RateLimitRule(10, 60),
    "ai_chat": RateLimitRule(10, 60),
    "auth": RateLimitRule(10, 900),
}

DEFAULT_VIOLATION_THRESHOLD = 3
DEFAULT_VIOLATION_WINDOW = 3600
DEFAULT_BLOCK_SECONDS = 1800

_CLEANUP_INTERVAL = 300


@dataclass(frozen=True, slots=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    reset_in: int  # seconds until the window frees up (or the block ends)
    limit: int


class RateLimiter(Protocol):
    def check(self, key: str, category: str) -> RateLimitDecision: ...


class InMemoryRateLimiter:
    """Sliding-window log limiter with repeat-offender blocking.

    Thread-safe.  ``clock`` is injectable for tests.
    """

    def __init__(
        self,
        rules: Mapping[str, RateLimitRule] | None = None,
        *,
        violation_threshold: int = DEFAULT_VIOLATION_THRESHOLD,
        violation_window: int = DEFAULT_VIOLATION_WINDOW,
        block_seconds: int = DEFAULT_BLOCK_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.rules = {**DEFAULT_RULES, **(rules or {})}
        self.violation_threshold = violation_threshold
        self.violation_window = violation_window
        self.block_seconds = block_seconds
        self._clock = clock
        self._lock = Lock()
        # (key, category) → timestamps inside the window
        self._hits: dict[tuple[str, str], list[float]] = defaultdict(list)
        # key → timestamps of denied calls
        self._violations: dict[str, list[float]] = defaultdict(list)
        # key → monotonic time the block ends
        self._blocked_until: dict[str, float] = {}
        self._last_cleanup = clock()

    def rule_for(self, category: str) -> RateLimitRule:
        return self.rules.get(category) or self.rules["general"]

    def check(self, key: str, category: str) -> RateLimitDecision:
        """Count one call for *key* in *category* and decide admission.

        While *key* is blocked every call is denied without being recorded:
        neither the sliding window nor the violation log grows until the
        block expires.
        """
        rule = self.rule_for(category)
        now = self._clock()

        with self._lock:
            self._maybe_cleanup(now)

            blocked_until = self._blocked_until.get(key)
            if blocked_until is not None:
                if blocked_until > now:
                    return RateLimitDecision(
                        allowed=False,
                        remaining=0,
                        reset_in=max(1, math.ceil(blocked_until - now)),
                        limit=rule.max_requests,
                    )
                del self._blocked_until[key]

            cutoff = now - rule.window_seconds
            window = [t for t in self._hits[(key, category)] if t > cutoff]
            window.append(now)
            self._hits[(key, category)] = window

            count = len(window)
            reset_in = max(1, math.ceil(window[0] + rule.window_seconds - now))
            if count <= rule.max_requests:
                return RateLimitDecision(
                    allowed=True,
                    remaining=rule.max_requests - count,
                    reset_in=reset_in,
                    limit=rule.max_requests,
                )

            self._record_violation(key, now)
            return RateLimitDecision(
                allowed=False,
                remaining=0,
                reset_in=reset_in,
                limit=rule.max_requests,
            )

    def is_blocked(self, key: str) -> bool:
        with self._lock:
            until = self._blocked_until.get(key)
            return until is not None and until > self._clock()

    def _record_violation(self, key: str, now: float) -> None:
        cutoff = now - self.violation_window
        recent = [t for t in self._violations[key] if t > cutoff]
        recent.append(now)
        if len(recent) >= self.violation_threshold:
            self._blocked_until[key] = now + self.block_seconds
            self._violations.pop(key, None)
            logger.warning(
                "Blocking %s for %ds after %d rate-limit violations",
                key, self.block_seconds, len(recent),
            )
            return
        self._violations[key] = recent

    def _maybe_cleanup(self, now: float) -> None:
        if now - self._last_cleanup < _CLEANUP_INTERVAL:
            return
        self._last_cleanup = now
        self._cleanup(now)

    def _cleanup(self, now: float) -> None:
        for (key, category), stamps in list(self._hits.items()):
            cutoff = now - self.rule_for(category).window_seconds
            if all(t <= cutoff for t in stamps):
                del self._hits[(key, category)]
        for key, stamps in list(self._violations.items()):
            if all(t <= now - self.violation_window for t in stamps):
                del self._violations[key]
        for key, until in list(self._blocked_until.items()):
            if until <= now:
                del self._blocked_until[key]

    def cleanup(self) -> None:
        """Drop expired windows, violations and blocks."""
        with self._lock:
            self._cleanup(self._clock())

    def reset(self, key: str | None = None) -> None:
        """Clear limiter state.  If key is None, clear all."""
        with self._lock:
            if key is None:
                self._hits.clear()
                self._violations.clear()
                self._blocked_until.clear()
                return
            for hit_key in [k for k in self._hits if k[0] == key]:
                del self._hits[hit_key]
            self._violations.pop(key, None)
            self._blocked_until.pop(key, None)


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------
_limiter: RateLimiter | None = None


def get_rate_limiter() -> RateLimiter:
    """Return the global rate limiter instance."""
    if _limiter is None:
        raise RuntimeError("Rate limiter not configured — call configure_rate_limiter() first")
    return _limiter


def configure_rate_limiter(
    config: PawprintConfig | None = None,
    *,
    limiter: RateLimiter | None = None,
) -> RateLimiter:
    """Install the global limiter, built from *config* unless one is given."""
    global _limiter
    if limiter is None:
        if config is None:
            limiter = InMemoryRateLimiter()
        else:
            limiter = InMemoryRateLimiter(
                {
                    category: RateLimitRule(max_requests, window)
                    for category, (max_requests, window) in config.rate_limits.items()
                },
                violation_threshold=config.violation_threshold,
                block_seconds=config.block_seconds,
            )
    _limiter = limiter
    return limiter


# ---------------------------------------------------------------------------
# Request helpers
# ---------------------------------------------------------------------------
def client_address(request: Request) -> str:
    """Best-effort client IP, honouring the usual proxy headers."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    for header in ("x-real-ip", "cf-connecting-ip"):
        value = request.headers.get(header)
        if value:
            return value.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def rate_limit_headers(decision: RateLimitDecision) -> dict[str, str]:
    headers = {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(decision.reset_in),
    }
    if not decision.allowed:
        headers["Retry-After"] = str(decision.reset_in)
    return headers


# ---------------------------------------------------------------------------
# FastAPI dependency factory
# ---------------------------------------------------------------------------
def rate_limit(category: str):
    """Build a dependency that admits or rejects the request for *category*.

    Use as ``dependencies=[Depends(rate_limit("write"))]`` so the check runs
    before authentication.
    """

    async def _dependency(request: Request, response: Response) -> RateLimitDecision:
        key = client_address(request)
        decision = get_rate_limiter().check(key, category)
        headers = rate_limit_headers(decision)

        if not decision.allowed:
            logger.warning(
                "Rate limit exceeded for %s on %s (%s): retry in %ds",
                key, request.url.path, category, decision.reset_in,
            )
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail={
                    "error": "rate_limit_exceeded",
                    "message": "Too many requests. Please try again later.",
                    "retry_after": decision.reset_in,
                },
                headers=headers,
            )

        response.headers.update(headers)
        return decision

    return _dependency
