"""
=============================================================================
CONTACT RELAY - RATE LIMITER MODULE
=============================================================================
Fixed-window rate limiting for the contact endpoint, keyed by client IP.

Features:
- In-memory backend with per-entry expiry (entries die with their window)
- Optional Redis backend (SET NX EX + INCR) for multi-process deployments
- Automatic fallback to in-memory when Redis is unavailable at startup
- Trusted-proxy validation for X-Forwarded-For

Usage:
    from contact_api.core.rate_limiter import enforce_contact_rate_limit

    @router.post("/contact", dependencies=[Depends(enforce_contact_rate_limit)])
    async def endpoint():
        ...
=============================================================================
"""

import ipaddress
import logging
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

import redis
from fastapi import HTTPException, Request, status

from contact_api.core.config import Settings

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too many contact form submissions, please try again later."
KEY_PREFIX = "rl:contact:"

# Expired in-memory windows are swept at most this often.
_SWEEP_INTERVAL_SECONDS = 60.0

Network = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]


def parse_trusted_networks(entries: Iterable[str]) -> List[Network]:
    """Parse TRUSTED_PROXIES entries into network objects."""
    nets = []
    for entry in entries:
        try:
            nets.append(ipaddress.ip_network(entry, strict=False))
        except ValueError:
            logger.warning("Invalid TRUSTED_PROXIES entry ignored: %s", entry)
    return nets


# =============================================================================
# BACKEND ABSTRACTION
# =============================================================================


class _RateLimitBackend(ABC):
    """Abstract rate-limit storage backend."""

    @abstractmethod
    def increment(self, key: str, window_seconds: int) -> Tuple[int, float]:
        """Count one hit; return (hits in current window, seconds until reset)."""

    @abstractmethod
    def reset(self) -> None:
        """Clear all state (for tests)."""

    @abstractmethod
    def stats(self) -> dict:
        """Return debugging stats."""


class _InMemoryBackend(_RateLimitBackend):
    """Thread-safe in-memory backend (single process only)."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = Lock()
        # key -> (window expires_at, count)
        self._windows: Dict[str, Tuple[float, int]] = {}
        self._next_sweep = 0.0

    def _sweep(self, now: float) -> None:
        if now < self._next_sweep:
            return
        expired = [key for key, (expires_at, _) in self._windows.items() if expires_at <= now]
        for key in expired:
            del self._windows[key]
        self._next_sweep = now + _SWEEP_INTERVAL_SECONDS

    def increment(self, key: str, window_seconds: int) -> Tuple[int, float]:
        now = self._clock()
        with self._lock:
            self._sweep(now)
            expires_at, count = self._windows.get(key, (0.0, 0))
            if expires_at <= now:
                expires_at, count = now + window_seconds, 0
            count += 1
            self._windows[key] = (expires_at, count)
            return count, expires_at - now

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()
            self._next_sweep = 0.0

    def __len__(self) -> int:
        return len(self._windows)

    def stats(self) -> dict:
        with self._lock:
            return {
                "backend": "in_memory",
                "tracked_keys": len(self._windows),
                "counts": {key: count for key, (_, count) in self._windows.items()},
            }


class _RedisBackend(_RateLimitBackend):
    """Redis-backed storage; the key TTL is the window."""

    def __init__(self, redis_client) -> None:  # type: ignore[type-arg]
        self._redis = redis_client

    def increment(self, key: str, window_seconds: int) -> Tuple[int, float]:
        pipe = self._redis.pipeline(transaction=True)
        pipe.set(key, 0, ex=window_seconds, nx=True)  # window starts on first hit
        pipe.incr(key)
        pipe.ttl(key)
        _, count, ttl = pipe.execute()
        return int(count), float(ttl if ttl and ttl > 0 else window_seconds)

    def reset(self) -> None:
        cursor = 0
        while True:
            cursor, keys = self._redis.scan(cursor, match=f"{KEY_PREFIX}*", count=500)
            if keys:
                self._redis.delete(*keys)
            if cursor == 0:
                break

    def stats(self) -> dict:
        counts = {}
        cursor = 0
        while True:
            cursor, keys = self._redis.scan(cursor, match=f"{KEY_PREFIX}*", count=500)
            for k in keys:
                key_str = k if isinstance(k, str) else k.decode()
                val = self._redis.get(k)
                counts[key_str] = int(val) if val else 0
            if cursor == 0:
                break
        return {"backend": "redis", "counts": counts}


def build_backend(redis_url: Optional[str]) -> _RateLimitBackend:
    """Use Redis when configured and reachable, otherwise in-memory."""
    if not redis_url:
        return _InMemoryBackend()
    try:
        client = redis.Redis.from_url(
            redis_url, decode_responses=True, socket_connect_timeout=2
        )
        client.ping()
        logger.info("Rate limiter using Redis backend")
        return _RedisBackend(client)
    except (redis.RedisError, ValueError) as exc:
        logger.warning(
            "Redis unavailable for rate limiter, using in-memory fallback: %s", exc
        )
        return _InMemoryBackend()


# =============================================================================
# LIMITER
# =============================================================================


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_after: int

    def headers(self) -> Dict[str, str]:
        headers = {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(self.reset_after),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.reset_after)
        return headers


class ContactRateLimiter:
    """Per-client fixed-window limiter for contact submissions."""

    def __init__(
        self,
        backend: _RateLimitBackend,
        limit: int,
        window_seconds: int,
        trusted_proxies: Iterable[str] = (),
    ) -> None:
        self._backend = backend
        self.limit = limit
        self.window_seconds = window_seconds
        self._trusted_networks = parse_trusted_networks(trusted_proxies)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ContactRateLimiter":
        return cls(
            backend=build_backend(settings.REDIS_URL),
            limit=settings.CONTACT_RATE_LIMIT,
            window_seconds=settings.CONTACT_RATE_WINDOW_SECONDS,
            trusted_proxies=settings.TRUSTED_PROXIES,
        )

    @property
    def backend(self) -> _RateLimitBackend:
        return self._backend

    def _is_trusted_proxy(self, ip_str: str) -> bool:
        try:
            addr = ipaddress.ip_address(ip_str)
        except ValueError:
            return False
        return any(addr in net for net in self._trusted_networks)

    def client_ip(self, request: Request) -> str:
        """Extract client IP, trusting X-Forwarded-For only from trusted proxies."""
        direct_ip = request.client.host if request.client else "unknown"

        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded and self._is_trusted_proxy(direct_ip):
            parts = [p.strip() for p in forwarded.split(",") if p.strip()]
            # Rightmost untrusted hop is the real client
            for ip in reversed(parts):
                if not self._is_trusted_proxy(ip):
                    return ip
            if parts:
                return parts[0]

        return direct_ip

    def hit(self, client_key: str) -> RateLimitDecision:
        count, reset_after = self._backend.increment(
            f"{KEY_PREFIX}{client_key}", self.window_seconds
        )
        return RateLimitDecision(
            allowed=count <= self.limit,
            limit=self.limit,
            remaining=max(self.limit - count, 0),
            reset_after=max(int(math.ceil(reset_after)), 0),
        )

    def reset(self) -> None:
        self._backend.reset()

    def stats(self) -> dict:
        return self._backend.stats()


# =============================================================================
# FASTAPI DEPENDENCY
# =============================================================================


def enforce_contact_rate_limit(request: Request) -> RateLimitDecision:
    """
    Count this request against the caller's window and reject it once the
    window is full. The decision is kept on ``request.state`` so the route
    can echo the RateLimit headers.
    """
    limiter: ContactRateLimiter = request.app.state.rate_limiter
    client_ip = limiter.client_ip(request)
    decision = limiter.hit(client_ip)
    request.state.client_ip = client_ip
    request.state.rate_limit = decision

    if not decision.allowed:
        logger.warning(
            "Contact rate limit exceeded for %s",
            client_ip,
            extra={"event_type": "contact_rate_limited"},
        )
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=RATE_LIMIT_MESSAGE,
            headers=decision.headers(),
        )
    return decision
