"""Tests for the contact rate limiter: backends, client IP extraction, dependency."""
from unittest.mock import MagicMock, Mock

import fakeredis
import pytest
import redis
from fastapi import HTTPException, Request

from contact_api.core import rate_limiter as rate_limiter_module
from contact_api.core.rate_limiter import (
    KEY_PREFIX,
    RATE_LIMIT_MESSAGE,
    ContactRateLimiter,
    RateLimitDecision,
    _InMemoryBackend,
    _RedisBackend,
    build_backend,
    enforce_contact_rate_limit,
    parse_trusted_networks,
)


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


# =============================================================================
# InMemory backend tests
# =============================================================================


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def mem_backend(clock):
    return _InMemoryBackend(clock=clock)


class TestInMemoryBackend:
    def test_increment_counts_within_window(self, mem_backend):
        assert mem_backend.increment("rl:contact:1.2.3.4", 900) == (1, 900)
        assert mem_backend.increment("rl:contact:1.2.3.4", 900) == (2, 900)

    def test_reset_time_counts_down(self, mem_backend, clock):
        mem_backend.increment("k", 900)
        clock.advance(100)

        assert mem_backend.increment("k", 900) == (2, 800)

    def test_window_restarts_after_expiry(self, mem_backend, clock):
        for _ in range(5):
            mem_backend.increment("k", 900)
        clock.advance(900)

        assert mem_backend.increment("k", 900) == (1, 900)

    def test_keys_are_independent(self, mem_backend):
        mem_backend.increment("a", 900)
        mem_backend.increment("a", 900)

        assert mem_backend.increment("b", 900)[0] == 1

    def test_expired_entries_are_swept(self, mem_backend, clock):
        for i in range(50):
            mem_backend.increment(f"ip-{i}", 900)
        assert len(mem_backend) == 50

        clock.advance(1000)
        mem_backend.increment("fresh", 900)

        assert len(mem_backend) == 1

    def test_reset(self, mem_backend):
        mem_backend.increment("k", 900)
        mem_backend.reset()

        assert len(mem_backend) == 0
        assert mem_backend.increment("k", 900)[0] == 1

    def test_stats(self, mem_backend):
        mem_backend.increment("k", 900)

        stats = mem_backend.stats()
        assert stats["backend"] == "in_memory"
        assert stats["counts"] == {"k": 1}


# =============================================================================
# Redis backend tests
# =============================================================================


@pytest.fixture()
def redis_backend():
    client = fakeredis.FakeRedis(decode_responses=True)
    return _RedisBackend(client)


class TestRedisBackend:
    def test_increment_returns_count(self, redis_backend):
        assert redis_backend.increment(f"{KEY_PREFIX}1.2.3.4", 900)[0] == 1
        assert redis_backend.increment(f"{KEY_PREFIX}1.2.3.4", 900)[0] == 2
        assert redis_backend.increment(f"{KEY_PREFIX}1.2.3.4", 900)[0] == 3

    def test_first_hit_sets_window_ttl(self, redis_backend):
        _, reset_after = redis_backend.increment(f"{KEY_PREFIX}1.2.3.4", 100)

        ttl = redis_backend._redis.ttl(f"{KEY_PREFIX}1.2.3.4")
        assert 0 < ttl <= 100
        assert 0 < reset_after <= 100

    def test_later_hits_do_not_extend_window(self, redis_backend):
        key = f"{KEY_PREFIX}1.2.3.4"
        redis_backend.increment(key, 100)
        redis_backend._redis.expire(key, 40)

        redis_backend.increment(key, 100)

        assert redis_backend._redis.ttl(key) <= 40

    def test_reset_clears_keys(self, redis_backend):
        redis_backend.increment(f"{KEY_PREFIX}1.2.3.4", 900)
        redis_backend._redis.set("unrelated", "1")

        redis_backend.reset()

        assert redis_backend.increment(f"{KEY_PREFIX}1.2.3.4", 900)[0] == 1
        assert redis_backend._redis.get("unrelated") == "1"

    def test_stats(self, redis_backend):
        redis_backend.increment(f"{KEY_PREFIX}1.2.3.4", 900)
        redis_backend.increment(f"{KEY_PREFIX}1.2.3.4", 900)

        stats = redis_backend.stats()
        assert stats["backend"] == "redis"
        assert stats["counts"] == {f"{KEY_PREFIX}1.2.3.4": 2}


class TestBuildBackend:
    def test_no_url_uses_memory(self):
        assert isinstance(build_backend(None), _InMemoryBackend)

    def test_reachable_redis_is_used(self, monkeypatch):
        client = fakeredis.FakeRedis(decode_responses=True)
        monkeypatch.setattr(
            rate_limiter_module.redis.Redis, "from_url", MagicMock(return_value=client)
        )

        assert isinstance(build_backend("redis://cache:6379/0"), _RedisBackend)

    def test_unreachable_redis_falls_back_to_memory(self, monkeypatch):
        client = MagicMock()
        client.ping.side_effect = redis.ConnectionError("refused")
        monkeypatch.setattr(
            rate_limiter_module.redis.Redis, "from_url", MagicMock(return_value=client)
        )

        assert isinstance(build_backend("redis://cache:6379/0"), _InMemoryBackend)

    def test_malformed_url_falls_back_to_memory(self):
        assert isinstance(build_backend("not-a-redis-url"), _InMemoryBackend)


# =============================================================================
# Limiter & decision
# =============================================================================


@pytest.fixture()
def limiter(mem_backend):
    return ContactRateLimiter(
        backend=mem_backend,
        limit=5,
        window_seconds=900,
        trusted_proxies=["127.0.0.1", "10.0.0.0/8"],
    )


class TestContactRateLimiter:
    def test_five_allowed_then_blocked(self, limiter):
        decisions = [limiter.hit("1.2.3.4") for _ in range(6)]

        assert [d.allowed for d in decisions] == [True] * 5 + [False]
        assert [d.remaining for d in decisions] == [4, 3, 2, 1, 0, 0]

    def test_window_elapses(self, limiter, clock):
        for _ in range(6):
            limiter.hit("1.2.3.4")
        clock.advance(901)

        assert limiter.hit("1.2.3.4").allowed is True

    def test_clients_are_isolated(self, limiter):
        for _ in range(6):
            limiter.hit("1.2.3.4")

        assert limiter.hit("5.6.7.8").allowed is True

    def test_decision_headers(self):
        allowed = RateLimitDecision(allowed=True, limit=5, remaining=3, reset_after=120)
        blocked = RateLimitDecision(allowed=False, limit=5, remaining=0, reset_after=120)

        assert allowed.headers() == {
            "RateLimit-Limit": "5",
            "RateLimit-Remaining": "3",
            "RateLimit-Reset": "120",
        }
        assert blocked.headers()["Retry-After"] == "120"

    def test_stats_and_reset(self, limiter):
        limiter.hit("1.2.3.4")
        assert limiter.stats()["counts"] == {f"{KEY_PREFIX}1.2.3.4": 1}

        limiter.reset()
        assert limiter.stats()["counts"] == {}


# =============================================================================
# Trusted proxy / client IP extraction
# =============================================================================


def _make_request(client_host: str, xff: str = None) -> Mock:
    req = Mock(spec=Request)
    req.client = Mock()
    req.client.host = client_host
    headers = {}
    if xff:
        headers["X-Forwarded-For"] = xff
    req.headers = headers
    return req


class TestClientIp:
    def test_direct_client_no_proxy(self, limiter):
        assert limiter.client_ip(_make_request("203.0.113.5")) == "203.0.113.5"

    def test_untrusted_proxy_xff_ignored(self, limiter):
        req = _make_request("203.0.113.5", xff="1.2.3.4")
        assert limiter.client_ip(req) == "203.0.113.5"

    def test_trusted_proxy_xff_used(self, limiter):
        req = _make_request("127.0.0.1", xff="198.51.100.10")
        assert limiter.client_ip(req) == "198.51.100.10"

    def test_rightmost_untrusted_hop_wins(self, limiter):
        req = _make_request("10.0.0.1", xff="6.6.6.6, 198.51.100.10, 10.0.0.2")
        assert limiter.client_ip(req) == "198.51.100.10"

    def test_all_trusted_hops_use_leftmost(self, limiter):
        req = _make_request("10.0.0.1", xff="10.0.0.5, 10.0.0.2")
        assert limiter.client_ip(req) == "10.0.0.5"

    def test_missing_client(self, limiter):
        req = _make_request("ignored")
        req.client = None
        assert limiter.client_ip(req) == "unknown"

    def test_invalid_trusted_proxy_entries_are_skipped(self):
        nets = parse_trusted_networks(["10.0.0.0/8", "not-a-network"])
        assert [str(n) for n in nets] == ["10.0.0.0/8"]


# =============================================================================
# FastAPI dependency
# =============================================================================


def _dependency_request(limiter, host="203.0.113.5"):
    req = _make_request(host)
    req.app = Mock()
    req.app.state.rate_limiter = limiter
    req.state = Mock()
    return req


class TestEnforceContactRateLimit:
    def test_allows_and_records_decision(self, limiter):
        req = _dependency_request(limiter)

        decision = enforce_contact_rate_limit(req)

        assert decision.allowed is True
        assert req.state.client_ip == "203.0.113.5"
        assert req.state.rate_limit is decision

    def test_sixth_request_raises_429(self, limiter):
        req = _dependency_request(limiter)
        for _ in range(5):
            enforce_contact_rate_limit(req)

        with pytest.raises(HTTPException) as exc_info:
            enforce_contact_rate_limit(req)

        assert exc_info.value.status_code == 429
        assert exc_info.value.detail == RATE_LIMIT_MESSAGE
        assert exc_info.value.headers["Retry-After"] == "900"
