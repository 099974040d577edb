"""Tests for the token bucket limiter and per-key manager."""

import logging
from unittest.mock import patch

from statamic_mcp.core.rate_limit import (
    RateLimitConfig,
    RateLimitManager,
    TokenBucketLimiter,
)


class TestTokenBucketLimiter:
    """Tests for TokenBucketLimiter."""

    def test_allows_up_to_burst(self):
        limiter = TokenBucketLimiter(RateLimitConfig(requests_per_minute=60, burst_limit=3))
        with patch("statamic_mcp.core.rate_limit.time.time", return_value=1000.0):
            limiter.state.last_update = 1000.0
            results = [limiter.acquire() for _ in range(4)]

        assert [r.allowed for r in results] == [True, True, True, False]
        assert results[-1].reason == "Rate limit exceeded. Please wait before trying again."
        assert results[-1].reset_in > 0

    def test_refills_over_time(self):
        """One token per second at 60 requests per minute."""
        limiter = TokenBucketLimiter(RateLimitConfig(requests_per_minute=60, burst_limit=1))
        with patch("statamic_mcp.core.rate_limit.time.time") as clock:
            clock.return_value = 1000.0
            limiter.state.last_update = 1000.0
            assert limiter.acquire().allowed is True
            assert limiter.acquire().allowed is False

            clock.return_value = 1001.5
            assert limiter.acquire().allowed is True

    def test_disabled_always_allows(self):
        limiter = TokenBucketLimiter(RateLimitConfig(burst_limit=1, enabled=False))
        assert all(limiter.acquire().allowed for _ in range(5))

    def test_custom_reason(self):
        limiter = TokenBucketLimiter(
            RateLimitConfig(requests_per_minute=1, burst_limit=1, reason="Slow down")
        )
        limiter.acquire()
        assert limiter.acquire().reason == "Slow down"

    def test_stats_count_throttles(self):
        limiter = TokenBucketLimiter(RateLimitConfig(requests_per_minute=1, burst_limit=1))
        limiter.acquire()
        limiter.acquire()
        stats = limiter.get_stats()
        assert stats["requests"] == 2
        assert stats["throttled"] == 1
        assert stats["burst"] == 1


class TestRateLimitManager:
    """Tests for RateLimitManager."""

    def test_build_key(self):
        key = RateLimitManager.build_key("statamic.entries", "list", "web", "editor@example.com")
        assert key == "statamic.entries:list:web:editor@example.com"

    def test_build_key_anonymous(self):
        assert RateLimitManager.build_key("statamic.entries", "list", "web", None).endswith(":anonymous")

    def test_keys_are_independent(self):
        manager = RateLimitManager(RateLimitConfig(requests_per_minute=1, burst_limit=1))
        assert manager.check_limit("a").allowed is True
        assert manager.check_limit("a").allowed is False
        assert manager.check_limit("b").allowed is True

    def test_throttle_is_logged_and_audited(self, caplog):
        caplog.set_level(logging.INFO)
        manager = RateLimitManager(RateLimitConfig(requests_per_minute=1, burst_limit=1))
        manager.check_limit("statamic.entries:list:web:u1")
        manager.check_limit("statamic.entries:list:web:u1")

        assert "Rate limit exceeded for statamic.entries:list:web:u1" in caplog.text
        assert "AUDIT: rate_limit" in caplog.text

    def test_reset_single_key(self):
        manager = RateLimitManager(RateLimitConfig(requests_per_minute=1, burst_limit=1))
        manager.check_limit("a")
        manager.check_limit("b")
        manager.reset("a")
        assert manager.check_limit("a").allowed is True
        assert manager.check_limit("b").allowed is False

    def test_reset_all(self):
        manager = RateLimitManager(RateLimitConfig(requests_per_minute=1, burst_limit=1))
        manager.check_limit("a")
        manager.reset()
        assert manager.get_stats() == {}
