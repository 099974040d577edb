"""
Rate limiting for hosted tool invocations.

Each ``tool:action:context:user`` key gets its own token bucket. Direct
(CLI) invocations are never limited; the router only consults this module
in hosted context.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from statamic_mcp.core.observability import audit_log

logger = logging.getLogger(__name__)


@dataclass
class RateLimitConfig:
    """
    Configuration for a rate limit.
    """
    requests_per_minute: int = 60
    burst_limit: int = 60
    enabled: bool = True
    reason: str = ""


@dataclass
class RateLimitState:
    """
    Current state of a rate limiter.
    """
    tokens: float = 0.0
    last_update: float = 0.0
    request_count: int = 0
    throttle_count: int = 0


@dataclass
class RateLimitResult:
    """
    Result of a rate limit check.
    """
    allowed: bool
    remaining: int = 0
    reset_in: float = 0.0
    limit: int = 0
    reason: str = ""


class TokenBucketLimiter:
    """
    Token bucket rate limiter.

    Provides smooth rate limiting with burst support.
    """

    def __init__(self, config: RateLimitConfig):
        self.config = config
        self.state = RateLimitState(
            tokens=float(config.burst_limit),
            last_update=time.time()
        )

    def acquire(self) -> RateLimitResult:
        """
        Attempt to acquire a token for a request.

        Returns:
            RateLimitResult indicating if request is allowed
        """
        if not self.config.enabled:
            return RateLimitResult(allowed=True, remaining=-1)

        self._refill()
        self.state.request_count += 1

        if self.state.tokens >= 1.0:
            self.state.tokens -= 1.0
            return RateLimitResult(
                allowed=True,
                remaining=int(self.state.tokens),
                reset_in=self._time_to_next_token(),
                limit=self.config.requests_per_minute,
            )

        self.state.throttle_count += 1
        return RateLimitResult(
            allowed=False,
            remaining=0,
            reset_in=self._time_to_next_token(),
            limit=self.config.requests_per_minute,
            reason=self.config.reason or "Rate limit exceeded. Please wait before trying again.",
        )

    def _refill(self) -> None:
        """Refill tokens based on elapsed time."""
        now = time.time()
        elapsed = now - self.state.last_update
        self.state.last_update = now

        tokens_per_second = self.config.requests_per_minute / 60.0
        self.state.tokens = min(
            float(self.config.burst_limit),
            self.state.tokens + elapsed * tokens_per_second
        )

    def _time_to_next_token(self) -> float:
        if self.state.tokens >= 1.0:
            return 0.0
        tokens_per_second = self.config.requests_per_minute / 60.0
        if tokens_per_second <= 0:
            return 60.0
        return (1.0 - self.state.tokens) / tokens_per_second

    def get_stats(self) -> Dict[str, Any]:
        return {
            "requests": self.state.request_count,
            "throttled": self.state.throttle_count,
            "current_tokens": int(self.state.tokens),
            "limit": self.config.requests_per_minute,
            "burst": self.config.burst_limit,
            "enabled": self.config.enabled,
        }


class RateLimitManager:
    """
    Keeps one limiter per key and logs throttling events.
    """

    def __init__(self, config: Optional[RateLimitConfig] = None):
        self.config = config or RateLimitConfig()
        self._limiters: Dict[str, TokenBucketLimiter] = {}
        self._lock = threading.Lock()

    @staticmethod
    def build_key(tool: str, action: str, context: str, user: Optional[str]) -> str:
        return ":".join([tool, action, context, user or "anonymous"])

    def check_limit(self, key: str) -> RateLimitResult:
        """Consume one token for ``key``."""
        with self._lock:
            limiter = self._limiters.get(key)
            if limiter is None:
                limiter = TokenBucketLimiter(self.config)
                self._limiters[key] = limiter
            result = limiter.acquire()

        if not result.allowed:
            logger.warning("Rate limit exceeded for %s", key)
            audit_log("rate_limit", key=key, limit=result.limit, reset_in=round(result.reset_in, 2))
        return result

    def reset(self, key: Optional[str] = None) -> None:
        """Forget limiter state for ``key`` (or every key)."""
        with self._lock:
            if key is None:
                self._limiters.clear()
            else:
                self._limiters.pop(key, None)

    def get_stats(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            return {key: limiter.get_stats() for key, limiter in self._limiters.items()}
