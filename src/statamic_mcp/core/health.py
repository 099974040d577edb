"""
Health checks for the system tool.

Each checker reports one dependency; ``check_health`` folds them into an
overall status where any unhealthy dependency makes the result unhealthy
and any degraded one (without an unhealthy one) makes it degraded.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence

from statamic_mcp.config import ServerConfig
from statamic_mcp.core.cache import CacheInvalidator
from statamic_mcp.core.repositories import Repositories

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    """Health status values following Kubernetes conventions."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class DependencyHealth:
    """Health status of a single dependency."""

    name: str
    status: HealthStatus
    message: str = ""
    latency_ms: Optional[float] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def healthy(self) -> bool:
        return self.status == HealthStatus.HEALTHY

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "name": self.name,
            "healthy": self.healthy,
            "status": self.status.value,
        }
        if self.message:
            result["message"] = self.message
        if self.latency_ms is not None:
            result["latency_ms"] = round(self.latency_ms, 2)
        if self.details:
            result["details"] = self.details
        return result


@dataclass
class HealthResult:
    """Result of a health check run."""

    status: HealthStatus
    timestamp: float = field(default_factory=time.time)
    dependencies: List[DependencyHealth] = field(default_factory=list)

    @property
    def is_healthy(self) -> bool:
        return self.status == HealthStatus.HEALTHY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall_status": self.status.value,
            "is_healthy": self.is_healthy,
            "timestamp": self.timestamp,
            "checks": {d.name: d.to_dict() for d in self.dependencies},
        }


class DependencyChecker(Protocol):
    """Protocol for dependency health checkers."""

    name: str

    def check(self) -> DependencyHealth:
        ...


# =============================================================================
# Built-in Dependency Checkers
# =============================================================================


class ContentStoreChecker:
    """Check that every repository answers a listing."""

    name = "content_store"

    def __init__(self, repositories: Repositories):
        self.repositories = repositories

    def check(self) -> DependencyHealth:
        start = time.perf_counter()
        try:
            counts = {
                "sites": len(self.repositories.sites.all()),
                "collections": len(self.repositories.collections.all()),
                "taxonomies": len(self.repositories.taxonomies.all()),
                "users": len(self.repositories.users.all()),
            }
        except Exception as e:
            logger.warning("Content store health check failed: %s", e)
            return DependencyHealth(
                name=self.name,
                status=HealthStatus.UNHEALTHY,
                message=f"Content store failed: {e}",
                latency_ms=(time.perf_counter() - start) * 1000,
            )

        if counts["sites"] == 0:
            return DependencyHealth(
                name=self.name,
                status=HealthStatus.UNHEALTHY,
                message="No sites configured",
                latency_ms=(time.perf_counter() - start) * 1000,
                details=counts,
            )
        return DependencyHealth(
            name=self.name,
            status=HealthStatus.HEALTHY,
            message="Content store responding",
            latency_ms=(time.perf_counter() - start) * 1000,
            details=counts,
        )


class CacheChecker:
    """Check that the cache collaborator reports its segments."""

    name = "cache"

    def __init__(self, cache: CacheInvalidator):
        self.cache = cache

    def check(self) -> DependencyHealth:
        try:
            segments = {name: state["status"] for name, state in self.cache.status().items()}
        except Exception as e:
            logger.warning("Cache health check failed: %s", e)
            return DependencyHealth(name=self.name, status=HealthStatus.UNHEALTHY, message=f"Cache failed: {e}")
        return DependencyHealth(
            name=self.name,
            status=HealthStatus.HEALTHY,
            message="Cache operational",
            details=segments,
        )


class ContentPathChecker:
    """Check that the configured seed file is readable."""

    name = "content_path"

    def __init__(self, path: Optional[Path]):
        self.path = path

    def check(self) -> DependencyHealth:
        if self.path is None:
            return DependencyHealth(
                name=self.name,
                status=HealthStatus.HEALTHY,
                message="In-memory content store (no seed file)",
            )
        if not self.path.is_file():
            return DependencyHealth(
                name=self.name,
                status=HealthStatus.DEGRADED,
                message=f"Content file not found: {self.path}",
                details={"path": str(self.path)},
            )
        return DependencyHealth(
            name=self.name,
            status=HealthStatus.HEALTHY,
            message="Content file readable",
            details={"path": str(self.path)},
        )


class WebPrincipalChecker:
    """Check that hosted calls can resolve an acting user."""

    name = "web_principal"

    def __init__(self, config: ServerConfig, repositories: Repositories):
        self.config = config
        self.repositories = repositories

    def check(self) -> DependencyHealth:
        if not self.config.web.enabled:
            return DependencyHealth(name=self.name, status=HealthStatus.HEALTHY, message="Web surface disabled")
        if not self.config.web.user:
            return DependencyHealth(
                name=self.name,
                status=HealthStatus.DEGRADED,
                message="Web surface enabled without a configured user",
            )
        user = self.repositories.users.find_by_email(self.config.web.user)
        if user is None or not user.is_active:
            return DependencyHealth(
                name=self.name,
                status=HealthStatus.DEGRADED,
                message=f"Web user not found or inactive: {self.config.web.user}",
            )
        return DependencyHealth(name=self.name, status=HealthStatus.HEALTHY, message="Web user resolvable")


def default_checkers(
    config: ServerConfig, repositories: Repositories, cache: CacheInvalidator
) -> List[DependencyChecker]:
    return [
        ContentStoreChecker(repositories),
        CacheChecker(cache),
        ContentPathChecker(config.content_path),
        WebPrincipalChecker(config, repositories),
    ]


def check_health(checkers: Sequence[DependencyChecker]) -> HealthResult:
    """Run every checker and fold the results into one status."""
    dependencies = [checker.check() for checker in checkers]
    statuses = {d.status for d in dependencies}
    if HealthStatus.UNHEALTHY in statuses:
        status = HealthStatus.UNHEALTHY
    elif HealthStatus.DEGRADED in statuses:
        status = HealthStatus.DEGRADED
    else:
        status = HealthStatus.HEALTHY
    return HealthResult(status=status, dependencies=dependencies)


__all__ = [
    "CacheChecker",
    "ContentPathChecker",
    "ContentStoreChecker",
    "DependencyChecker",
    "DependencyHealth",
    "HealthResult",
    "HealthStatus",
    "WebPrincipalChecker",
    "check_health",
    "default_checkers",
]
