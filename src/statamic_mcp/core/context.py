"""Request context propagation for statamic-mcp.

Holds the per-invocation state that the routers consult without threading it
through every call:

- Correlation ID generation and propagation
- The acting principal (``None`` for anonymous/direct invocations)
- The execution context: ``"cli"`` for direct invocation, ``"web"`` for
  hosted invocation where permissions are enforced

Usage:
    from statamic_mcp.core.context import (
        sync_request_context,
        get_correlation_id,
        get_execution_context,
    )

    with sync_request_context(execution_context="web", principal=editor) as ctx:
        print(ctx.correlation_id)  # e.g., "req_a1b2c3d4e5f6"
"""

from __future__ import annotations

import secrets
import time
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Generator, Optional

if TYPE_CHECKING:  # pragma: no cover - import-time typing only
    from statamic_mcp.core.permissions import Principal

__all__ = [
    "CLI_CONTEXT",
    "WEB_CONTEXT",
    "correlation_id_var",
    "principal_var",
    "execution_context_var",
    "start_time_var",
    "RequestContext",
    "generate_correlation_id",
    "sync_request_context",
    "get_correlation_id",
    "get_principal",
    "get_execution_context",
    "get_current_context",
]

CLI_CONTEXT = "cli"
WEB_CONTEXT = "web"


correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")
"""Request correlation ID for tracing requests across components."""

principal_var: ContextVar[Optional["Principal"]] = ContextVar("principal", default=None)
"""Authenticated principal for hosted calls."""

execution_context_var: ContextVar[str] = ContextVar(
    "execution_context", default=CLI_CONTEXT
)
"""Either ``"cli"`` (direct, unguarded) or ``"web"`` (hosted, permission checked)."""

start_time_var: ContextVar[float] = ContextVar("start_time", default=0.0)
"""Request start time as Unix timestamp."""


def generate_correlation_id(prefix: str = "req") -> str:
    """Generate a unique correlation ID with optional prefix.

    Format: {prefix}_{12_hex_chars}
    """
    return f"{prefix}_{secrets.token_hex(6)}"


@dataclass
class RequestContext:
    """Snapshot of the current request context.

    Attributes:
        correlation_id: Unique request identifier
        execution_context: ``"cli"`` or ``"web"``
        principal: Acting principal, if any
        start_time: Request start timestamp
    """

    correlation_id: str = ""
    execution_context: str = CLI_CONTEXT
    principal: Optional["Principal"] = None
    start_time: float = field(default_factory=time.time)

    @property
    def is_web(self) -> bool:
        return self.execution_context == WEB_CONTEXT

    @property
    def elapsed_ms(self) -> float:
        if self.start_time <= 0:
            return 0.0
        return (time.time() - self.start_time) * 1000

    def to_dict(self) -> Dict[str, Any]:
        """Convert context to dictionary for logging/serialization."""
        return {
            "correlation_id": self.correlation_id,
            "context": self.execution_context,
            "user": self.principal.identifier if self.principal else None,
            "start_time": self.start_time,
            "elapsed_ms": round(self.elapsed_ms, 2),
        }


@contextmanager
def sync_request_context(
    *,
    correlation_id: Optional[str] = None,
    execution_context: Optional[str] = None,
    principal: Optional["Principal"] = None,
) -> Generator[RequestContext, None, None]:
    """Set up context variables for the duration of the with block.

    Args:
        correlation_id: Request ID (auto-generated if None)
        execution_context: ``"cli"`` or ``"web"``; inherits the current value if None
        principal: Acting principal; inherits the current value if None

    Yields:
        RequestContext snapshot
    """
    corr_id = correlation_id or generate_correlation_id()
    mode = execution_context or execution_context_var.get()
    if mode not in (CLI_CONTEXT, WEB_CONTEXT):
        raise ValueError(f"Unknown execution context: {mode}")
    actor = principal if principal is not None else principal_var.get()
    start = time.time()

    token_corr = correlation_id_var.set(corr_id)
    token_mode = execution_context_var.set(mode)
    token_actor = principal_var.set(actor)
    token_start = start_time_var.set(start)

    try:
        yield RequestContext(
            correlation_id=corr_id,
            execution_context=mode,
            principal=actor,
            start_time=start,
        )
    finally:
        correlation_id_var.reset(token_corr)
        execution_context_var.reset(token_mode)
        principal_var.reset(token_actor)
        start_time_var.reset(token_start)


def get_correlation_id() -> str:
    """Get the current correlation ID (empty string if not set)."""
    return correlation_id_var.get()


def get_principal() -> Optional["Principal"]:
    """Get the acting principal, or None for anonymous calls."""
    return principal_var.get()


def get_execution_context() -> str:
    """Get the current execution context (``"cli"`` by default)."""
    return execution_context_var.get()


def get_current_context() -> RequestContext:
    """Get a snapshot of the current request context."""
    return RequestContext(
        correlation_id=correlation_id_var.get(),
        execution_context=execution_context_var.get(),
        principal=principal_var.get(),
        start_time=start_time_var.get(),
    )
