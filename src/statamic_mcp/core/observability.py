"""
Audit logging and tool instrumentation for statamic-mcp.

Provides:
- Argument sanitization (sensitive ``data`` keys masked before logging)
- Structured audit records for the start/completed/failed lifecycle
- ``execute_with_audit``: the catch boundary that turns handler exceptions
  into failure envelopes
- ``mcp_tool``: correlation id + invocation audit for registered tools
"""

import copy
import functools
import json
import logging
import time
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, TypeVar

from statamic_mcp.core.context import (
    generate_correlation_id,
    get_correlation_id,
    get_current_context,
    sync_request_context,
)
from statamic_mcp.core.responses import ToolResponse, internal_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

REDACTION_MARKER = "[REDACTED]"

SENSITIVE_KEY_FRAGMENTS = ("password", "secret", "token", "key", "api")
"""Case-insensitive fragments; a ``data`` key containing any is redacted."""


def _is_sensitive_key(key: Any) -> bool:
    lowered = str(key).lower()
    return any(fragment in lowered for fragment in SENSITIVE_KEY_FRAGMENTS)


def _redact_mapping(data: Dict[str, Any]) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for key, value in data.items():
        if _is_sensitive_key(key):
            result[key] = REDACTION_MARKER
        elif isinstance(value, dict):
            result[key] = _redact_mapping(value)
        else:
            result[key] = value
    return result


def sanitize_arguments(arguments: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a logging-safe deep copy of tool arguments.

    Keys inside the ``data`` object (at any nesting depth) whose name
    contains password, secret, token, key or api are replaced with
    ``REDACTION_MARKER``. The input mapping is never modified.

    Example:
        >>> sanitize_arguments({"action": "create", "data": {"password": "x"}})
        {'action': 'create', 'data': {'password': '[REDACTED]'}}
    """
    sanitized = copy.deepcopy(dict(arguments))
    if isinstance(sanitized.get("data"), dict):
        sanitized["data"] = _redact_mapping(sanitized["data"])
    return sanitized


def redact_for_logging(arguments: Mapping[str, Any]) -> str:
    """Sanitize and serialize arguments for a log line."""
    sanitized = sanitize_arguments(arguments)
    try:
        return json.dumps(sanitized, default=str)
    except (TypeError, ValueError):
        return str(sanitized)


class AuditEventType(Enum):
    """Types of audit events."""

    OPERATION_STARTED = "operation_started"
    OPERATION_COMPLETED = "operation_completed"
    OPERATION_FAILED = "operation_failed"
    PERMISSION_DENIED = "permission_denied"
    RATE_LIMIT = "rate_limit"
    TOOL_INVOCATION = "tool_invocation"
    CONFIG_CHANGE = "config_change"


_EVENT_MESSAGES = {
    AuditEventType.OPERATION_STARTED: "MCP Operation Started",
    AuditEventType.OPERATION_COMPLETED: "MCP Operation Completed",
    AuditEventType.OPERATION_FAILED: "MCP Operation Failed",
}


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class AuditRecord:
    """One operation's audit state.

    A record is written at start and a finalized copy (via ``finish``) at
    completion; neither is mutated after being logged.
    """

    tool: str
    action: str
    domain: str
    user: Optional[str]
    context: str
    arguments: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=_utc_now)
    correlation_id: Optional[str] = None
    duration_ms: Optional[float] = None
    outcome: Optional[str] = None
    error: Optional[str] = None

    def finish(
        self, *, success: bool, duration_ms: float, error: Optional[str] = None
    ) -> "AuditRecord":
        return replace(
            self,
            timestamp=_utc_now(),
            duration_ms=round(duration_ms, 4),
            outcome="success" if success else "failure",
            error=error,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None or key == "user"}


@dataclass
class AuditEvent:
    """Free-form audit event for non-operation security logging."""

    event_type: AuditEventType
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=_utc_now)
    correlation_id: Optional[str] = None

    def __post_init__(self) -> None:
        if self.correlation_id is None:
            self.correlation_id = get_correlation_id() or None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "event_type": self.event_type.value,
            "timestamp": self.timestamp,
            "details": self.details,
        }
        if self.correlation_id:
            result["correlation_id"] = self.correlation_id
        return result


class AuditLogger:
    """
    Structured audit logging for tool operations.

    Audit logs are written to a separate logger for easy filtering;
    starts and completions at INFO, failures at ERROR.
    """

    def __init__(self, logger_name: Optional[str] = None):
        self._logger = logging.getLogger(logger_name or f"{__name__}.audit")

    def started(self, record: AuditRecord) -> None:
        self._emit(logging.INFO, AuditEventType.OPERATION_STARTED, record)

    def completed(self, record: AuditRecord) -> None:
        self._emit(logging.INFO, AuditEventType.OPERATION_COMPLETED, record)

    def failed(self, record: AuditRecord) -> None:
        self._emit(logging.ERROR, AuditEventType.OPERATION_FAILED, record)

    def _emit(self, level: int, event_type: AuditEventType, record: AuditRecord) -> None:
        payload = {"event_type": event_type.value, **record.to_dict()}
        self._logger.log(level, _EVENT_MESSAGES[event_type], extra={"audit": payload})

    def log(self, event: AuditEvent) -> None:
        """Log a free-form audit event."""
        self._logger.info(
            f"AUDIT: {event.event_type.value}", extra={"audit": event.to_dict()}
        )

    def permission_denied(self, tool: str, action: str, reason: str, **details: Any) -> None:
        self.log(
            AuditEvent(
                event_type=AuditEventType.PERMISSION_DENIED,
                details={"tool": tool, "action": action, "reason": reason, **details},
            )
        )

    def tool_invocation(
        self,
        tool_name: str,
        success: bool = True,
        duration_ms: Optional[float] = None,
        **details: Any,
    ) -> None:
        self.log(
            AuditEvent(
                event_type=AuditEventType.TOOL_INVOCATION,
                details={
                    "tool": tool_name,
                    "success": success,
                    "duration_ms": duration_ms,
                    **details,
                },
            )
        )


# Global audit logger
_audit = AuditLogger()


def get_audit_logger() -> AuditLogger:
    """Get the global audit logger."""
    return _audit


def audit_log(event_type: str, **details: Any) -> None:
    """
    Convenience function for audit logging.

    Args:
        event_type: Type of event (see ``AuditEventType`` values)
        **details: Additional details to include in the audit log
    """
    try:
        event_enum = AuditEventType(event_type)
    except ValueError:
        event_enum = AuditEventType.TOOL_INVOCATION
        details["original_event_type"] = event_type

    _audit.log(AuditEvent(event_type=event_enum, details=details))


def _safe_emit(emit: Callable[[AuditRecord], None], record: AuditRecord) -> None:
    # Audit output is best-effort; the operation proceeds regardless.
    try:
        emit(record)
    except Exception as exc:
        logger.warning("Audit logging failed for %s.%s: %s", record.tool, record.action, exc)


def execute_with_audit(
    *,
    tool: str,
    action: str,
    domain: str,
    arguments: Mapping[str, Any],
    handler: Callable[[], ToolResponse],
    enabled: bool = True,
    audit_logger: Optional[AuditLogger] = None,
    user: Optional[str] = None,
    context: Optional[str] = None,
) -> ToolResponse:
    """Run ``handler`` inside the audit lifecycle.

    Emits a started record, runs the handler, and emits a completed record
    carrying the envelope's success flag. Any exception raised by the handler
    is logged as a failed record and returned as an ``INTERNAL_ERROR`` failure;
    it never propagates to the caller.

    Args:
        tool: Canonical tool name (e.g. ``statamic.entries``)
        action: Action being executed
        domain: Domain/target identifier
        arguments: Raw arguments; only a sanitized copy is logged
        handler: Zero-argument closure producing the response
        enabled: When False, no records are emitted but exceptions are still caught
        audit_logger: Override the global audit logger
        user: Acting principal identifier; defaults to the context principal
        context: Execution context; defaults to the context value
    """
    audit = audit_logger or _audit
    ctx = get_current_context()
    record = AuditRecord(
        tool=tool,
        action=action,
        domain=domain,
        user=user or (ctx.principal.identifier if ctx.principal else None),
        context=context or ctx.execution_context,
        arguments=sanitize_arguments(arguments),
        correlation_id=ctx.correlation_id or None,
    )

    if enabled:
        _safe_emit(audit.started, record)

    start = time.perf_counter()
    try:
        response = handler()
    except Exception as exc:
        duration_ms = (time.perf_counter() - start) * 1000
        logger.debug("Handler %s.%s raised", tool, action, exc_info=True)
        if enabled:
            _safe_emit(
                audit.failed,
                record.finish(success=False, duration_ms=duration_ms, error=str(exc)),
            )
        return internal_error(f"Operation failed: {exc}")

    if enabled:
        duration_ms = (time.perf_counter() - start) * 1000
        _safe_emit(
            audit.completed,
            record.finish(
                success=response.success,
                duration_ms=duration_ms,
                error=response.error if not response.success else None,
            ),
        )
    return response


def mcp_tool(
    tool_name: Optional[str] = None, audit: bool = True
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator for MCP tool entry points.

    Establishes a correlation id when none is active, logs the invocation
    at debug level, and records a ``tool_invocation`` audit event with
    its latency.

    Args:
        tool_name: Override tool name (defaults to function name)
        audit: Whether to create audit log entries
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        name = tool_name or func.__name__

        def _invoke(args: tuple, kwargs: dict) -> T:
            start = time.perf_counter()
            success = True
            error_msg = None
            try:
                result = func(*args, **kwargs)
                if isinstance(result, dict) and result.get("success") is False:
                    success = False
                return result
            except Exception as e:
                success = False
                error_msg = str(e)
                raise
            finally:
                duration_ms = (time.perf_counter() - start) * 1000
                logger.debug("Tool %s finished in %.2fms (success=%s)", name, duration_ms, success)
                if audit:
                    action = kwargs.get("action") if isinstance(kwargs.get("action"), str) else None
                    _audit.tool_invocation(
                        tool_name=name,
                        success=success,
                        duration_ms=round(duration_ms, 2),
                        action=action,
                        error=error_msg,
                    )

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            if get_correlation_id():
                return _invoke(args, kwargs)
            with sync_request_context(correlation_id=generate_correlation_id(prefix="tool")):
                return _invoke(args, kwargs)

        return wrapper

    return decorator
