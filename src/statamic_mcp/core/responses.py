"""
Standard response contracts for statamic-mcp tool operations.

Response Schema Contract
========================

Every tool call returns the same envelope:

    {
        "success": bool,       # Required: operation success/failure
        "data": {...},         # Required: payload (error_code/error_type on failure)
        "errors": ["..."],     # Required: empty on success, one or more messages on failure
        "meta": {              # Required: response metadata
            "version": "response-v1",
            "request_id": "req_abc123"?,
            "warnings": ["..."]?,
        }
    }

Key Principle:
    - `success=True` means the operation executed correctly (even if the result is empty).
    - `success=False` means the operation did not run or failed; `errors` explains why.
    - Exactly one of the two variants is populated: a failure never carries
      business data and a success never carries errors.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from statamic_mcp.core.context import get_correlation_id

logger = logging.getLogger(__name__)

RESPONSE_VERSION = "response-v1"


class ErrorCode(str, Enum):
    """Machine-readable error codes carried in ``data.error_code``."""

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    MISSING_REQUIRED = "MISSING_REQUIRED"
    INVALID_FORMAT = "INVALID_FORMAT"
    CONFIRMATION_REQUIRED = "CONFIRMATION_REQUIRED"

    # Resource errors
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"

    # Access errors
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    TOOL_DISABLED = "TOOL_DISABLED"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # System errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    UNAVAILABLE = "UNAVAILABLE"
    NOT_IMPLEMENTED = "NOT_IMPLEMENTED"


class ErrorType(str, Enum):
    """Error categories for routing and client-side handling."""

    VALIDATION = "validation"  # 400 - No retry, fix input
    AUTHENTICATION = "authentication"  # 401 - No retry, re-authenticate
    AUTHORIZATION = "authorization"  # 403 - No retry
    NOT_FOUND = "not_found"  # 404 - No retry
    CONFLICT = "conflict"  # 409 - Maybe retry, check state
    RATE_LIMIT = "rate_limit"  # 429 - Yes, after delay
    INTERNAL = "internal"  # 500 - Yes, with backoff
    UNAVAILABLE = "unavailable"  # 503 - Yes, with backoff


@dataclass
class ToolResponse:
    """
    Standard response structure for tool operations.

    Attributes:
        success: Whether the operation completed successfully
        data: The primary payload (operation-specific structured data)
        errors: Human-readable failure messages, empty on success
        meta: Response metadata including version identifier
    """

    success: bool
    data: Dict[str, Any] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    meta: Dict[str, Any] = field(default_factory=lambda: {"version": RESPONSE_VERSION})

    @property
    def error(self) -> Optional[str]:
        """First error message, or None on success."""
        return self.errors[0] if self.errors else None


def _build_meta(
    *,
    request_id: Optional[str] = None,
    warnings: Optional[Sequence[str]] = None,
    extra: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Construct a metadata payload that always includes the response version.

    The correlation id from the request context is injected as ``request_id``
    when none is passed explicitly.
    """
    meta: Dict[str, Any] = {"version": RESPONSE_VERSION}

    effective_request_id = request_id or get_correlation_id() or None
    if effective_request_id:
        meta["request_id"] = effective_request_id
    if warnings:
        meta["warnings"] = list(warnings)
    if extra:
        meta.update(dict(extra))

    return meta


def _enum_value(value: Union[Enum, str]) -> str:
    return value.value if isinstance(value, Enum) else value


def success_response(
    data: Optional[Mapping[str, Any]] = None,
    *,
    warnings: Optional[Sequence[str]] = None,
    request_id: Optional[str] = None,
    meta: Optional[Mapping[str, Any]] = None,
    **fields: Any,
) -> ToolResponse:
    """Create a standardized success response.

    Args:
        data: Optional mapping used as the base payload.
        warnings: Non-fatal issues to surface in ``meta.warnings``.
        request_id: Correlation identifier propagated through logs.
        meta: Arbitrary extra metadata to merge into ``meta``.
        **fields: Additional payload fields (shorthand for ``data.update``).
    """
    payload: Dict[str, Any] = {}
    if data:
        payload.update(dict(data))
    if fields:
        payload.update(fields)

    return ToolResponse(
        success=True,
        data=payload,
        errors=[],
        meta=_build_meta(request_id=request_id, warnings=warnings, extra=meta),
    )


def error_response(
    message: Union[str, Sequence[str]],
    *,
    error_code: Optional[Union[ErrorCode, str]] = None,
    error_type: Optional[Union[ErrorType, str]] = None,
    remediation: Optional[str] = None,
    details: Optional[Mapping[str, Any]] = None,
    request_id: Optional[str] = None,
    meta: Optional[Mapping[str, Any]] = None,
) -> ToolResponse:
    """Create a standardized error response.

    Args:
        message: Human-readable description of the failure, or several.
        error_code: Canonical error code (defaults to ``INTERNAL_ERROR``).
        error_type: Error category (defaults to ``internal``).
        remediation: User-facing guidance on how to fix the issue.
        details: Nested structure describing the failure.
        request_id: Correlation identifier propagated through logs.
        meta: Arbitrary extra metadata to merge into ``meta``.

    Example:
        >>> error_response(
        ...     "Entry ID is required for get action",
        ...     error_code=ErrorCode.MISSING_REQUIRED,
        ...     error_type=ErrorType.VALIDATION,
        ... )
    """
    messages = [message] if isinstance(message, str) else [str(m) for m in message]
    if not messages:
        messages = ["Unknown error"]

    payload: Dict[str, Any] = {
        "error_code": _enum_value(error_code or ErrorCode.INTERNAL_ERROR),
        "error_type": _enum_value(error_type or ErrorType.INTERNAL),
    }
    if remediation is not None:
        payload["remediation"] = remediation
    if details:
        payload["details"] = dict(details)

    return ToolResponse(
        success=False,
        data=payload,
        errors=messages,
        meta=_build_meta(request_id=request_id, extra=meta),
    )


# ---------------------------------------------------------------------------
# Specialized Error Helpers
# ---------------------------------------------------------------------------


def validation_error(
    message: str,
    *,
    field: Optional[str] = None,
    remediation: Optional[str] = None,
) -> ToolResponse:
    """Create a validation error response (HTTP 400 analog)."""
    return error_response(
        message,
        error_code=ErrorCode.VALIDATION_ERROR,
        error_type=ErrorType.VALIDATION,
        details={"field": field} if field else None,
        remediation=remediation,
    )


def missing_fields_error(
    fields: Sequence[str],
    *,
    message: Optional[str] = None,
) -> ToolResponse:
    """Create a validation error naming the missing request fields.

    Example:
        >>> missing_fields_error(["container", "path"]).errors
        ['Missing required fields: container, path']
    """
    names = list(fields)
    return error_response(
        message or f"Missing required fields: {', '.join(names)}",
        error_code=ErrorCode.MISSING_REQUIRED,
        error_type=ErrorType.VALIDATION,
        details={"missing_fields": names},
        remediation=f"Provide: {', '.join(names)}",
    )


def not_found_error(
    resource_type: str,
    resource_id: str,
    *,
    message: Optional[str] = None,
) -> ToolResponse:
    """Create a not found error response (HTTP 404 analog).

    Example:
        >>> not_found_error("Collection", "articles").errors
        ['Collection not found: articles']
    """
    return error_response(
        message or f"{resource_type} not found: {resource_id}",
        error_code=ErrorCode.NOT_FOUND,
        error_type=ErrorType.NOT_FOUND,
        details={"resource_type": resource_type, "resource_id": resource_id},
    )


def unauthorized_error(
    message: str = "Permission denied: Authentication required",
) -> ToolResponse:
    """Create an authentication error response (HTTP 401 analog)."""
    return error_response(
        message,
        error_code=ErrorCode.UNAUTHORIZED,
        error_type=ErrorType.AUTHENTICATION,
        remediation="Authenticate as a control panel user or run the tool directly",
    )


def forbidden_error(
    message: str,
    *,
    required_permissions: Optional[Sequence[str]] = None,
    error_code: Union[ErrorCode, str] = ErrorCode.FORBIDDEN,
) -> ToolResponse:
    """Create a permission denied response (HTTP 403 analog)."""
    details = None
    if required_permissions:
        details = {"required_permissions": list(required_permissions)}
    return error_response(
        message,
        error_code=error_code,
        error_type=ErrorType.AUTHORIZATION,
        details=details,
    )


def conflict_error(
    message: str,
    *,
    details: Optional[Mapping[str, Any]] = None,
) -> ToolResponse:
    """Create a conflict error response (HTTP 409 analog)."""
    return error_response(
        message,
        error_code=ErrorCode.CONFLICT,
        error_type=ErrorType.CONFLICT,
        details=details,
    )


def rate_limit_error(
    limit: int,
    retry_after_seconds: float,
) -> ToolResponse:
    """Create a rate limit error response (HTTP 429 analog)."""
    return error_response(
        f"Rate limit exceeded: {limit} requests per minute",
        error_code=ErrorCode.RATE_LIMIT_EXCEEDED,
        error_type=ErrorType.RATE_LIMIT,
        details={"limit": limit, "retry_after_seconds": round(retry_after_seconds, 2)},
        remediation=f"Wait {int(retry_after_seconds) + 1} seconds before retrying",
    )


def internal_error(message: str) -> ToolResponse:
    """Create an internal error response (HTTP 500 analog)."""
    return error_response(
        message,
        error_code=ErrorCode.INTERNAL_ERROR,
        error_type=ErrorType.INTERNAL,
    )
