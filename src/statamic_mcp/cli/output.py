"""JSON output helpers for the statamic-mcp CLI.

Every command prints one minified JSON document to stdout; failures also
exit non-zero so shell callers can branch on the status.
"""

import json
import sys
from dataclasses import asdict
from typing import Any, Mapping, NoReturn, Optional

from statamic_mcp.core.responses import error_response


def emit(data: Any) -> None:
    """Emit JSON to stdout in minified form."""
    print(json.dumps(data, separators=(",", ":"), default=str))


def emit_envelope(envelope: Mapping[str, Any]) -> None:
    """Emit a tool envelope; exit 1 when it reports failure."""
    emit(envelope)
    if not envelope.get("success", False):
        sys.exit(1)


def emit_error(
    message: str,
    code: str = "VALIDATION_ERROR",
    *,
    error_type: str = "validation",
    details: Optional[Mapping[str, Any]] = None,
) -> NoReturn:
    """Emit an error envelope to stderr and exit with code 1."""
    response = error_response(message, error_code=code, error_type=error_type, details=details)
    print(json.dumps(asdict(response), separators=(",", ":"), default=str), file=sys.stderr)
    sys.exit(1)
