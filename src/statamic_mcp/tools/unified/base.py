"""Shared request pipeline for the domain tools.

``DomainTool.handle`` runs every invocation through the same gates:

1. discovery actions (``help``/``discover``/``examples``) answer immediately
2. unknown actions are rejected with the allowed list
3. hosted calls to a tool without web access are refused
4. domain target checks (e.g. the collection exists)
5. required-field validation for the action
6. hosted calls: rate limit, authentication, and permission checks
7. the handler runs inside ``execute_with_audit``

Gates 2-6 fail fast with an envelope before anything is audited or timed.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from pydantic import ValidationError

from statamic_mcp.config import ServerConfig, ToolConfig
from statamic_mcp.core.cache import CacheInvalidator
from statamic_mcp.core.context import WEB_CONTEXT, get_execution_context, get_principal
from statamic_mcp.core.observability import (
    AuditLogger,
    execute_with_audit,
    get_audit_logger,
    redact_for_logging,
)
from statamic_mcp.core.permissions import (
    MCP_ACCESS_PERMISSION,
    PermissionChecker,
    PermissionResolver,
    Principal,
    get_permission_resolver,
    principal_from_user,
    principal_has_permission,
)
from statamic_mcp.core.rate_limit import RateLimitConfig, RateLimitManager
from statamic_mcp.core.repositories import Repositories
from statamic_mcp.core.requests import ToolRequest
from statamic_mcp.core.responses import (
    ErrorCode,
    ErrorType,
    ToolResponse,
    error_response,
    forbidden_error,
    missing_fields_error,
    success_response,
    unauthorized_error,
)
from statamic_mcp.tools.unified.discovery import DISCOVERY_ACTIONS, DISCOVERY_BUILDERS
from statamic_mcp.tools.unified.router import (
    ActionDefinition,
    ActionRouter,
    ActionRouterError,
)

logger = logging.getLogger(__name__)


class DomainTool:
    """Base class for one ``statamic.<domain>`` tool.

    Subclasses set the class attributes and implement ``build_actions``;
    handlers take a validated ``ToolRequest`` and return a ``ToolResponse``.
    """

    tool_name: str = ""
    domain: str = ""
    label: str = ""
    description: str = ""
    primary_use: str = ""
    types: Dict[str, str] = {}
    features: Tuple[str, ...] = ()
    patterns: Dict[str, str] = {}
    related_tools: Tuple[str, ...] = ()
    confirmation_required: Tuple[str, ...] = ()
    # (type, action) -> required fields, for tools addressed by request.type
    typed_required: Dict[Tuple[str, str], Tuple[str, ...]] = {}

    def __init__(
        self,
        config: ServerConfig,
        repositories: Repositories,
        cache: CacheInvalidator,
        *,
        resolver: Optional[PermissionResolver] = None,
        permission_checker: PermissionChecker = principal_has_permission,
        rate_limiter: Optional[RateLimitManager] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self.config = config
        self.repositories = repositories
        self.cache = cache
        self.resolver = resolver or get_permission_resolver()
        self.permission_checker = permission_checker
        self.rate_limiter = rate_limiter or RateLimitManager(
            RateLimitConfig(
                requests_per_minute=config.rate_limit.requests_per_minute,
                burst_limit=max(1, config.rate_limit.requests_per_minute),
                enabled=config.rate_limit.enabled,
            )
        )
        self.audit_logger = audit_logger or get_audit_logger()
        self.router = ActionRouter(tool_name=self.domain, actions=self.build_actions())

    # ------------------------------------------------------------------
    # Subclass hooks
    # ------------------------------------------------------------------

    def build_actions(self) -> List[ActionDefinition]:
        raise NotImplementedError

    def check_target(self, definition: ActionDefinition, request: ToolRequest) -> Optional[ToolResponse]:
        """Pre-dispatch checks on the request's target. None means pass."""
        return None

    def required_fields(self, definition: ActionDefinition, request: ToolRequest) -> Sequence[str]:
        typed = self.typed_required.get((request.type or "", definition.name))
        if typed is not None:
            return typed
        return definition.required

    def missing_field_message(self, field_name: str, action: str) -> Optional[str]:
        """Domain-specific message for a single missing field, if any."""
        return None

    def permission_key(self, definition: ActionDefinition, request: ToolRequest) -> str:
        """Key looked up in the permission tables; the action name by default."""
        return definition.name

    # ------------------------------------------------------------------
    # Context
    # ------------------------------------------------------------------

    @property
    def tool_config(self) -> ToolConfig:
        return self.config.tool(self.domain)

    def execution_context(self) -> str:
        if self.config.security.force_web_mode:
            return WEB_CONTEXT
        return get_execution_context()

    def is_web(self) -> bool:
        return self.execution_context() == WEB_CONTEXT

    def current_principal(self) -> Optional[Principal]:
        """The context principal, else the configured hosted user."""
        principal = get_principal()
        if principal is not None:
            return principal
        if self.config.web.user:
            user = self.repositories.users.find_by_email(self.config.web.user)
            if user is not None:
                return principal_from_user(user, self.repositories.roles, self.repositories.groups)
        return None

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def handle(self, arguments: Mapping[str, Any]) -> Dict[str, Any]:
        """Route one invocation; always returns an envelope dict."""
        return asdict(self.run(arguments))

    def run(self, arguments: Mapping[str, Any]) -> ToolResponse:
        try:
            request = ToolRequest.from_arguments(arguments)
        except ValidationError as exc:
            return self._request_error(exc)

        if request.action in DISCOVERY_ACTIONS:
            return DISCOVERY_BUILDERS[request.action](self, request)

        try:
            definition = self.router.resolve(request.action)
        except ActionRouterError as exc:
            allowed = ", ".join(exc.allowed_actions + list(DISCOVERY_ACTIONS))
            return error_response(
                f"Unsupported {self.domain} action '{request.action}'. Allowed actions: {allowed}",
                error_code=ErrorCode.VALIDATION_ERROR,
                error_type=ErrorType.VALIDATION,
                remediation=f"Use one of: {allowed}",
                details={"action": request.action, "allowed_actions": exc.allowed_actions},
            )

        web = self.is_web()
        if web and not self.tool_config.web_enabled:
            return forbidden_error(
                f"Permission denied: {self.label} tool is disabled for web access",
                error_code=ErrorCode.TOOL_DISABLED,
            )

        if definition.types and request.type not in definition.types:
            return error_response(
                f"Action '{definition.name}' requires type to be one of: {', '.join(definition.types)}",
                error_code=ErrorCode.VALIDATION_ERROR,
                error_type=ErrorType.VALIDATION,
                details={"field": "type"},
            )

        failure = self.check_target(definition, request)
        if failure is not None:
            return failure

        failure = self.validate_required(definition, request)
        if failure is not None:
            return failure

        principal: Optional[Principal] = None
        if web:
            principal = self.current_principal()
            failure = self.check_rate_limit(definition, principal) or self.authorize(
                definition, request, principal
            )
            if failure is not None:
                return failure

        if definition.destructive and request.dry_run:
            return self.preview(definition, request)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Dispatching %s.%s with %s",
                self.tool_name,
                definition.name,
                redact_for_logging(request.to_arguments()),
            )
        return execute_with_audit(
            tool=self.tool_name,
            action=definition.name,
            domain=self.domain,
            arguments=request.to_arguments(),
            handler=lambda: self.router.dispatch(definition.name, request=request),
            enabled=self.tool_config.audit_logging,
            audit_logger=self.audit_logger,
            user=principal.identifier if principal else None,
            context=self.execution_context(),
        )

    def _request_error(self, exc: ValidationError) -> ToolResponse:
        problems = []
        for err in exc.errors():
            location = ".".join(str(part) for part in err.get("loc", ()))
            if err.get("type") == "missing":
                problems.append(f"Missing required fields: {location}")
            else:
                problems.append(f"Invalid value for '{location}': {err.get('msg')}")
        return error_response(
            problems,
            error_code=ErrorCode.VALIDATION_ERROR,
            error_type=ErrorType.VALIDATION,
        )

    def validate_required(self, definition: ActionDefinition, request: ToolRequest) -> Optional[ToolResponse]:
        missing = request.missing(self.required_fields(definition, request))
        if not missing:
            return None
        message = None
        if len(missing) == 1:
            message = self.missing_field_message(missing[0], definition.name)
        return missing_fields_error(missing, message=message)

    def check_rate_limit(
        self, definition: ActionDefinition, principal: Optional[Principal]
    ) -> Optional[ToolResponse]:
        key = RateLimitManager.build_key(
            self.tool_name,
            definition.name,
            WEB_CONTEXT,
            principal.identifier if principal else None,
        )
        result = self.rate_limiter.check_limit(key)
        if result.allowed:
            return None
        return error_response(
            "Rate limit exceeded. Please wait before trying again.",
            error_code=ErrorCode.RATE_LIMIT_EXCEEDED,
            error_type=ErrorType.RATE_LIMIT,
            details={"limit": result.limit, "retry_after_seconds": round(result.reset_in, 2)},
        )

    def authorize(
        self,
        definition: ActionDefinition,
        request: ToolRequest,
        principal: Optional[Principal],
    ) -> Optional[ToolResponse]:
        """Hosted-context permission check. Fails closed."""
        if principal is None:
            self.audit_logger.permission_denied(self.tool_name, definition.name, "unauthenticated")
            return unauthorized_error()

        if self.config.security.require_mcp_permission and not self.permission_checker(
            principal, MCP_ACCESS_PERMISSION
        ):
            self.audit_logger.permission_denied(
                self.tool_name, definition.name, "mcp access", user=principal.identifier
            )
            return forbidden_error(
                "Permission denied: MCP server access required",
                required_permissions=[MCP_ACCESS_PERMISSION],
            )

        required = self.resolver.resolve(self.domain, self.permission_key(definition, request), request)
        missing = [p for p in required if not self.permission_checker(principal, p)]
        if missing:
            self.audit_logger.permission_denied(
                self.tool_name,
                definition.name,
                "missing permissions",
                user=principal.identifier,
                missing=missing,
            )
            return forbidden_error(
                f"Permission denied: Cannot {definition.name} {self.domain}",
                required_permissions=required,
            )
        return None

    def preview(self, definition: ActionDefinition, request: ToolRequest) -> ToolResponse:
        """Dry-run answer for destructive actions; nothing is executed."""
        return success_response(
            dry_run=True,
            would_execute=definition.name,
            tool=self.tool_name,
            arguments=request.to_arguments(),
            preview=f"Would execute {definition.name} on {self.domain}",
        )

    # ------------------------------------------------------------------
    # Handler helpers
    # ------------------------------------------------------------------

    def invalidate(self, segments: Sequence[str]) -> Dict[str, Any]:
        """Clear cache segments after a write.

        Invalidation is best-effort: a failure is logged and reported in the
        returned summary but never fails the write that triggered it.
        """
        try:
            self.cache.mark_dirty(segments)
            result = self.cache.clear_caches(list(segments))
        except Exception as exc:
            logger.warning("Cache invalidation failed for %s: %s", self.tool_name, exc)
            return {"cleared": False, "segments": list(segments), "error": str(exc)}
        return {"cleared": result["cache_cleared"], "segments": result["cleared_types"]}

    def typed_action(
        self,
        name: str,
        handlers: Mapping[str, Callable[..., ToolResponse]],
        *,
        summary: str,
        destructive: bool = False,
        examples: Tuple[Mapping[str, Any], ...] = (),
    ) -> ActionDefinition:
        """Action whose handler is chosen by ``request.type``."""
        table = dict(handlers)

        def handler(*, request: ToolRequest) -> ToolResponse:
            return table[request.type](request=request)

        return ActionDefinition(
            name=name,
            handler=handler,
            summary=summary,
            destructive=destructive,
            examples=examples,
            types=tuple(table),
        )

    def valid_site(self, site: Optional[str]) -> bool:
        return site is None or site in self.repositories.site_handles()

    def default_site(self) -> str:
        handles = self.repositories.site_handles()
        return handles[0] if handles else "default"


def tool_arguments(**kwargs: Any) -> Dict[str, Any]:
    """Collect the arguments a registered tool actually received."""
    return {key: value for key, value in kwargs.items() if value is not None}
