"""
Server configuration for statamic-mcp.

Supports configuration via:
1. Environment variables (highest priority)
2. TOML config file (statamic-mcp.toml)
3. Default values (lowest priority)

Environment variables:
- STATAMIC_MCP_CONFIG_FILE: Path to TOML config file
- STATAMIC_MCP_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
- STATAMIC_MCP_STRUCTURED_LOGGING: Emit JSON-style log lines (true/false)
- STATAMIC_MCP_CONTENT_PATH: JSON seed file for the content store
- STATAMIC_MCP_SITES: Comma-separated site handles (default: "default")
- STATAMIC_MCP_WEB_ENABLED: Enable the hosted (web) surface
- STATAMIC_MCP_WEB_USER: Email of the principal used for hosted calls
- STATAMIC_MCP_FORCE_WEB_MODE: Treat direct invocations as hosted
- STATAMIC_MCP_REQUIRE_MCP_PERMISSION: Require "access mcp" for hosted calls
- STATAMIC_MCP_RATE_LIMIT: Hosted requests per minute per tool/action/user (0 disables)
- STATAMIC_MCP_<DOMAIN>_WEB_ENABLED: Per-tool web access (default false)
- STATAMIC_MCP_<DOMAIN>_AUDIT_LOGGING: Per-tool audit logging (default true)

Tools are reachable in hosted context only when enabled per domain, so a
fresh install exposes nothing over the web until configured.
"""

import os
import logging
from dataclasses import dataclass, field
from importlib.metadata import version as get_package_version, PackageNotFoundError
from pathlib import Path
from typing import Optional, List, Dict, Any, Tuple

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # Python < 3.11 fallback


logger = logging.getLogger(__name__)


def _get_version() -> str:
    """Get package version from metadata (single source of truth: pyproject.toml)."""
    try:
        return get_package_version("statamic-mcp")
    except PackageNotFoundError:
        return "0.1.0"  # Fallback for dev without install


_PACKAGE_VERSION = _get_version()

TOOL_DOMAINS: Tuple[str, ...] = (
    "entries",
    "terms",
    "globals",
    "assets",
    "blueprints",
    "structures",
    "users",
    "system",
    "content",
)
"""Domains that own a tool; each has its own web/audit switches."""

# Prefixes readable through system config_get
READABLE_SETTING_PREFIXES: Tuple[str, ...] = (
    "app.name",
    "app.env",
    "app.debug",
    "app.timezone",
    "statamic_mcp",
)

# Prefixes writable through system config_set
WRITABLE_SETTING_PREFIXES: Tuple[str, ...] = (
    "statamic_mcp.tools.",
    "statamic_mcp.security.force_web_mode",
)


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"true", "1", "yes", "on"}


@dataclass
class ToolConfig:
    """Per-domain switches.

    Attributes:
        web_enabled: Whether the tool answers hosted (web) invocations
        audit_logging: Whether start/completed/failed audit records are emitted
    """

    web_enabled: bool = False
    audit_logging: bool = True

    @classmethod
    def from_toml_dict(cls, data: Dict[str, Any]) -> "ToolConfig":
        return cls(
            web_enabled=_parse_bool(data.get("web_enabled", False)),
            audit_logging=_parse_bool(data.get("audit_logging", True)),
        )


@dataclass
class SecurityConfig:
    """Trust-boundary settings.

    Attributes:
        force_web_mode: Treat every invocation as hosted, even direct ones
        require_mcp_permission: Hosted principals also need ``access mcp``
    """

    force_web_mode: bool = False
    require_mcp_permission: bool = True

    @classmethod
    def from_toml_dict(cls, data: Dict[str, Any]) -> "SecurityConfig":
        return cls(
            force_web_mode=_parse_bool(data.get("force_web_mode", False)),
            require_mcp_permission=_parse_bool(data.get("require_mcp_permission", True)),
        )


@dataclass
class WebConfig:
    """Hosted surface settings.

    Attributes:
        enabled: Whether the server is allowed to run the hosted surface
        path: HTTP mount path for streamable-http transport
        user: Email of the user that hosted invocations act as
    """

    enabled: bool = False
    path: str = "/mcp/statamic"
    user: Optional[str] = None

    @classmethod
    def from_toml_dict(cls, data: Dict[str, Any]) -> "WebConfig":
        return cls(
            enabled=_parse_bool(data.get("enabled", False)),
            path=str(data.get("path", "/mcp/statamic")),
            user=data.get("user") or None,
        )


@dataclass
class RateLimitSettings:
    """Hosted-context rate limit (per tool, action, and user)."""

    enabled: bool = True
    requests_per_minute: int = 60

    @classmethod
    def from_toml_dict(cls, data: Dict[str, Any]) -> "RateLimitSettings":
        return cls(
            enabled=_parse_bool(data.get("enabled", True)),
            requests_per_minute=int(data.get("requests_per_minute", 60)),
        )


@dataclass
class AppConfig:
    """Host application facts surfaced by the system tool."""

    name: str = "Statamic"
    env: str = "production"
    debug: bool = False
    timezone: str = "UTC"

    @classmethod
    def from_toml_dict(cls, data: Dict[str, Any]) -> "AppConfig":
        return cls(
            name=str(data.get("name", "Statamic")),
            env=str(data.get("env", "production")),
            debug=_parse_bool(data.get("debug", False)),
            timezone=str(data.get("timezone", "UTC")),
        )


@dataclass
class ServerConfig:
    """Server configuration with support for env vars and TOML overrides."""

    # Logging configuration
    log_level: str = "INFO"
    structured_logging: bool = True

    # Server configuration
    server_name: str = "statamic-mcp"
    server_version: str = field(default_factory=lambda: _PACKAGE_VERSION)

    # Content store
    content_path: Optional[Path] = None
    sites: List[str] = field(default_factory=lambda: ["default"])

    app: AppConfig = field(default_factory=AppConfig)
    web: WebConfig = field(default_factory=WebConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    rate_limit: RateLimitSettings = field(default_factory=RateLimitSettings)
    tools: Dict[str, ToolConfig] = field(
        default_factory=lambda: {domain: ToolConfig() for domain in TOOL_DOMAINS}
    )

    @classmethod
    def from_env(cls, config_file: Optional[str] = None) -> "ServerConfig":
        """
        Create configuration from environment variables and optional TOML file.

        Priority (highest to lowest):
        1. Environment variables
        2. TOML config file
        3. Default values
        """
        config = cls()

        toml_path = config_file or os.environ.get("STATAMIC_MCP_CONFIG_FILE")
        if toml_path:
            config._load_toml(Path(toml_path))
        else:
            for default_path in ["statamic-mcp.toml", ".statamic-mcp.toml"]:
                if Path(default_path).exists():
                    config._load_toml(Path(default_path))
                    break

        config._load_env()

        return config

    def _load_toml(self, path: Path) -> None:
        """Load configuration from TOML file."""
        if not path.exists():
            logger.warning(f"Config file not found: {path}")
            return

        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.error(f"Error loading config file {path}: {e}")
            return

        if "logging" in data:
            log = data["logging"]
            if "level" in log:
                self.log_level = str(log["level"]).upper()
            if "structured" in log:
                self.structured_logging = _parse_bool(log["structured"])

        if "server" in data:
            srv = data["server"]
            if "name" in srv:
                self.server_name = str(srv["name"])

        if "content" in data:
            content = data["content"]
            if "path" in content:
                self.content_path = Path(content["path"])
            if "sites" in content:
                self.sites = [str(s) for s in content["sites"]] or ["default"]

        if "app" in data:
            self.app = AppConfig.from_toml_dict(data["app"])
        if "web" in data:
            self.web = WebConfig.from_toml_dict(data["web"])
        if "security" in data:
            self.security = SecurityConfig.from_toml_dict(data["security"])
        if "rate_limit" in data:
            self.rate_limit = RateLimitSettings.from_toml_dict(data["rate_limit"])

        for domain, section in data.get("tools", {}).items():
            if domain not in TOOL_DOMAINS:
                logger.warning("Ignoring config for unknown tool domain '%s'", domain)
                continue
            if isinstance(section, dict):
                self.tools[domain] = ToolConfig.from_toml_dict(section)

    def _load_env(self) -> None:
        """Load configuration from environment variables."""
        if level := os.environ.get("STATAMIC_MCP_LOG_LEVEL"):
            self.log_level = level.upper()

        if structured := os.environ.get("STATAMIC_MCP_STRUCTURED_LOGGING"):
            self.structured_logging = _parse_bool(structured)

        if content_path := os.environ.get("STATAMIC_MCP_CONTENT_PATH"):
            self.content_path = Path(content_path)

        if sites := os.environ.get("STATAMIC_MCP_SITES"):
            self.sites = [s.strip() for s in sites.split(",") if s.strip()] or ["default"]

        # Web surface
        if web_enabled := os.environ.get("STATAMIC_MCP_WEB_ENABLED"):
            self.web.enabled = _parse_bool(web_enabled)
        if web_user := os.environ.get("STATAMIC_MCP_WEB_USER"):
            self.web.user = web_user

        # Security
        if force_web := os.environ.get("STATAMIC_MCP_FORCE_WEB_MODE"):
            self.security.force_web_mode = _parse_bool(force_web)
        if require_perm := os.environ.get("STATAMIC_MCP_REQUIRE_MCP_PERMISSION"):
            self.security.require_mcp_permission = _parse_bool(require_perm)

        # Rate limiting
        if rpm := os.environ.get("STATAMIC_MCP_RATE_LIMIT"):
            try:
                self.rate_limit.requests_per_minute = int(rpm)
                self.rate_limit.enabled = self.rate_limit.requests_per_minute > 0
            except ValueError:
                logger.warning(f"Invalid STATAMIC_MCP_RATE_LIMIT: {rpm}, using default")

        # Per-tool switches
        for domain in TOOL_DOMAINS:
            prefix = f"STATAMIC_MCP_{domain.upper()}"
            tool = self.tools.setdefault(domain, ToolConfig())
            if web := os.environ.get(f"{prefix}_WEB_ENABLED"):
                tool.web_enabled = _parse_bool(web)
            if audit := os.environ.get(f"{prefix}_AUDIT_LOGGING"):
                tool.audit_logging = _parse_bool(audit)

    def tool(self, domain: str) -> ToolConfig:
        """Switches for ``domain``; unknown domains get the closed defaults."""
        return self.tools.get(domain) or ToolConfig()

    # ------------------------------------------------------------------
    # Dotted settings view (system config_get / config_set)
    # ------------------------------------------------------------------

    def as_settings(self) -> Dict[str, Any]:
        """Nested settings tree addressed by dotted keys."""
        return {
            "app": {
                "name": self.app.name,
                "env": self.app.env,
                "debug": self.app.debug,
                "timezone": self.app.timezone,
            },
            "statamic_mcp": {
                "server_name": self.server_name,
                "version": self.server_version,
                "sites": list(self.sites),
                "web": {"enabled": self.web.enabled, "path": self.web.path},
                "security": {
                    "force_web_mode": self.security.force_web_mode,
                    "require_mcp_permission": self.security.require_mcp_permission,
                },
                "rate_limit": {
                    "enabled": self.rate_limit.enabled,
                    "requests_per_minute": self.rate_limit.requests_per_minute,
                },
                "tools": {
                    domain: {
                        "web_enabled": tool.web_enabled,
                        "audit_logging": tool.audit_logging,
                    }
                    for domain, tool in self.tools.items()
                },
            },
        }

    def get_setting(self, key: str) -> Any:
        """Resolve a dotted key such as ``statamic_mcp.tools.entries``.

        Raises:
            KeyError: If the key does not exist
        """
        node: Any = self.as_settings()
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                raise KeyError(key)
            node = node[part]
        return node

    def set_setting(self, key: str, value: Any) -> Any:
        """Apply a runtime override for a writable dotted key.

        Supports ``statamic_mcp.tools.<domain>[.<switch>]`` and
        ``statamic_mcp.security.force_web_mode``. Returns the stored value.

        Raises:
            KeyError: If the key does not name a writable setting
            ValueError: If the value has the wrong shape
        """
        parts = key.split(".")
        if parts == ["statamic_mcp", "security", "force_web_mode"]:
            self.security.force_web_mode = _parse_bool(value)
            return self.security.force_web_mode

        if parts[:2] == ["statamic_mcp", "tools"] and len(parts) in (3, 4):
            domain = parts[2]
            if domain not in TOOL_DOMAINS:
                raise KeyError(key)
            tool = self.tools.setdefault(domain, ToolConfig())
            if len(parts) == 3:
                if not isinstance(value, dict):
                    raise ValueError(f"Value for '{key}' must be an object")
                for switch, switch_value in value.items():
                    if switch not in ("web_enabled", "audit_logging"):
                        raise KeyError(f"{key}.{switch}")
                    setattr(tool, switch, _parse_bool(switch_value))
                return {"web_enabled": tool.web_enabled, "audit_logging": tool.audit_logging}
            switch = parts[3]
            if switch not in ("web_enabled", "audit_logging"):
                raise KeyError(key)
            setattr(tool, switch, _parse_bool(value))
            return getattr(tool, switch)

        raise KeyError(key)

    def setup_logging(self) -> None:
        """Configure logging based on settings."""
        level = getattr(logging, self.log_level, logging.INFO)

        if self.structured_logging:
            # JSON-style structured logging
            formatter = logging.Formatter(
                '{"timestamp":"%(asctime)s","level":"%(levelname)s",'
                '"logger":"%(name)s","message":"%(message)s"}'
            )
        else:
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )

        # stdout carries the stdio transport; logs go to stderr
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)

        root_logger = logging.getLogger("statamic_mcp")
        root_logger.setLevel(level)
        for existing in list(root_logger.handlers):
            if getattr(existing, "_statamic_mcp_handler", False):
                root_logger.removeHandler(existing)
        handler._statamic_mcp_handler = True  # type: ignore[attr-defined]
        root_logger.addHandler(handler)


# Global configuration instance
_config: Optional[ServerConfig] = None


def get_config() -> ServerConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = ServerConfig.from_env()
    return _config


def set_config(config: ServerConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
