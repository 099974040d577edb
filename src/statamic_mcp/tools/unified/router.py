"""Action registration and dispatch for unified tools.

Each tool builds an ``ActionRouter`` once, at initialization, from a list of
``ActionDefinition`` records. Dispatch is a dictionary lookup; unknown
actions raise ``ActionRouterError`` carrying the allowed action names.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActionDefinition:
    """Static metadata and handler for one action.

    Attributes:
        name: Canonical action name
        handler: Callable invoked with the dispatch kwargs
        summary: One-line description shown by ``help``/``discover``
        aliases: Alternative names routed to the same handler
        purpose: Longer guidance for agents
        required: Request fields that must be present and non-empty
        destructive: Whether the action changes or removes existing state
        examples: Example argument payloads
        types: For typed tools, the ``type`` values this action applies to
    """

    name: str
    handler: Callable[..., Any]
    summary: str = ""
    aliases: Tuple[str, ...] = ()
    purpose: str = ""
    required: Tuple[str, ...] = ()
    destructive: bool = False
    examples: Tuple[Mapping[str, Any], ...] = field(default_factory=tuple)
    types: Tuple[str, ...] = ()

    def describe(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "name": self.name,
            "summary": self.summary,
            "destructive": self.destructive,
        }
        if self.purpose:
            result["purpose"] = self.purpose
        if self.required:
            result["required"] = list(self.required)
        if self.aliases:
            result["aliases"] = list(self.aliases)
        if self.types:
            result["types"] = list(self.types)
        return result


class ActionRouterError(ValueError):
    """Raised when an action name does not resolve."""

    def __init__(self, message: str, *, allowed_actions: Sequence[str]):
        super().__init__(message)
        self.allowed_actions: List[str] = list(allowed_actions)


class ActionRouter:
    """Registration map from action name (or alias) to ``ActionDefinition``."""

    def __init__(self, *, tool_name: str, actions: Sequence[ActionDefinition]):
        self.tool_name = tool_name
        self._actions: Dict[str, ActionDefinition] = {}
        self._lookup: Dict[str, ActionDefinition] = {}

        for definition in actions:
            name = definition.name.lower()
            if name in self._lookup:
                raise ValueError(f"Duplicate action '{name}' for tool {tool_name}")
            self._actions[name] = definition
            self._lookup[name] = definition
            for alias in definition.aliases:
                alias_key = alias.lower()
                if alias_key in self._lookup:
                    raise ValueError(f"Duplicate action alias '{alias_key}' for tool {tool_name}")
                self._lookup[alias_key] = definition

    def allowed_actions(self) -> List[str]:
        return list(self._actions)

    def definitions(self) -> List[ActionDefinition]:
        return list(self._actions.values())

    def describe(self) -> Dict[str, str]:
        return {name: d.summary for name, d in self._actions.items()}

    def get(self, action: str) -> Optional[ActionDefinition]:
        return self._lookup.get((action or "").strip().lower())

    def resolve(self, action: str) -> ActionDefinition:
        definition = self.get(action)
        if definition is None:
            raise ActionRouterError(
                f"Unsupported {self.tool_name} action '{action}'",
                allowed_actions=self.allowed_actions(),
            )
        return definition

    def dispatch(self, action: str, **kwargs: Any) -> Any:
        definition = self.resolve(action)
        logger.debug("Dispatching %s.%s", self.tool_name, definition.name)
        return definition.handler(**kwargs)
