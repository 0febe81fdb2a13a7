"""Tool registry: tool name -> input shape and upstream request template."""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Iterable

from ..errors import DuplicateToolError, UnknownToolError
from .schema import FieldSpec, input_schema


@dataclass(frozen=True)
class RequestTemplate:
    """How a validated invocation maps onto one upstream HTTP request.

    ``path`` may contain ``{field}`` placeholders. ``query_fields`` go to the
    query string in this order; ``body_field`` (if any) is sent as the JSON body.
    """

    method: str
    path: str
    query_fields: tuple[str, ...] = ()
    body_field: str | None = None


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    fields: tuple[FieldSpec, ...]
    template: RequestTemplate

    def catalog_entry(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": input_schema(self.fields),
        }


class ToolRegistry:
    """Name-keyed table of tool definitions; read-only once frozen."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolDefinition] = {}
        self._frozen = False

    @classmethod
    def from_definitions(cls, definitions: Iterable[ToolDefinition]) -> "ToolRegistry":
        registry = cls()
        for definition in definitions:
            registry.register(definition)
        registry.freeze()
        return registry

    def register(self, definition: ToolDefinition) -> None:
        if self._frozen:
            raise RuntimeError("tool registry is frozen")
        if definition.name in self._tools:
            raise DuplicateToolError(definition.name)
        self._tools[definition.name] = definition

    def freeze(self) -> None:
        self._frozen = True
        self._tools = MappingProxyType(dict(self._tools))

    def lookup(self, name: str) -> ToolDefinition:
        try:
            return self._tools[name]
        except (KeyError, TypeError):
            raise UnknownToolError(name) from None

    def names(self) -> list[str]:
        return list(self._tools)

    def definitions(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    def catalog(self) -> list[dict[str, Any]]:
        """Entries for an MCP ``tools/list`` reply, in registration order."""
        return [d.catalog_entry() for d in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
