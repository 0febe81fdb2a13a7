"""Dispatch gateway: tool invocation -> upstream request -> uniform result.

``DispatchGateway.dispatch`` always returns a ``ToolResult``. Unknown tools,
bad arguments, upstream failures and unexpected faults all come back as
``is_error=True`` results with a single text item.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Literal
from urllib.parse import quote

from .errors import GatewayError, ValidationError
from .tools.registry import ToolDefinition, ToolRegistry
from .tools.schema import validate_arguments
from .upstream import UpstreamClient, UpstreamFailure, UpstreamRequest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolInvocation:
    tool_name: str
    arguments: dict[str, Any] | None = field(default_factory=dict)


@dataclass(frozen=True)
class ContentItem:
    kind: Literal["text", "structured"]
    payload: Any


@dataclass(frozen=True)
class ToolResult:
    content: tuple[ContentItem, ...]
    is_error: bool = False

    @classmethod
    def text(cls, message: str, is_error: bool = False) -> "ToolResult":
        return cls(content=(ContentItem("text", message),), is_error=is_error)

    @classmethod
    def structured(cls, payload: Any) -> "ToolResult":
        return cls(content=(ContentItem("structured", payload),), is_error=False)

    def to_mcp(self) -> dict[str, Any]:
        """Render as an MCP ``tools/call`` result."""
        content = []
        structured = None
        for item in self.content:
            if item.kind == "text":
                content.append({"type": "text", "text": item.payload})
            else:
                content.append({"type": "text", "text": json.dumps(item.payload)})
                if isinstance(item.payload, dict) and structured is None:
                    structured = item.payload
        result: dict[str, Any] = {"content": content, "isError": self.is_error}
        if structured is not None:
            result["structuredContent"] = structured
        return result


def build_request(definition: ToolDefinition, arguments: dict[str, Any]) -> UpstreamRequest:
    """Fill ``definition``'s template from already-validated ``arguments``."""
    template = definition.template
    path = template.path
    if "{" in path:
        # each placeholder fills exactly one path segment
        path = path.format(**{k: quote(str(v), safe="") for k, v in arguments.items()})
    query = tuple(
        (name, str(arguments[name])) for name in template.query_fields if name in arguments
    )
    body = arguments.get(template.body_field) if template.body_field else None
    return UpstreamRequest(method=template.method, path=path, query=query, body=body)


def failure_message(tool_name: str, failure: UpstreamFailure) -> str:
    status = str(failure.status_code) if failure.kind != "network" else "network error"
    return f"{tool_name} failed: {status} {failure.message}"


class DispatchGateway:
    def __init__(self, registry: ToolRegistry, client: UpstreamClient):
        self.registry = registry
        self.client = client

    def list_tools(self) -> list[dict[str, Any]]:
        return self.registry.catalog()

    async def dispatch(self, invocation: ToolInvocation) -> ToolResult:
        name = invocation.tool_name
        try:
            return await self._dispatch(invocation)
        except ValidationError as e:
            logger.info("rejected %s call: %s", name, e)
            return ToolResult.text(f"{name}: {e}", is_error=True)
        except GatewayError as e:
            logger.info("dispatch error: %s", e)
            return ToolResult.text(str(e), is_error=True)
        except Exception as e:
            logger.exception("unexpected fault dispatching %s", name)
            return ToolResult.text(f"{name} failed: internal error {type(e).__name__}: {e}", is_error=True)

    async def _dispatch(self, invocation: ToolInvocation) -> ToolResult:
        definition = self.registry.lookup(invocation.tool_name)
        if invocation.arguments is not None and not isinstance(invocation.arguments, dict):
            raise ValidationError("arguments", "wrong type (expected object)")
        arguments = validate_arguments(definition.fields, invocation.arguments)
        request = build_request(definition, arguments)
        logger.info("dispatch %s -> %s %s", definition.name, request.method, request.path)

        outcome = await self.client.send(request)
        if isinstance(outcome, UpstreamFailure):
            return ToolResult.text(failure_message(definition.name, outcome), is_error=True)
        return ToolResult.structured(outcome.body)
