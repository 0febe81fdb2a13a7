"""Train.ai tool table."""

from .registry import RequestTemplate, ToolDefinition, ToolRegistry
from .schema import FieldSpec

MAX_CRAWL_DEPTH = 3

TRAINAI_TOOLS: tuple[ToolDefinition, ...] = (
    ToolDefinition(
        name="crawl",
        description="Crawl app DOM to discover routes, selectors, and snippets.",
        fields=(
            FieldSpec("url", "url", required=True, description="Absolute URL of the app to crawl."),
            FieldSpec(
                "depth",
                "integer",
                default=1,
                minimum=0,
                maximum=MAX_CRAWL_DEPTH,
                description="Link depth to follow from the start page.",
            ),
        ),
        template=RequestTemplate("POST", "/crawl", query_fields=("url", "depth")),
    ),
    ToolDefinition(
        name="doc_search",
        description="Search documentation chunks for a query.",
        fields=(FieldSpec("query", "string", required=True, description="Free-text search query."),),
        template=RequestTemplate("GET", "/doc_search", query_fields=("query",)),
    ),
    ToolDefinition(
        name="evaluate",
        description="Validate a selector against a route.",
        fields=(
            FieldSpec("selector", "string", required=True, description="CSS selector to check."),
            FieldSpec("route", "string", required=True, description="App route the selector should match on."),
        ),
        template=RequestTemplate("GET", "/evaluate", query_fields=("selector", "route")),
    ),
    ToolDefinition(
        name="persist_flow",
        description="Persist a discovered Train.ai flow.",
        fields=(FieldSpec("flow", "object", required=True, description="Flow document, stored as-is."),),
        template=RequestTemplate("POST", "/persist_flow", body_field="flow"),
    ),
    ToolDefinition(
        name="list_flows",
        description="List flows.",
        fields=(),
        template=RequestTemplate("GET", "/flows"),
    ),
    ToolDefinition(
        name="get_flow",
        description="Fetch a flow by id.",
        fields=(FieldSpec("id", "string", required=True, description="Flow id."),),
        template=RequestTemplate("GET", "/flows/{id}"),
    ),
)


def build_registry() -> ToolRegistry:
    """Return a frozen registry holding every Train.ai tool."""
    return ToolRegistry.from_definitions(TRAINAI_TOOLS)
