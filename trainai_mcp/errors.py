"""Error taxonomy for tool dispatch.

None of these escape the dispatch gateway: each one is turned into an
error-flagged tool result there.
"""


class GatewayError(Exception):
    """Base class for every reportable dispatch failure."""


class DuplicateToolError(GatewayError):
    def __init__(self, name: str):
        super().__init__(f"duplicate tool: {name}")
        self.name = name


class UnknownToolError(GatewayError):
    def __init__(self, name: str):
        super().__init__(f"unknown tool {name}")
        self.name = name


class ValidationError(GatewayError):
    """An argument failed its field's declared type or constraint."""

    def __init__(self, field: str, reason: str):
        super().__init__(f"invalid argument '{field}': {reason}")
        self.field = field
        self.reason = reason


class UpstreamError(GatewayError):
    """The upstream API call did not produce a usable JSON body."""

    kind = "upstream"

    def __init__(self, message: str, status_code: int | None = None, raw_body: str = ""):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.raw_body = raw_body


class UpstreamHttpError(UpstreamError):
    kind = "http"


class UpstreamNetworkError(UpstreamError):
    kind = "network"


class UpstreamBodyError(UpstreamError):
    kind = "body"
