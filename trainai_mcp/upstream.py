"""HTTP client for the Train.ai REST API.

``UpstreamClient.send`` never raises for an HTTP or network problem: it
returns an ``UpstreamSuccess`` or an ``UpstreamFailure`` and leaves the
reporting to the caller.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote, urlencode

import httpx

from .errors import UpstreamBodyError, UpstreamError, UpstreamHttpError, UpstreamNetworkError

logger = logging.getLogger(__name__)

# keep failure diagnostics readable in tool results and logs
MAX_DIAGNOSTIC_CHARS = 2000


@dataclass(frozen=True)
class UpstreamRequest:
    method: str
    path: str
    query: tuple[tuple[str, str], ...] = ()
    body: Any = None

    def url(self, base_url: str) -> str:
        url = base_url.rstrip("/") + self.path
        if self.query:
            url += "?" + urlencode(self.query, quote_via=quote)
        return url


@dataclass(frozen=True)
class UpstreamSuccess:
    status_code: int
    body: Any


@dataclass(frozen=True)
class UpstreamFailure:
    kind: str
    status_code: int | None
    message: str
    raw_body: str = ""

    @classmethod
    def from_error(cls, exc: UpstreamError) -> "UpstreamFailure":
        return cls(kind=exc.kind, status_code=exc.status_code, message=exc.message, raw_body=exc.raw_body)


UpstreamOutcome = UpstreamSuccess | UpstreamFailure


def _reject_constant(name: str):
    # NaN and Infinity parse in Python but cannot be sent on as JSON
    raise ValueError(f"non-standard JSON constant {name}")


def _clip(text: str) -> str:
    if len(text) <= MAX_DIAGNOSTIC_CHARS:
        return text
    return text[:MAX_DIAGNOSTIC_CHARS] + "..."


class UpstreamClient:
    """Relay requests to one base URL over a shared ``httpx.AsyncClient``."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={"accept": "application/json"},
        )

    async def __aenter__(self) -> "UpstreamClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def send(self, request: UpstreamRequest) -> UpstreamOutcome:
        try:
            status, body = await self._send(request)
        except UpstreamError as e:
            logger.warning(
                "upstream %s %s failed (%s): %s", request.method, request.path, e.kind, e.message
            )
            return UpstreamFailure.from_error(e)
        return UpstreamSuccess(status_code=status, body=body)

    async def _send(self, request: UpstreamRequest) -> tuple[int, Any]:
        url = request.url(self.base_url)
        kwargs: dict[str, Any] = {}
        if request.body is not None:
            kwargs["content"] = json.dumps(request.body).encode()
            kwargs["headers"] = {"content-type": "application/json"}

        logger.debug("upstream -> %s %s", request.method, url)
        try:
            response = await self._client.request(request.method, url, **kwargs)
        except httpx.RequestError as e:
            # DNS, connection refused, timeouts; message may be empty for some timeouts
            raise UpstreamNetworkError(str(e) or type(e).__name__) from e
        logger.debug("upstream <- %s %s", response.status_code, url)

        text = response.text
        if not 200 <= response.status_code <= 299:
            raise UpstreamHttpError(
                _clip(text) or response.reason_phrase,
                status_code=response.status_code,
                raw_body=text,
            )
        try:
            return response.status_code, json.loads(text, parse_constant=_reject_constant)
        except ValueError as e:
            raise UpstreamBodyError(
                f"invalid JSON body: {e}", status_code=response.status_code, raw_body=text
            ) from e
