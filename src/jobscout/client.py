"""Async client for the gateway's SSE endpoints.

Mirrors what the browser does: POST ``{input, userId, ...options}`` to
``/{endpoint}/stream`` and decode ``data:`` frames as they arrive.

Usage:
    async with GatewayClient("http://localhost:3141") as client:
        async for message in client.stream("research", "u1", {"query": "funding"}):
            print(message.type, message.data)

        result = await client.run("research", "u1", {"query": "funding"})
        print(result.data)
"""

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from types import TracebackType
from typing import Any

import httpx

from jobscout.core.logging import get_logger
from jobscout.core.sse import iter_sse_messages
from jobscout.schemas.stream import SSEEventType, SSEMessage

logger = get_logger(__name__)

ENDPOINT_PATHS = {
    "research": "/research/stream",
    "project-generator": "/project-generator/stream",
    "email-outreach": "/email-outreach/stream",
}


class GatewayClientError(Exception):
    """Raised when the gateway answers without opening a stream."""

    def __init__(self, status_code: int, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"HTTP {status_code}" + (f" - {body}" if body else ""))


@dataclass
class StreamResult:
    """Everything one stream produced, collected in order."""

    progress: list[str | None] = field(default_factory=list)
    chunks: list[Any] = field(default_factory=list)
    error: str | None = None
    done: bool = False

    @property
    def data(self) -> Any | None:
        """The last chunk, which is the whole payload for single-chunk streams."""
        return self.chunks[-1] if self.chunks else None

    @property
    def from_cache(self) -> bool:
        return "cache" in self.progress


class GatewayClient:
    """Thin httpx wrapper around the agent stream routes."""

    def __init__(
        self,
        base_url: str = "http://localhost:3141",
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 120.0,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Gateway root URL
            client: Existing client to reuse (not closed by this object)
            timeout: Read timeout when creating a client
        """
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def __aenter__(self) -> "GatewayClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client and not self._client.is_closed:
            await self._client.aclose()

    async def stream(
        self,
        endpoint: str,
        user_id: str,
        input: dict[str, Any] | None = None,
        **options: Any,
    ) -> AsyncIterator[SSEMessage]:
        """Yield stream messages for one agent request.

        Args:
            endpoint: "research", "project-generator" or "email-outreach"
            user_id: Requesting user
            input: Endpoint-specific input object
            **options: regeneration, cacheTTLSeconds, maxTokens, temperature, model

        Raises:
            KeyError: Unknown endpoint
            GatewayClientError: Non-2xx response (400, 429, 500)
        """
        path = ENDPOINT_PATHS[endpoint]
        body: dict[str, Any] = {"input": input, "userId": user_id, **options}

        async with self._client.stream("POST", path, json=body) as response:
            if not response.is_success:
                text = (await response.aread()).decode("utf-8", errors="replace")
                logger.warning(
                    "gateway_request_rejected",
                    endpoint=endpoint,
                    status_code=response.status_code,
                )
                raise GatewayClientError(response.status_code, text)

            async for message in iter_sse_messages(response.aiter_bytes()):
                yield message

    async def run(
        self,
        endpoint: str,
        user_id: str,
        input: dict[str, Any] | None = None,
        **options: Any,
    ) -> StreamResult:
        """Consume a whole stream and return what it produced."""
        result = StreamResult()
        async for message in self.stream(endpoint, user_id, input, **options):
            if message.type == SSEEventType.PROGRESS:
                result.progress.append(message.message)
            elif message.type == SSEEventType.CHUNK:
                result.chunks.append(message.data)
            elif message.type == SSEEventType.ERROR:
                result.error = message.message or "Unknown error"
            elif message.type == SSEEventType.DONE:
                result.done = True
        return result
