"""Chat-completion provider client.

Thin async client for an OpenAI-compatible ``/v1/chat/completions`` endpoint.
Every call goes through ``fetch_with_retry`` so 5xx/429 answers and
transport failures are retried with backoff before the gateway sees them.

The client does not own global state: the HTTP client and credentials are
handed in at construction (in the application lifespan) and can be swapped
with ``reconfigure``.
"""

from dataclasses import dataclass, field
from typing import Any

import httpx

from jobscout.config import Settings
from jobscout.core.exceptions import (
    ProviderConfigurationError,
    UpstreamError,
    UpstreamHTTPError,
    UpstreamTransportError,
)
from jobscout.core.logging import get_logger
from jobscout.core.retry import RetryOptions, fetch_with_retry

logger = get_logger(__name__)

COMPLETIONS_PATH = "/v1/chat/completions"


# -----------------------------------------------------------------------------
# DTOs
# -----------------------------------------------------------------------------


@dataclass
class ChatMessage:
    """One prompt message."""

    role: str
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class Completion:
    """Result of a non-streaming chat completion."""

    text: str
    model: str
    usage: dict[str, Any] = field(default_factory=dict)


# -----------------------------------------------------------------------------
# Client
# -----------------------------------------------------------------------------


class ProviderClient:
    """Async chat-completion client with retries.

    Usage:
        ```python
        provider = ProviderClient(http_client, api_key="sk-...")
        completion = await provider.complete(
            messages=[ChatMessage("user", "Hello")],
            model="gpt-4o-mini",
            temperature=0.2,
            max_tokens=800,
        )
        ```
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str | None,
        *,
        retry: RetryOptions | None = None,
    ) -> None:
        """Initialize the provider client.

        Args:
            client: Shared HTTP client (base_url points at the provider)
            api_key: Bearer token; None or empty leaves the client unconfigured
            retry: Retry tunables for each completion call
        """
        self._client = client
        self._api_key = api_key or None
        self.retry = retry or RetryOptions(retries=2)

    @classmethod
    def from_settings(
        cls, settings: Settings, client: httpx.AsyncClient
    ) -> "ProviderClient":
        """Build a client using the provider and retry settings."""
        return cls(
            client,
            settings.openai_api_key.get_secret_value(),
            retry=RetryOptions(
                retries=settings.upstream_retries,
                min_delay_ms=settings.upstream_retry_min_delay_ms,
                max_delay_ms=settings.upstream_retry_max_delay_ms,
            ),
        )

    @property
    def is_configured(self) -> bool:
        """Whether an API key is present."""
        return self._api_key is not None

    def reconfigure(self, api_key: str | None) -> None:
        """Swap the credentials used for subsequent calls."""
        self._api_key = api_key or None
        logger.info("provider_reconfigured", configured=self.is_configured)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        if not self._client.is_closed:
            await self._client.aclose()

    async def complete(
        self,
        *,
        messages: list[ChatMessage],
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> Completion:
        """Run one chat completion.

        Args:
            messages: Prompt messages in order
            model: Provider model name
            temperature: Sampling temperature
            max_tokens: Completion token cap

        Returns:
            Completion with the first choice's content

        Raises:
            ProviderConfigurationError: No API key configured
            UpstreamHTTPError: Non-2xx status after retries
            UpstreamTransportError: Provider unreachable after retries
            UpstreamError: Response body could not be understood
        """
        if not self._api_key:
            raise ProviderConfigurationError()

        request = self._client.build_request(
            "POST",
            COMPLETIONS_PATH,
            json={
                "model": model,
                "temperature": temperature,
                "max_tokens": max_tokens,
                "messages": [m.to_dict() for m in messages],
                "stream": False,
            },
            headers={"Authorization": f"Bearer {self._api_key}"},
        )

        try:
            response = await fetch_with_retry(self._client, request, self.retry)
        except httpx.TransportError as e:
            logger.error("provider_request_error", error=str(e), model=model)
            raise UpstreamTransportError(f"Provider request failed: {e}") from e

        if not response.is_success:
            logger.error(
                "provider_request_failed",
                status_code=response.status_code,
                model=model,
            )
            raise UpstreamHTTPError(response.status_code, response.text)

        return self._parse_completion(response, model)

    @staticmethod
    def _parse_completion(response: httpx.Response, model: str) -> Completion:
        """Extract ``choices[0].message.content`` from the response body."""
        try:
            data = response.json()
            text = data["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise UpstreamError(f"Malformed provider response: {e}") from e

        return Completion(
            text=text,
            model=data.get("model") or model,
            usage=data.get("usage") or {},
        )
