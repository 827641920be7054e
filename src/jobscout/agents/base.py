"""Base class for agent endpoints.

An agent endpoint knows only about its own prompts and payload shape:

- ``input_model`` validates the endpoint-specific ``input`` object
- ``build_messages`` turns validated input into system/user messages
- ``build_payload`` turns the completion text into the cached/streamed payload

Rate limiting, caching, retries, logging and streaming are shared and live in
``jobscout.services.gateway``.
"""

import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from jobscout.core.exceptions import ValidationError
from jobscout.schemas.agent import AgentOptions
from jobscout.services.provider import ChatMessage

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*\n?(.*?)\n?```$", re.DOTALL)


@dataclass(frozen=True)
class AgentDefaults:
    """Completion parameters used when the request does not override them."""

    model: str = "gpt-4o-mini"
    temperature: float = 0.2
    max_tokens: int = 800


@dataclass(frozen=True)
class CompletionParams:
    """Resolved parameters for one provider call."""

    model: str
    temperature: float
    max_tokens: int


class AgentEndpoint(ABC):
    """One streaming agent endpoint.

    Subclasses set the class attributes and implement the two prompt hooks.
    """

    name: ClassVar[str]
    input_model: ClassVar[type[BaseModel]]
    defaults: ClassVar[AgentDefaults] = AgentDefaults()
    system_prompt: ClassVar[str]

    # Optional per-endpoint rate limit overrides (None -> settings default)
    rate_limit_capacity: ClassVar[int | None] = None
    rate_limit_window_seconds: ClassVar[int | None] = None

    def parse_input(self, raw: dict[str, Any] | None) -> BaseModel:
        """Validate the raw ``input`` object.

        Raises:
            ValidationError: With the first offending field as ``input.<path>``
        """
        try:
            return self.input_model.model_validate(raw or {})
        except PydanticValidationError as e:
            first = e.errors()[0]
            field = ".".join(["input", *(str(part) for part in first["loc"])])
            if first["type"] == "missing":
                message = f"{field} is required"
            else:
                message = f"{field}: {first['msg']}"
            raise ValidationError(message, field=field) from e

    def resolve_params(
        self, options: AgentOptions, default_model: str | None = None
    ) -> CompletionParams:
        """Merge request options over the endpoint defaults."""
        return CompletionParams(
            model=options.model or default_model or self.defaults.model,
            temperature=(
                options.temperature
                if options.temperature is not None
                else self.defaults.temperature
            ),
            max_tokens=options.max_tokens or self.defaults.max_tokens,
        )

    def build_messages(self, data: BaseModel) -> list[ChatMessage]:
        """System prompt followed by the endpoint's user prompt."""
        return [
            ChatMessage(role="system", content=self.system_prompt),
            ChatMessage(role="user", content=self.build_user_prompt(data)),
        ]

    @abstractmethod
    def build_user_prompt(self, data: BaseModel) -> str:
        """Render the user message for validated input."""

    @abstractmethod
    def build_payload(self, text: str) -> dict[str, Any]:
        """Shape the completion text into the streamed payload."""


# =============================================================================
# Helpers
# =============================================================================


def compact_json(value: Any, limit: int | None = None) -> str:
    """Serialize prompt context compactly, optionally truncated."""
    text = json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)
    if limit is not None:
        return text[:limit]
    return text


def extract_json(text: str) -> Any | None:
    """Parse a JSON object or array out of model output.

    Accepts bare JSON, a fenced code block, or JSON embedded in prose.
    Returns None when nothing parseable is found.
    """
    candidate = text.strip()
    fenced = _FENCE_RE.match(candidate)
    if fenced:
        candidate = fenced.group(1).strip()

    try:
        parsed = json.loads(candidate)
    except ValueError:
        parsed = None
        for opener, closer in (("{", "}"), ("[", "]")):
            start, end = candidate.find(opener), candidate.rfind(closer)
            if start == -1 or end <= start:
                continue
            try:
                parsed = json.loads(candidate[start : end + 1])
                break
            except ValueError:
                continue

    if isinstance(parsed, dict | list):
        return parsed
    return None
