"""Agent request schemas.

Every agent endpoint accepts the same envelope::

    {
      "userId": "u1",
      "endpoint": "research",          # optional, must match the route
      "input": {...},                  # endpoint-specific
      "options": {"regeneration": true, "cacheTTLSeconds": 60, ...}
    }

The browser client spreads ``options`` into the top level of the body, so
option keys are also accepted there. Keys nested under ``options`` win.

``input`` is kept as the raw dict that was received: it is hashed and logged
verbatim. Each agent validates it separately against its own input model.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from jobscout.schemas.common import BaseSchema

OPTION_KEYS = ("regeneration", "cacheTTLSeconds", "maxTokens", "temperature", "model")


# =============================================================================
# Envelope
# =============================================================================


class AgentOptions(BaseSchema):
    """Per-request overrides.

    Attributes:
        regeneration: Skip the cache read (the result is still cached)
        cache_ttl_seconds: TTL for the cache entry written by this request
        max_tokens: Completion token cap
        temperature: Sampling temperature
        model: Provider model name
    """

    regeneration: bool = False
    cache_ttl_seconds: int | None = Field(None, alias="cacheTTLSeconds", ge=1)
    max_tokens: int | None = Field(None, alias="maxTokens", ge=1, le=16384)
    temperature: float | None = Field(None, ge=0, le=2)
    model: str | None = Field(None, min_length=1, max_length=100)


class AgentRequest(BaseSchema):
    """Inbound body for ``POST /{endpoint}/stream``."""

    user_id: str = Field(..., alias="userId", min_length=1, max_length=255)
    endpoint: str | None = None
    input: dict[str, Any] | None = None
    options: AgentOptions = Field(default_factory=AgentOptions)

    @model_validator(mode="before")
    @classmethod
    def merge_flattened_options(cls, data: Any) -> Any:
        """Fold top-level option keys into ``options``.

        A missing or null ``options`` is treated as an empty object.
        """
        if not isinstance(data, dict):
            return data
        nested = data.get("options")
        if nested is None:
            nested = {}
        if not isinstance(nested, dict):
            return data
        flat = {key: data[key] for key in OPTION_KEYS if key in data}
        return {**data, "options": {**flat, **nested}}

    def fingerprint_source(self, endpoint: str) -> dict[str, Any]:
        """The structure hashed into the request fingerprint.

        A missing ``input`` is left out entirely rather than hashed as null.
        """
        source: dict[str, Any] = {"endpoint": endpoint, "userId": self.user_id}
        if self.input is not None:
            source["input"] = self.input
        return source


# =============================================================================
# Endpoint Inputs
# =============================================================================


class _AgentInput(BaseModel):
    """Inputs tolerate unknown keys; the client sends extra context."""

    model_config = ConfigDict(extra="allow", str_strip_whitespace=True)


class ResearchInput(_AgentInput):
    """Input for the research endpoint."""

    query: str = Field(..., min_length=1)
    company: Any = None
    context: Any = None


class ProjectGeneratorInput(_AgentInput):
    """Input for the project-generator endpoint; every field is optional."""

    company: Any = None
    skills: list[str] = Field(default_factory=list)
    goal: str | None = None


class UserProfile(_AgentInput):
    full_name: str | None = None
    skills: list[str] = Field(default_factory=list)
    career_interests: list[str] | None = None
    target_roles: list[str] | None = None


class CompanyInfo(_AgentInput):
    name: str | None = None
    website: str | None = None
    one_liner: str | None = None
    industries: list[str] | None = None
    batch: str | None = None


class ProjectInfo(_AgentInput):
    title: str | None = None
    description: str | None = None
    github_url: str | None = None
    deployment_url: str | None = None
    status: str | None = None


class CompanyResearch(_AgentInput):
    business_intel: Any = None
    technical_landscape: Any = None
    key_people: Any = None
    opportunity_signals: Any = None
    pain_points: Any = None


class EmailOutreachInput(_AgentInput):
    """Input for the email-outreach endpoint.

    ``company`` and ``project`` are required; the rest sharpens the prompt.
    """

    company: CompanyInfo
    project: ProjectInfo
    user_profile: UserProfile | None = Field(None, alias="userProfile")
    research: CompanyResearch | None = None
    tone_preference: Literal["professional", "friendly", "enthusiastic"] | None = (
        None
    )
    additional_context: str | None = None

    model_config = ConfigDict(extra="allow", populate_by_name=True)
