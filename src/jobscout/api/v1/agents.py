"""Agent streaming endpoints.

``POST /{endpoint}/stream`` for ``research``, ``project-generator`` and
``email-outreach``. The same router is mounted at the application root (the
paths the browser client calls) and under ``/api/v1/agents``.

Validation and rate-limit failures are raised as ``GatewayError`` and
rendered as JSON by the application exception handler. Once a stream is
returned, every outcome is an SSE event.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import StreamingResponse
from pydantic import ValidationError as PydanticValidationError

from jobscout.agents import AGENTS, get_agent
from jobscout.core.exceptions import UnknownEndpointError, ValidationError
from jobscout.core.logging import agent_log_context, get_logger
from jobscout.core.sse import sse_response
from jobscout.dependencies import get_gateway
from jobscout.schemas.agent import AgentRequest
from jobscout.schemas.common import ErrorResponse, RateLimitErrorResponse
from jobscout.services.gateway import AgentGateway

logger = get_logger(__name__)

router = APIRouter()


# =============================================================================
# Body Parsing
# =============================================================================


async def parse_agent_request(request: Request) -> AgentRequest:
    """Read and validate the request envelope.

    The body is parsed by hand so every malformed request maps to a 400
    ``ValidationError`` instead of FastAPI's default 422.
    """
    try:
        body: Any = await request.json()
    except ValueError as e:
        raise ValidationError("Request body must be valid JSON") from e

    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")

    try:
        return AgentRequest.model_validate(body)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or None
        if first["type"] == "missing":
            message = f"{field} is required"
        else:
            message = f"{field}: {first['msg']}" if field else first["msg"]
        raise ValidationError(message, field=field) from e


# =============================================================================
# Stream Endpoints
# =============================================================================


@router.post(
    "/{endpoint}/stream",
    response_class=StreamingResponse,
    status_code=status.HTTP_200_OK,
    summary="Stream an agent response",
    description=(
        "Run an agent request and stream progress, the result chunk and a "
        f"final done event as Server-Sent Events. Endpoints: {', '.join(AGENTS)}."
    ),
    responses={
        200: {
            "content": {"text/event-stream": {}},
            "description": "SSE stream of progress/chunk/error/done events",
        },
        400: {"model": ErrorResponse, "description": "Invalid request"},
        404: {"model": ErrorResponse, "description": "Unknown endpoint"},
        429: {"model": RateLimitErrorResponse, "description": "Rate limited"},
    },
)
async def stream_agent(
    endpoint: str,
    request: Request,
    gateway: Annotated[AgentGateway, Depends(get_gateway)],
) -> StreamingResponse:
    """Stream one agent request."""
    agent = get_agent(endpoint)
    if agent is None:
        raise UnknownEndpointError(endpoint)

    agent_request = await parse_agent_request(request)
    with agent_log_context(endpoint=agent.name, user_id=agent_request.user_id):
        logger.info(
            "agent_stream_request",
            regeneration=agent_request.options.regeneration,
        )
        messages = await gateway.open_stream(agent, agent_request)
    return sse_response(messages)
