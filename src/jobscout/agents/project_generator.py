"""Project generator agent - portfolio project ideas for a target company."""

from typing import Any

from jobscout.agents.base import (
    AgentDefaults,
    AgentEndpoint,
    compact_json,
    extract_json,
)
from jobscout.schemas.agent import ProjectGeneratorInput

COMPANY_CONTEXT_LIMIT = 1200
DEFAULT_GOAL = "portfolio impact"


class ProjectGeneratorAgent(AgentEndpoint):
    """Suggests three projects matching the user's skills and the company.

    Payload: ``{"ideasText": <completion>, "ideas": [...]}`` where ``ideas``
    is present only when the model answered with parseable JSON.
    """

    name = "project-generator"
    input_model = ProjectGeneratorInput
    defaults = AgentDefaults(temperature=0.4, max_tokens=900)
    system_prompt = (
        "You design concise, high-impact project ideas tailored to a user's "
        "skills and a target company."
    )

    def build_user_prompt(self, data: ProjectGeneratorInput) -> str:  # type: ignore[override]
        company = data.company if data.company is not None else {}
        return (
            f"Company: {compact_json(company, COMPANY_CONTEXT_LIMIT)}\n"
            f"Skills: {compact_json(data.skills)}\n"
            f"Goal: {data.goal or DEFAULT_GOAL}\n"
            "Return 3 ideas as JSON with fields: title, description, impact, "
            "technologies, time_estimate."
        )

    def build_payload(self, text: str) -> dict[str, Any]:
        payload: dict[str, Any] = {"ideasText": text}
        parsed = extract_json(text)
        if isinstance(parsed, dict):
            parsed = parsed.get("ideas", parsed)
        if isinstance(parsed, list):
            payload["ideas"] = parsed
        return payload
