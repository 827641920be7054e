"""Research agent - short startup research briefs."""

from typing import Any

from jobscout.agents.base import AgentDefaults, AgentEndpoint, compact_json
from jobscout.schemas.agent import ResearchInput

COMPANY_CONTEXT_LIMIT = 2000


class ResearchAgent(AgentEndpoint):
    """Answers a research query, optionally grounded in company data.

    Payload: ``{"text": <completion>}``
    """

    name = "research"
    input_model = ResearchInput
    defaults = AgentDefaults(temperature=0.2, max_tokens=800)
    system_prompt = (
        "You are a concise startup research assistant. "
        "Provide focused, actionable insights."
    )

    def build_user_prompt(self, data: ResearchInput) -> str:  # type: ignore[override]
        prompt = f"Query: {data.query}"
        if data.company:
            prompt += (
                "\nCompany Context: "
                f"{compact_json(data.company, COMPANY_CONTEXT_LIMIT)}"
            )
        if data.context:
            prompt += f"\nAdditional Context: {compact_json(data.context, 1000)}"
        return prompt

    def build_payload(self, text: str) -> dict[str, Any]:
        return {"text": text}
