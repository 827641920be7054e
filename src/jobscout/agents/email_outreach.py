"""Email outreach agent - three personalised cold-email variations.

The model is asked for a JSON object::

    {
      "email_variations": {"variations": [
        {"type": "technical" | "value-first" | "personal",
         "title", "description", "subject", "body", "rationale"}, ...]},
      "recommendation": str,
      "key_talking_points": [str, ...],
      "personalization_notes": str
    }

The raw text is always streamed as ``emailsText``; the parsed object is
attached as ``emails`` when the answer is valid JSON.
"""

from typing import Any

from jobscout.agents.base import (
    AgentDefaults,
    AgentEndpoint,
    compact_json,
    extract_json,
)
from jobscout.schemas.agent import EmailOutreachInput

VARIATION_TYPES = ("technical", "value-first", "personal")

# Truncation of research sections inside the prompt
RESEARCH_LIMITS = {
    "pain_points": ("Pain Points", 500),
    "technical_landscape": ("Tech Stack", 300),
    "opportunity_signals": ("Opportunities", 300),
    "key_people": ("Key People", 200),
}

SYSTEM_PROMPT = """You are an expert career coach and technical communicator specializing in outreach emails.

Generate 3 distinct, personalized email variations for reaching out to a company about a portfolio project:
1. Technical Focus ("technical"): implementation details, technical approach, engineering decisions.
2. Value-First ("value-first"): business impact, quantifiable results, outcomes.
3. Personal Connection ("personal"): genuine interest in and alignment with the company mission.

Each email:
- References specific company information (research, mission, products or stack).
- Explains what the project does and why it matters to this company, with concrete metrics or technologies.
- Has a compelling, specific subject line and 3-4 short paragraphs (150-250 words).
- Ends with a clear, low-friction call to action.

Return only valid JSON (no markdown, no code fences) with this shape:
{"email_variations": {"variations": [{"type", "title", "description", "subject", "body", "rationale"}]},
 "recommendation": string, "key_talking_points": [string], "personalization_notes": string}
Never omit a field: use [] for empty arrays and a short placeholder for empty strings."""


def _bullet(label: str, value: Any) -> str | None:
    if not value:
        return None
    if isinstance(value, list):
        value = ", ".join(str(v) for v in value)
    return f"- {label}: {value}"


class EmailOutreachAgent(AgentEndpoint):
    """Writes technical, value-first and personal outreach emails.

    Payload: ``{"emailsText": <completion>, "emails": {...}}``
    """

    name = "email-outreach"
    input_model = EmailOutreachInput
    defaults = AgentDefaults(temperature=0.7, max_tokens=1500)
    system_prompt = SYSTEM_PROMPT

    def build_user_prompt(self, data: EmailOutreachInput) -> str:  # type: ignore[override]
        company_name = data.company.name or "the company"
        project_title = data.project.title or "Untitled project"
        profile = data.user_profile

        sections: list[str | None] = [
            "Generate 3 personalized outreach email variations for the following scenario:",
            "",
            "**User Profile:**",
            f"- Name: {(profile.full_name if profile else None) or 'User'}",
        ]
        if profile:
            sections += [
                _bullet("Skills", profile.skills),
                _bullet("Career Interests", profile.career_interests),
                _bullet("Target Roles", profile.target_roles),
            ]

        sections += [
            "",
            f"**Company:** {company_name}",
            _bullet("Mission", data.company.one_liner),
            _bullet("Website", data.company.website),
            _bullet("Industries", data.company.industries),
            _bullet("YC Batch", data.company.batch),
            "",
            f"**Project:** {project_title}",
            _bullet("Description", data.project.description),
            _bullet("GitHub", data.project.github_url),
            _bullet("Demo", data.project.deployment_url),
            _bullet("Status", data.project.status),
            "",
        ]

        research = data.research
        research_lines = []
        if research:
            for key, (label, limit) in RESEARCH_LIMITS.items():
                value = getattr(research, key)
                if value:
                    research_lines.append(f"- {label}: {compact_json(value, limit)}...")
        if research_lines:
            sections += ["**Company Research Available:**", *research_lines]
        else:
            sections.append(
                "**Note:** No company research available - generate emails based "
                "on company data and project details."
            )

        if data.tone_preference:
            sections.append(f"**Tone Preference:** {data.tone_preference}")
        if data.additional_context:
            sections.append(f"**Additional Context:** {data.additional_context}")

        sections += [
            "",
            "**Your Task:**",
            "Generate 3 distinct email variations (technical, value-first, personal) that:",
            f"1. Are personalized to {company_name} specifically",
            f'2. Showcase the project "{project_title}" effectively',
            "3. Reference company research when available",
            "4. Match the user's background and skills",
            "5. Include clear CTAs and are ready to send",
        ]
        return "\n".join(line for line in sections if line is not None)

    def build_payload(self, text: str) -> dict[str, Any]:
        payload: dict[str, Any] = {"emailsText": text}
        parsed = extract_json(text)
        if isinstance(parsed, dict):
            payload["emails"] = parsed
        return payload
