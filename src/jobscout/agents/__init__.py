"""Agent endpoints served by the gateway.

Usage:
    from jobscout.agents import get_agent

    agent = get_agent("research")
"""

from jobscout.agents.base import AgentDefaults, AgentEndpoint, CompletionParams
from jobscout.agents.email_outreach import EmailOutreachAgent
from jobscout.agents.project_generator import ProjectGeneratorAgent
from jobscout.agents.research import ResearchAgent

AGENTS: dict[str, AgentEndpoint] = {
    agent.name: agent
    for agent in (ResearchAgent(), ProjectGeneratorAgent(), EmailOutreachAgent())
}


def get_agent(name: str) -> AgentEndpoint | None:
    """Look up an agent endpoint by route name."""
    return AGENTS.get(name)


__all__ = [
    "AGENTS",
    "AgentDefaults",
    "AgentEndpoint",
    "CompletionParams",
    "EmailOutreachAgent",
    "ProjectGeneratorAgent",
    "ResearchAgent",
    "get_agent",
]
