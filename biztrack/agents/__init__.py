"""AI Agents package."""

from biztrack.agents.ai_agents import (
    EMPTY_RESPONSE_MESSAGE,
    SERVICE_ERROR_MESSAGE,
    InsightAgent,
)

__all__ = [
    "EMPTY_RESPONSE_MESSAGE",
    "SERVICE_ERROR_MESSAGE",
    "InsightAgent",
]
