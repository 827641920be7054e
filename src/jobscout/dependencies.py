"""FastAPI dependency injection container.

This module provides dependency injection functions for use with FastAPI's
Depends() pattern. Process-wide collaborators are built once in the
application lifespan and stored on ``app.state``; these functions only hand
them out, so tests can replace them through ``app.dependency_overrides``.
"""

from typing import Annotated

from fastapi import Depends, Request

from jobscout.config import Settings
from jobscout.core.database import Database
from jobscout.services.gateway import AgentGateway
from jobscout.services.provider import ProviderClient


# ========================================
# Settings Dependencies
# ========================================
def get_settings_from_request(request: Request) -> Settings:
    """Get settings from request state (set during lifespan).

    Args:
        request: The current request

    Returns:
        Settings: Application settings
    """
    return request.app.state.settings


# ========================================
# Database Dependencies
# ========================================
def get_database(request: Request) -> Database:
    """Get the database created at startup.

    Args:
        request: The current request

    Returns:
        Database: Shared database object
    """
    return request.app.state.database


# ========================================
# Service Dependencies
# ========================================
def get_gateway(request: Request) -> AgentGateway:
    """Get the agent gateway.

    Returns:
        AgentGateway: Gateway wired with rate limiter, cache, log and provider
    """
    return request.app.state.gateway


def get_provider(request: Request) -> ProviderClient:
    """Get the model provider client.

    Returns:
        ProviderClient: Shared provider client
    """
    return request.app.state.provider


# Type alias for common dependency patterns
SettingsDep = Annotated[Settings, Depends(get_settings_from_request)]
