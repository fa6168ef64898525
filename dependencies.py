"""
Centralized FastAPI dependencies shared by the route modules.
"""

from typing import Optional

from fastapi import Header, Request

from mods.service import ModProviderService


def get_mod_provider_service(request: Request) -> ModProviderService:
    """The service instance created during application startup."""
    return request.app.state.mod_provider_service


async def get_actor_id(x_user_id: Optional[str] = Header(None)) -> Optional[str]:
    """
    Id of the acting user, as set by the authentication layer in front of
    this service. Recorded alongside settings writes.
    """
    return x_user_id or None
