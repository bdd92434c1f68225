"""Shared FastAPI dependencies injected into route handlers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request

from misocycle.config import Settings, get_settings
from misocycle.services.cycle_service import CycleService


@dataclass(frozen=True)
class AuthContext:
    """Identity of the caller.

    Authentication is delegated to the gateway in front of the API, which
    forwards the user id in the ``X-User-Id`` header.
    """

    user_id: str


async def get_current_user(
    x_user_id: Annotated[str | None, Header()] = None,
) -> AuthContext:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Not authenticated")
    return AuthContext(user_id=x_user_id.strip())


def get_cycle_service(request: Request) -> CycleService:
    """The service built at startup and stored on ``app.state``."""
    service: CycleService | None = getattr(request.app.state, "cycle_service", None)
    if service is None:
        raise RuntimeError("CycleService not initialized; is the app lifespan running?")
    return service


# Annotated shortcuts for route signatures
CurrentUser = Annotated[AuthContext, Depends(get_current_user)]
Cycles = Annotated[CycleService, Depends(get_cycle_service)]
AppSettings = Annotated[Settings, Depends(get_settings)]
