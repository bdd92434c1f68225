"""User settings, onboarding and logging streak endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException

from misocycle.cycles.boundary import InvalidCycleInputError
from misocycle.dependencies import Cycles, CurrentUser
from misocycle.models.tracking import OnboardingRequest, SettingsRead, SettingsUpdate

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("", response_model=SettingsRead)
async def get_settings(user: CurrentUser, service: Cycles) -> Any:
    """Settings with the streak as it stands today (0 once lapsed)."""
    settings = await service.get_settings(user.user_id)
    result = SettingsRead.model_validate(settings)
    result.logging_streak = await service.effective_streak(user.user_id)
    return result


@router.patch("", response_model=SettingsRead)
async def update_settings(user: CurrentUser, service: Cycles, body: SettingsUpdate) -> Any:
    return await service.update_settings(
        user.user_id,
        average_cycle_length=body.average_cycle_length,
        average_period_length=body.average_period_length,
    )


@router.post("/onboarding", response_model=SettingsRead)
async def complete_onboarding(
    user: CurrentUser, service: Cycles, body: OnboardingRequest
) -> Any:
    try:
        return await service.complete_onboarding(
            user.user_id,
            average_cycle_length=body.average_cycle_length,
            average_period_length=body.average_period_length,
            last_period_start=body.last_period_start,
        )
    except InvalidCycleInputError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@router.post("/streak/reset", response_model=SettingsRead)
async def reset_streak(user: CurrentUser, service: Cycles) -> Any:
    return await service.reset_streak(user.user_id)
