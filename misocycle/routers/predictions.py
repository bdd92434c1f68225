"""Forecast and insights endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from misocycle.dependencies import Cycles, CurrentUser
from misocycle.models.insights import ForecastRead, InsightsRead

router = APIRouter(tags=["predictions"])


@router.get("/predictions", response_model=ForecastRead)
async def predictions(user: CurrentUser, service: Cycles) -> Any:
    """Next period, fertile window, phase and irregularity alerts."""
    forecast = await service.forecast(user.user_id)
    return ForecastRead.model_validate(forecast)


@router.get("/insights", response_model=InsightsRead)
async def insights(user: CurrentUser, service: Cycles) -> Any:
    result = await service.insights(user.user_id)
    return InsightsRead.model_validate(result)
