"""Daily log endpoints: single days and whole periods."""

from __future__ import annotations

import uuid
from datetime import date
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Response

from misocycle.cycles.boundary import InvalidCycleInputError
from misocycle.cycles.date_math import add_days
from misocycle.cycles.domain import SymptomEntry
from misocycle.dependencies import Cycles, CurrentUser
from misocycle.models.tracking import (
    DailyLogCreate,
    DailyLogRead,
    LogResultRead,
    PeriodRangeCreate,
    PeriodResultRead,
)
from misocycle.services.cycle_service import LogNotFoundError

router = APIRouter(prefix="/logs", tags=["logs"])


@router.post("", response_model=LogResultRead)
async def log_day(user: CurrentUser, service: Cycles, body: DailyLogCreate) -> Any:
    symptoms = None
    if body.symptoms is not None:
        symptoms = [SymptomEntry(s.symptom_type, s.severity) for s in body.symptoms]
    try:
        return await service.log_day(
            user.user_id,
            body.log_date,
            flow_intensity=body.flow_intensity,
            mood=body.mood,
            energy=body.energy,
            symptoms=symptoms,
            notes=body.notes,
        )
    except InvalidCycleInputError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@router.post("/period", response_model=PeriodResultRead, status_code=201)
async def log_period(user: CurrentUser, service: Cycles, body: PeriodRangeCreate) -> Any:
    try:
        return await service.log_period_range(
            user.user_id,
            body.start_date,
            body.end_date,
            flow_intensity=body.flow_intensity,
            apply_pattern=body.apply_pattern,
        )
    except InvalidCycleInputError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@router.get("", response_model=list[DailyLogRead])
async def list_logs(
    user: CurrentUser,
    service: Cycles,
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
) -> Any:
    end = end_date or service.today()
    start = start_date or add_days(end, -30)
    if end < start:
        raise HTTPException(status_code=422, detail="end_date must not be before start_date")
    return await service.list_logs(user.user_id, start, end)


@router.get("/{log_date}", response_model=DailyLogRead)
async def get_log(log_date: date, user: CurrentUser, service: Cycles) -> Any:
    log = await service.get_log(user.user_id, log_date)
    if log is None:
        raise HTTPException(status_code=404, detail="No log for that date")
    return log


@router.delete("/{log_id}", status_code=204)
async def delete_log(log_id: uuid.UUID, user: CurrentUser, service: Cycles) -> Response:
    try:
        await service.delete_log(user.user_id, log_id)
    except LogNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Log not found") from exc
    return Response(status_code=204)
