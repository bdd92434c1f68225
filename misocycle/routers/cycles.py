"""Cycle history endpoints."""

from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, HTTPException

from misocycle.cycles.boundary import InvalidCycleInputError
from misocycle.dependencies import Cycles, CurrentUser
from misocycle.models.tracking import CycleRead, EndPeriodRequest
from misocycle.services.cycle_service import CycleNotFoundError

router = APIRouter(prefix="/cycles", tags=["cycles"])


@router.get("", response_model=list[CycleRead])
async def list_cycles(user: CurrentUser, service: Cycles) -> Any:
    return await service.list_cycles(user.user_id)


@router.post("/recalculate", response_model=list[CycleRead])
async def recalculate(user: CurrentUser, service: Cycles) -> Any:
    return await service.recalculate(user.user_id)


@router.post("/{cycle_id}/end", response_model=CycleRead)
async def end_period(
    cycle_id: uuid.UUID, body: EndPeriodRequest, user: CurrentUser, service: Cycles
) -> Any:
    try:
        return await service.end_period(user.user_id, cycle_id, body.end_date)
    except CycleNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Cycle not found") from exc
    except InvalidCycleInputError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@router.delete("/{cycle_id}", response_model=list[CycleRead])
async def delete_cycle(cycle_id: uuid.UUID, user: CurrentUser, service: Cycles) -> Any:
    """Delete a cycle; returns the repaired remaining history."""
    try:
        return await service.delete_cycle(user.user_id, cycle_id)
    except CycleNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Cycle not found") from exc
