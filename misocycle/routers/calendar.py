"""Month calendar endpoint."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Path

from misocycle.cycles.date_math import WEEKDAY_HEADERS
from misocycle.dependencies import Cycles, CurrentUser
from misocycle.models.insights import CalendarDayRead, CalendarMonthRead

router = APIRouter(prefix="/calendar", tags=["calendar"])


@router.get("/{year}/{month}", response_model=CalendarMonthRead)
async def month(
    user: CurrentUser,
    service: Cycles,
    year: int = Path(ge=1900, le=2200),
    month: int = Path(ge=1, le=12),
) -> Any:
    today = service.today()
    days = await service.calendar_month(user.user_id, year, month)
    return CalendarMonthRead(
        year=year,
        month=month,
        weekday_headers=WEEKDAY_HEADERS,
        days=[
            CalendarDayRead(
                day=d.day,
                category=d.category,
                intensity=d.intensity,
                is_today=d.is_today(today),
            )
            for d in days
        ],
    )
