"""Data export endpoint."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from misocycle.cycles.export import export_filename
from misocycle.dependencies import Cycles, CurrentUser

router = APIRouter(prefix="/export", tags=["export"])


@router.get("")
async def export_data(user: CurrentUser, service: Cycles) -> JSONResponse:
    """All cycles, logs and settings as a downloadable JSON document."""
    snapshot = await service.export(user.user_id)
    filename = export_filename(service.today())
    return JSONResponse(
        content=snapshot,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
