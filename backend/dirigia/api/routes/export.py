from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from dirigia.api.dependencies import get_current_profile, get_db
from dirigia.models.tables import Profile
from dirigia.services.export_service import CSV_TABLES, export_table_csv

router = APIRouter(prefix="/export", tags=["export"])


@router.get("/csv")
async def export_csv(
    table: str = Query(...),
    db: AsyncSession = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
):
    """Download the caller's own rows of one table as CSV."""
    if table not in CSV_TABLES:
        return JSONResponse(status_code=400, content={"error": "Tabela inválida", "allowed": list(CSV_TABLES)})
    body = await export_table_csv(db, table, profile.id)
    return Response(
        content=body,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{table}.csv"'},
    )
