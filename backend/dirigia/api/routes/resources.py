from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from dirigia.api.dependencies import get_current_profile, get_db, get_generation_service
from dirigia.core.errors import NotFoundError
from dirigia.models.enums import ExportFormat
from dirigia.models.schemas import GenerateRequest, GenerateResponse, ResourceRead, ResourceSummary
from dirigia.models.tables import Profile, Resource
from dirigia.services.entitlement_service import ensure_can_export, is_premium, preview_text
from dirigia.services.export_service import export_filename, render_pdf, render_txt
from dirigia.services.generation_service import GenerationService
from dirigia.utils.prompts import DEFAULT_ARGUMENTS

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/resources", tags=["resources"])


async def _owned_resource(db: AsyncSession, resource_id: str, profile: Profile) -> Resource:
    resource = await db.scalar(select(Resource).where(Resource.id == resource_id, Resource.user_id == profile.id))
    if resource is None:
        raise NotFoundError("Recurso não encontrado")
    return resource


@router.get("/arguments", response_model=List[str])
async def list_arguments():
    """Argument tags the client offers next to the narrative."""
    return list(DEFAULT_ARGUMENTS)


@router.post("/generate", response_model=GenerateResponse)
async def generate_resource(
    body: GenerateRequest,
    db: AsyncSession = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
    service: GenerationService = Depends(get_generation_service),
):
    """Generate an appeal from reviewed fields and store it."""
    return await service.generate(db, profile, body)


@router.get("", response_model=List[ResourceSummary])
async def list_resources(
    db: AsyncSession = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
):
    result = await db.execute(
        select(Resource).where(Resource.user_id == profile.id).order_by(Resource.created_at.desc())
    )
    return [ResourceSummary.model_validate(r) for r in result.scalars().all()]


@router.get("/{resource_id}", response_model=ResourceRead)
async def get_resource(
    resource_id: str,
    db: AsyncSession = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
):
    """Return a stored appeal; free profiles receive the truncated preview."""
    resource = await _owned_resource(db, resource_id, profile)
    premium = is_premium(profile)
    view = preview_text(resource.generated_text, premium)
    base = ResourceSummary.model_validate(resource).model_dump()
    return ResourceRead(
        **base,
        renavam=resource.renavam,
        local=resource.local,
        pdf_url=resource.pdf_url,
        generated_text=view.text,
        is_premium=premium,
        truncated=view.truncated,
        hidden_chars=view.hidden_chars,
    )


@router.get("/{resource_id}/export")
async def export_resource(
    resource_id: str,
    format: ExportFormat = Query(ExportFormat.PDF),
    db: AsyncSession = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
):
    """Download the full appeal as TXT or PDF (premium only).

    Free profiles get 402 with ``checkoutUrl``.
    """
    resource = await _owned_resource(db, resource_id, profile)
    ensure_can_export(profile)
    if format == ExportFormat.TXT:
        content = render_txt(resource.generated_text)
        media_type = "text/plain; charset=utf-8"
    else:
        content = await run_in_threadpool(render_pdf, resource.generated_text)
        media_type = "application/pdf"
    filename = export_filename(resource.id, format.value)
    logger.info("[export] resource=%s format=%s user=%s", resource.id, format.value, profile.id)
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.delete("/{resource_id}", status_code=204)
async def delete_resource(
    resource_id: str,
    db: AsyncSession = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
):
    await _owned_resource(db, resource_id, profile)
    await db.execute(delete(Resource).where(Resource.id == resource_id, Resource.user_id == profile.id))
    await db.commit()
    return Response(status_code=204)
