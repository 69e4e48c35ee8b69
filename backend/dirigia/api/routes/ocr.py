"""OCR endpoint: upload a notice, get the extracted fields back."""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, UploadFile
from starlette.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession

from dirigia.api.dependencies import get_current_profile, get_db, get_extraction_service
from dirigia.core.config import settings
from dirigia.models.schemas import OcrResponse
from dirigia.models.tables import Profile
from dirigia.services.extraction_service import ExtractionService
from dirigia.services.upload_service import prepare_upload

router = APIRouter(tags=["ocr"])


@router.post("/ocr", response_model=OcrResponse)
async def process_ocr(
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
    service: ExtractionService = Depends(get_extraction_service),
):
    """Validate the upload, extract fields and gate on is-traffic-fine.

    Returns 400 with ``isTrafficFine: false`` when the document is not a
    traffic fine; nothing is stored in that case.
    """
    # One byte past the limit is enough to reject oversize files
    data = await file.read(settings.MAX_UPLOAD_SIZE + 1)
    prepared = await run_in_threadpool(prepare_upload, file.filename, file.content_type, data)
    return await service.process(db, profile.id, prepared)
