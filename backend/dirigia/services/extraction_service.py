"""Traffic-fine extraction gateway.

Sends one prepared image to a vision model and turns the answer into a
``FineExtraction``.  The is-traffic-fine gate runs before anything is
persisted: a document the model does not recognise as a fine is
rejected without an audit row.  Accepted results are written to
``ocr_raw`` (filename only, never the file itself).

The model call sits behind ``FineExtractor`` so tests and alternative
providers can swap it without touching the gate or the audit write.
"""

from __future__ import annotations

import base64
import json
import logging
from typing import Any, Dict, Optional

import openai
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dirigia.core.config import settings
from dirigia.core.errors import NotATrafficFineError
from dirigia.core.observability import sentry_breadcrumb
from dirigia.models.schemas import FineExtraction, OcrResponse
from dirigia.models.tables import OcrRaw
from dirigia.services.llm_client import get_openai_client, map_openai_error
from dirigia.services.upload_service import PreparedImage
from dirigia.utils.dates import to_review_date
from dirigia.utils.prompts import EXTRACTION_USER_TEXT, get_extraction_prompt

logger = logging.getLogger(__name__)


class FineExtractor:
    """Interface for a provider that reads a notice image."""

    async def extract(self, image: bytes, content_type: str) -> Dict[str, Any]:
        """Return the raw JSON object produced for ``image``."""
        raise NotImplementedError


class OpenAIFineExtractor(FineExtractor):
    """Chat completions with an inline data-URL image and JSON output."""

    def __init__(self, model: Optional[str] = None) -> None:
        self.model = model or settings.OCR_MODEL

    async def extract(self, image: bytes, content_type: str) -> Dict[str, Any]:
        client = get_openai_client()
        data_url = f"data:{content_type};base64,{base64.b64encode(image).decode('utf-8')}"
        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": get_extraction_prompt()},
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": EXTRACTION_USER_TEXT},
                            {"type": "image_url", "image_url": {"url": data_url}},
                        ],
                    },
                ],
                response_format={"type": "json_object"},
                temperature=0.1,
            )
        except openai.OpenAIError as exc:
            raise map_openai_error(exc, "ocr") from exc
        content = (response.choices[0].message.content or "") if response.choices else ""
        try:
            parsed = json.loads(content)
        except (TypeError, ValueError):
            logger.warning("[ocr] model returned non-JSON content (%d chars)", len(content))
            return {}
        return parsed if isinstance(parsed, dict) else {}


def parse_extraction(raw: Dict[str, Any]) -> FineExtraction:
    """Validate a raw model object, treating anything unusable as not-a-fine."""
    try:
        return FineExtraction.model_validate(raw or {})
    except ValidationError as exc:
        logger.warning("[ocr] extraction payload failed validation: %s", exc.error_count())
        return FineExtraction(is_traffic_fine=False)


class ExtractionService:
    """Runs the gate and the audit write around a ``FineExtractor``."""

    def __init__(self, extractor: Optional[FineExtractor] = None) -> None:
        self.extractor = extractor or OpenAIFineExtractor()

    async def process(self, session: AsyncSession, user_id: str, upload: PreparedImage) -> OcrResponse:
        logger.info("[ocr] processing file=%s user=%s", upload.original_filename, user_id)
        sentry_breadcrumb(category="ocr", message="extract:start", data={"content_type": upload.content_type})
        raw = await self.extractor.extract(upload.data, upload.content_type)
        extraction = parse_extraction(raw)
        if not extraction.is_traffic_fine:
            logger.info("[ocr] rejected non-fine document file=%s", upload.original_filename)
            sentry_breadcrumb(category="ocr", message="rejected")
            raise NotATrafficFineError()

        fine = extraction.fine_data()
        extracted = extraction.model_dump(by_alias=True)
        try:
            session.add(
                OcrRaw(
                    user_id=user_id,
                    uploaded_file_url=upload.original_filename,
                    extracted_text=extracted,
                )
            )
            await session.commit()
        except SQLAlchemyError as exc:
            # Audit only; the user still gets the extracted fields
            await session.rollback()
            logger.error("[ocr] failed to store audit row: %s", exc)

        review = fine.model_copy(update={"data_infracao": to_review_date(fine.data_infracao)})
        sentry_breadcrumb(category="ocr", message="accepted")
        return OcrResponse(
            extracted_data=extracted,
            review_data=review,
            missing_fields=fine.missing_fields(),
        )
