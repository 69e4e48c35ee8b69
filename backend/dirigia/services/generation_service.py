"""Appeal generation gateway.

Composes the prompt from reviewed notice fields, the user's narrative
and the selected argument tags, calls the language model and stores the
result.  The ``resources`` insert and the ``resources_count`` increment
commit together: the counter moves iff the row exists.
"""

from __future__ import annotations

import datetime as dt
import logging
import uuid
from typing import Optional

import openai
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dirigia.core.config import settings
from dirigia.core.errors import PersistenceError, UpstreamServiceError
from dirigia.core.observability import sentry_breadcrumb
from dirigia.models.schemas import GenerateRequest, GenerateResponse
from dirigia.models.tables import Profile, Resource
from dirigia.services.entitlement_service import ensure_can_generate
from dirigia.services.llm_client import get_openai_client, map_openai_error
from dirigia.utils.dates import clean_infraction_date
from dirigia.utils.prompts import build_generation_user_prompt, get_generation_system_prompt

logger = logging.getLogger(__name__)


class AppealGenerator:
    """Interface for a provider that writes the appeal text."""

    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        raise NotImplementedError


class OpenAIAppealGenerator(AppealGenerator):
    def __init__(self, model: Optional[str] = None) -> None:
        self.model = model or settings.GENERATION_MODEL

    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        client = get_openai_client()
        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=0.7,
                max_tokens=4096,
            )
        except openai.OpenAIError as exc:
            raise map_openai_error(exc, "generate") from exc
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""


class GenerationService:
    def __init__(self, generator: Optional[AppealGenerator] = None) -> None:
        self.generator = generator or OpenAIAppealGenerator()

    async def generate(
        self,
        session: AsyncSession,
        profile: Profile,
        request: GenerateRequest,
        today: Optional[dt.date] = None,
    ) -> GenerateResponse:
        """Generate, persist and count one appeal for ``profile``.

        Raises ``LimitReachedError`` before any upstream call when the
        free allowance is used up, upstream errors as mapped by
        ``map_openai_error`` and ``PersistenceError`` when the write fails.
        """
        ensure_can_generate(profile)

        data = request.ocr_data
        user_prompt = build_generation_user_prompt(data, request.user_explanation, request.selected_arguments)
        sentry_breadcrumb(category="generate", message="generate:start", data={"arguments": len(request.selected_arguments)})
        text = (await self.generator.generate(get_generation_system_prompt(), user_prompt)).strip()
        if not text:
            logger.error("[generate] model returned no text for user=%s", profile.id)
            raise UpstreamServiceError("Falha ao gerar recurso")

        infraction_date = clean_infraction_date(data.data_infracao, today=today)
        if data.data_infracao and infraction_date is None:
            logger.warning("[generate] invalid or future infraction date ignored: %r", data.data_infracao)

        resource_id = str(uuid.uuid4())
        resource = Resource(
            id=resource_id,
            user_id=profile.id,
            ait_number=data.ait_number,
            placa=data.placa,
            renavam=data.renavam,
            artigo=data.artigo,
            local=data.local,
            orgao_autuador=data.orgao_autuador,
            data_infracao=infraction_date,
            generated_text=text,
        )
        try:
            session.add(resource)
            await session.execute(
                update(Profile)
                .where(Profile.id == profile.id)
                .values(resources_count=Profile.resources_count + 1)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.exception("[generate] failed to persist resource for user=%s: %s", profile.id, exc)
            raise PersistenceError() from exc

        logger.info("[generate] resource=%s stored for user=%s", resource_id, profile.id)
        sentry_breadcrumb(category="generate", message="completed", data={"resource_id": resource_id})
        return GenerateResponse(generated_text=text, resource_id=resource_id)
