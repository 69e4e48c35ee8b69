"""Upload capture: validation and normalisation of notice files.

A file is accepted only when its declared MIME type is PDF, JPEG or PNG
and it is at most ``MAX_UPLOAD_SIZE`` bytes.  Accepted PDFs are
rasterised (first page) so the extraction gateway only ever sees an
image.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import PurePath
from typing import Optional

from dirigia.core.config import settings
from dirigia.core.errors import UploadValidationError
from dirigia.utils.image_processing import preprocess_image, rasterize_pdf_first_page

logger = logging.getLogger(__name__)

PDF_TYPE = "application/pdf"

MSG_EMPTY = "Nenhum arquivo foi enviado."
MSG_UNSUPPORTED = "Formato não suportado. Envie um PDF, JPG ou PNG."
MSG_TOO_LARGE = "O arquivo excede o tamanho máximo permitido (10MB)."
MSG_UNREADABLE_PDF = "Não foi possível ler o PDF enviado."
MSG_UNREADABLE_IMAGE = "Não foi possível ler a imagem enviada."


@dataclass(frozen=True)
class PreparedImage:
    filename: str
    original_filename: str
    content_type: str
    data: bytes


def _normalise_content_type(content_type: Optional[str]) -> str:
    # "image/jpeg; charset=binary" -> "image/jpeg"; image/jpg is a common alias
    base = (content_type or "").split(";", 1)[0].strip().lower()
    return "image/jpeg" if base == "image/jpg" else base


def validate_upload(content_type: Optional[str], size: int) -> str:
    """Check type and size; return the normalised MIME type.

    Raises ``UploadValidationError`` naming the specific reason.
    """
    if size <= 0:
        raise UploadValidationError("empty_file", MSG_EMPTY)
    mime = _normalise_content_type(content_type)
    if mime not in settings.ALLOWED_UPLOAD_TYPES:
        raise UploadValidationError("unsupported_type", MSG_UNSUPPORTED)
    if size > settings.MAX_UPLOAD_SIZE:
        raise UploadValidationError("file_too_large", MSG_TOO_LARGE)
    return mime


def prepare_upload(filename: Optional[str], content_type: Optional[str], data: bytes) -> PreparedImage:
    """Validate an upload and convert it to a single image for extraction."""
    mime = validate_upload(content_type, len(data or b""))
    original = PurePath(filename or "upload").name
    if mime == PDF_TYPE:
        try:
            png = rasterize_pdf_first_page(data, scale=settings.PDF_RENDER_SCALE)
        except ValueError as exc:
            logger.info("[upload] rejecting PDF %s: %s", original, exc)
            raise UploadValidationError("unreadable_pdf", MSG_UNREADABLE_PDF) from exc
        return PreparedImage(
            filename=f"{PurePath(original).stem}.png",
            original_filename=original,
            content_type="image/png",
            data=png,
        )
    try:
        processed, processed_type = preprocess_image(data, max_size=settings.OCR_IMAGE_MAX_EDGE)
    except ValueError as exc:
        logger.info("[upload] rejecting image %s: %s", original, exc)
        raise UploadValidationError("unreadable_image", MSG_UNREADABLE_IMAGE) from exc
    return PreparedImage(filename=original, original_filename=original, content_type=processed_type, data=processed)
