from __future__ import annotations

from io import BytesIO

import fitz
import pytest
from PIL import Image

from dirigia.core.errors import UploadValidationError
from dirigia.services.upload_service import MSG_TOO_LARGE, MSG_UNSUPPORTED, prepare_upload, validate_upload


def _image_bytes(fmt: str = "PNG", size=(40, 20)) -> bytes:
    buf = BytesIO()
    Image.new("RGB", size, color=(200, 30, 30)).save(buf, format=fmt)
    return buf.getvalue()


def _pdf_bytes() -> bytes:
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), "NOTIFICACAO DE AUTUACAO - AIT A123456")
    data = doc.tobytes()
    doc.close()
    return data


def test_validate_upload_accepts_supported_types():
    assert validate_upload("application/pdf", 10) == "application/pdf"
    assert validate_upload("image/png", 10) == "image/png"
    assert validate_upload("image/jpg", 10) == "image/jpeg"
    assert validate_upload("IMAGE/JPEG; charset=binary", 10) == "image/jpeg"


def test_validate_upload_rejects_unsupported_type():
    with pytest.raises(UploadValidationError) as exc:
        validate_upload("image/gif", 10)
    assert exc.value.code == "unsupported_type"
    assert exc.value.message == MSG_UNSUPPORTED


def test_validate_upload_size_limit_is_inclusive(monkeypatch):
    from dirigia.core import config as cfg

    monkeypatch.setattr(cfg.settings, "MAX_UPLOAD_SIZE", 100)
    assert validate_upload("image/png", 100) == "image/png"
    with pytest.raises(UploadValidationError) as exc:
        validate_upload("image/png", 101)
    assert exc.value.code == "file_too_large"
    assert exc.value.message == MSG_TOO_LARGE


def test_type_is_checked_before_size(monkeypatch):
    from dirigia.core import config as cfg

    monkeypatch.setattr(cfg.settings, "MAX_UPLOAD_SIZE", 100)
    with pytest.raises(UploadValidationError) as exc:
        validate_upload("text/plain", 5000)
    assert exc.value.code == "unsupported_type"


def test_empty_upload_is_rejected():
    with pytest.raises(UploadValidationError) as exc:
        prepare_upload("multa.png", "image/png", b"")
    assert exc.value.code == "empty_file"


def test_pdf_is_rasterised_to_png():
    prepared = prepare_upload("notificacao.pdf", "application/pdf", _pdf_bytes())
    assert prepared.content_type == "image/png"
    assert prepared.filename == "notificacao.png"
    assert prepared.original_filename == "notificacao.pdf"
    with Image.open(BytesIO(prepared.data)) as img:
        assert img.format == "PNG"
        # 2x render scale of an A4-ish page
        assert img.size[0] > 1000


def test_corrupt_pdf_is_rejected():
    with pytest.raises(UploadValidationError) as exc:
        prepare_upload("broken.pdf", "application/pdf", b"%PDF-1.4 this is not a pdf")
    assert exc.value.code == "unreadable_pdf"


def test_large_image_is_downscaled_and_keeps_png():
    prepared = prepare_upload("foto.png", "image/png", _image_bytes("PNG", size=(3000, 1000)))
    assert prepared.content_type == "image/png"
    with Image.open(BytesIO(prepared.data)) as img:
        assert max(img.size) == 2048


def test_jpeg_stays_jpeg():
    prepared = prepare_upload("foto.jpg", "image/jpg", _image_bytes("JPEG"))
    assert prepared.content_type == "image/jpeg"
    assert prepared.filename == "foto.jpg"


def test_non_image_bytes_with_image_type_are_rejected():
    with pytest.raises(UploadValidationError) as exc:
        prepare_upload("foto.png", "image/png", b"definitely not an image")
    assert exc.value.code == "unreadable_image"


def test_filename_path_components_are_dropped():
    prepared = prepare_upload("../../etc/multa.png", "image/png", _image_bytes())
    assert prepared.original_filename == "multa.png"
