from __future__ import annotations

import fitz
import pytest

from dirigia.core.config import settings
from dirigia.models.enums import PlanType
from dirigia.models.tables import Resource
from dirigia.services.entitlement_service import PREVIEW_PLACEHOLDER, preview_text

LONG_TEXT = "Recurso administrativo. " * 40  # 960 chars


def _resource(resource_id: str = "res-1", user_id: str = "user-1", text: str = LONG_TEXT) -> Resource:
    return Resource(id=resource_id, user_id=user_id, ait_number="A123", placa="ABC1D23", generated_text=text)


@pytest.fixture
def free_user(seed, profile_factory, login):
    seed(profile_factory(), _resource())
    login("user-1")


@pytest.fixture
def premium_user(seed, profile_factory, login):
    seed(profile_factory(plan=PlanType.PREMIUM), _resource())
    login("user-1")


def test_preview_text_rules():
    full = preview_text("abcdef", premium=True, preview_chars=2)
    assert (full.text, full.truncated, full.hidden_chars) == ("abcdef", False, 0)

    short = preview_text("abc", premium=False, preview_chars=5)
    assert short.text == "abc" and not short.truncated

    cut = preview_text("abcdef", premium=False, preview_chars=2)
    assert cut.text == "ab" + PREVIEW_PLACEHOLDER.format(hidden=4)
    assert cut.truncated is True
    assert cut.hidden_chars == 4


def test_free_profile_sees_preview(client, free_user):
    resp = client.get("/resources/res-1")
    assert resp.status_code == 200
    body = resp.json()
    hidden = len(LONG_TEXT) - settings.FREE_PREVIEW_CHARS
    assert body["truncated"] is True
    assert body["hiddenChars"] == hidden
    assert body["isPremium"] is False
    assert body["generatedText"].startswith(LONG_TEXT[: settings.FREE_PREVIEW_CHARS])
    assert f"{hidden} caracteres restantes" in body["generatedText"]


def test_premium_profile_sees_full_text(client, premium_user):
    body = client.get("/resources/res-1").json()
    assert body["generatedText"] == LONG_TEXT
    assert body["truncated"] is False
    assert body["isPremium"] is True


def test_free_export_requires_premium(client, free_user):
    resp = client.get("/resources/res-1/export?format=txt")
    assert resp.status_code == 402
    body = resp.json()
    assert body["kind"] == "entitlement"
    assert body["checkoutUrl"] == settings.CAKTO_CHECKOUT_URL


def test_premium_txt_export(client, premium_user):
    resp = client.get("/resources/res-1/export?format=txt")
    assert resp.status_code == 200
    assert resp.content == LONG_TEXT.encode("utf-8")
    assert resp.headers["content-type"].startswith("text/plain")
    assert resp.headers["content-disposition"] == 'attachment; filename="recurso-multa-res-1.txt"'


def test_premium_pdf_export(client, premium_user):
    resp = client.get("/resources/res-1/export")
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/pdf"
    assert resp.content.startswith(b"%PDF")
    doc = fitz.open(stream=resp.content, filetype="pdf")
    try:
        assert doc.page_count == 1
        assert "Recurso administrativo." in doc.load_page(0).get_text()
    finally:
        doc.close()


def test_unknown_export_format_is_rejected(client, premium_user):
    assert client.get("/resources/res-1/export?format=docx").status_code == 422


def test_other_users_resource_is_not_found(client, seed, profile_factory, login):
    seed(profile_factory(), profile_factory("user-2", email="outro@example.com"), _resource(user_id="user-2"))
    login("user-1")
    assert client.get("/resources/res-1").status_code == 404
    assert client.delete("/resources/res-1").status_code == 404


def test_delete_resource(client, free_user):
    assert client.delete("/resources/res-1").status_code == 204
    assert client.get("/resources/res-1").status_code == 404
    assert client.get("/resources").json() == []
