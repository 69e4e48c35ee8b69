from __future__ import annotations

import httpx
import openai
import pytest

from dirigia.core.errors import UpstreamQuotaError, UpstreamRateLimitError, UpstreamServiceError
from dirigia.services.llm_client import get_openai_client, map_openai_error

REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def _status_error(status: int, body=None) -> openai.APIStatusError:
    return openai.APIStatusError("upstream", response=httpx.Response(status, request=REQUEST), body=body)


def test_rate_limit_is_retryable():
    err = map_openai_error(_status_error(429), "generate")
    assert isinstance(err, UpstreamRateLimitError)
    assert err.status_code == 429
    assert err.to_body()["retryable"] is True


def test_exhausted_quota_on_429_body():
    err = map_openai_error(_status_error(429, body={"code": "insufficient_quota", "message": "no credits"}), "ocr")
    assert isinstance(err, UpstreamQuotaError)
    assert err.status_code == 402


def test_payment_required_is_quota():
    assert isinstance(map_openai_error(_status_error(402), "ocr"), UpstreamQuotaError)


@pytest.mark.parametrize(
    "exc",
    [_status_error(500), _status_error(400), openai.APITimeoutError(request=REQUEST), openai.APIConnectionError(request=REQUEST)],
)
def test_other_failures_are_upstream_errors(exc):
    err = map_openai_error(exc, "generate")
    assert type(err) is UpstreamServiceError
    assert err.to_body()["kind"] == "upstream"


def test_client_requires_api_key(monkeypatch):
    from dirigia.core import config as cfg

    monkeypatch.setattr(cfg.settings, "OPENAI_API_KEY", None)
    get_openai_client.cache_clear()
    with pytest.raises(UpstreamServiceError):
        get_openai_client()
