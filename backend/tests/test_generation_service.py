import asyncio
from unittest.mock import MagicMock

import pytest
import requests

from wrapstudio.core.errors import VariantGenerationError
from wrapstudio.services.generation_service import GenerationRequest, HttpGenerationBackend


def make_response(status_code, payload=None):
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    response.ok = status_code < 400
    if payload is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = payload
    return response


@pytest.fixture
def request_():
    return GenerationRequest(
        subject_attributes={"make": "Tesla"},
        variant_fields={"angle": "hero"},
        mode="hero",
        params={"color_hex": "#FF0000"},
    )


def backend_with(response):
    session = MagicMock(spec=requests.Session)
    session.post.return_value = response
    return HttpGenerationBackend(url="https://render.example.com/generate", api_key="secret", session=session)


def test_successful_generation(request_):
    backend = backend_with(make_response(200, {"imageUrl": "https://cdn.example.com/hero.png"}))
    url = asyncio.run(backend.generate(request_))

    assert url == "https://cdn.example.com/hero.png"
    _, kwargs = backend.session.post.call_args
    assert kwargs["json"] == {
        "subjectAttributes": {"make": "Tesla"},
        "variantFields": {"angle": "hero"},
        "mode": "hero",
        "color_hex": "#FF0000",
    }
    assert kwargs["headers"]["Authorization"] == "Bearer secret"


def test_error_payload_message(request_):
    backend = backend_with(make_response(429, {"error": {"message": "Rate limited"}}))
    with pytest.raises(VariantGenerationError) as exc:
        asyncio.run(backend.generate(request_))
    assert exc.value.message == "Rate limited"
    assert exc.value.status_code == 429


def test_error_without_body(request_):
    backend = backend_with(make_response(500))
    with pytest.raises(VariantGenerationError, match="HTTP 500"):
        asyncio.run(backend.generate(request_))


def test_missing_image_url(request_):
    backend = backend_with(make_response(200, {"message": "Content policy violation"}))
    with pytest.raises(VariantGenerationError, match="Content policy violation"):
        asyncio.run(backend.generate(request_))


def test_transport_failure(request_):
    session = MagicMock(spec=requests.Session)
    session.post.side_effect = requests.exceptions.ConnectionError("refused")
    backend = HttpGenerationBackend(url="https://render.example.com/generate", session=session)
    with pytest.raises(VariantGenerationError, match="refused"):
        asyncio.run(backend.generate(request_))


def test_url_is_required(monkeypatch):
    from wrapstudio.core.config import settings

    monkeypatch.setattr(settings, "GENERATION_URL", None)
    with pytest.raises(ValueError):
        HttpGenerationBackend(url=None)


def test_request_timeout_defaults_to_settings(request_, monkeypatch):
    from wrapstudio.core.config import settings

    monkeypatch.setattr(settings, "GENERATION_REQUEST_TIMEOUT", 42.0)
    backend = backend_with(make_response(200, {"imageUrl": "https://cdn.example.com/hero.png"}))
    asyncio.run(backend.generate(request_))

    _, kwargs = backend.session.post.call_args
    assert kwargs["timeout"] == 42.0


def test_explicit_request_timeout(request_):
    session = MagicMock(spec=requests.Session)
    session.post.return_value = make_response(200, {"imageUrl": "https://cdn.example.com/hero.png"})
    backend = HttpGenerationBackend(url="https://render.example.com/generate", session=session, request_timeout=5)
    asyncio.run(backend.generate(request_))

    _, kwargs = session.post.call_args
    assert kwargs["timeout"] == 5
