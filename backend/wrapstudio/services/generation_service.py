"""
Client for the external image-generation backend.

The backend is an opaque request/response service: it takes the subject
attributes, the variant's distinguishing fields and a rendering mode, and
answers with an image URL or a structured error carrying a message.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests

from wrapstudio.core.config import settings
from wrapstudio.core.errors import VariantGenerationError
from wrapstudio.core.logger import get_logger


@dataclass
class GenerationRequest:
    subject_attributes: Dict[str, Any]
    variant_fields: Dict[str, Any]
    mode: str
    params: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "subjectAttributes": self.subject_attributes,
            "variantFields": self.variant_fields,
            "mode": self.mode,
            **self.params,
        }


class GenerationBackend:
    """Invocation contract: resolve to an image URL or raise VariantGenerationError."""

    async def generate(self, request: GenerationRequest) -> str:
        raise NotImplementedError


class HttpGenerationBackend(GenerationBackend):
    """
    Posts generation requests as JSON.

    requests is blocking, so each call runs in the loop's default executor
    and the event loop stays free for sibling variants.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        session: Optional[requests.Session] = None,
        request_timeout: Optional[float] = None,
    ):
        self.url = url or settings.GENERATION_URL
        self.api_key = api_key or settings.GENERATION_API_KEY
        self.session = session or requests.Session()
        self.request_timeout = request_timeout or settings.GENERATION_REQUEST_TIMEOUT
        self.logger = get_logger(__name__)

        if not self.url:
            raise ValueError("Missing generation backend URL. Please set GENERATION_URL.")

    async def generate(self, request: GenerationRequest) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._post_sync, request)

    def _post_sync(self, request: GenerationRequest) -> str:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            response = self.session.post(
                self.url,
                json=request.to_payload(),
                headers=headers,
                timeout=self.request_timeout,
            )
        except requests.exceptions.RequestException as e:
            raise VariantGenerationError(f"Generation request failed: {e}") from e

        data = _json_or_none(response)

        if not response.ok:
            message = _error_message(data) or f"Generation backend returned HTTP {response.status_code}"
            self.logger.error(f"Generation failed ({response.status_code}): {message}")
            raise VariantGenerationError(message, status_code=response.status_code)

        if not isinstance(data, dict):
            raise VariantGenerationError("Generation backend returned a non-JSON response")

        image_url = data.get("imageUrl")
        if not image_url:
            raise VariantGenerationError(_error_message(data) or "Generation backend returned no imageUrl")
        return image_url


def _json_or_none(response: requests.Response):
    try:
        return response.json()
    except ValueError:
        return None


def _error_message(data) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    error = data.get("error")
    if isinstance(error, dict):
        return error.get("message")
    return data.get("message") or error
