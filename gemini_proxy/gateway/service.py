"""Gemini completion service.

Pipeline for one completion:
  1. Translate the agnostic request (fails before any network call)
  2. Serialize to the generateContent wire format
  3. Send through the retrying transport under the whole-call deadline
  4. Reject non-2xx responses as ApiError
  5. Parse the body and translate it back to the agnostic response

Usage:
    service = GeminiCompletionService(api_key="...", config=ProxyConfig())
    completion = await service.generate(request)
    models = service.list_models()
"""

from __future__ import annotations

import asyncio
import logging

from pydantic import ValidationError

from gemini_proxy.core.config import DEFAULT_BASE_URL, ProxyConfig
from gemini_proxy.core.exceptions import (
    ApiError,
    InvalidResponseError,
    SerializationError,
    TransportError,
    UnsupportedFeatureError,
)
from gemini_proxy.gateway.transport import OutboundRequest, RawResponse, RetryingTransport
from gemini_proxy.gateway.translators import (
    to_completion_response,
    to_gemini_request,
    to_model_info,
)
from gemini_proxy.schemas.completion import CompletionRequest, CompletionResponse, ModelInfo
from gemini_proxy.schemas.gemini import (
    DEFAULT_MODELS,
    UNSUPPORTED_PART,
    GenerateContentRequest,
    GenerateContentResponse,
)

logger = logging.getLogger(__name__)


class GeminiCompletionService:
    """Google Gemini generateContent client speaking the agnostic schema."""

    endpoint = "generateContent"

    def __init__(
        self,
        api_key: str,
        config: ProxyConfig | None = None,
        transport: RetryingTransport | None = None,
        base_url: str = DEFAULT_BASE_URL,
    ):
        self.api_key = api_key
        self.config = config or ProxyConfig()
        self.base_url = base_url.rstrip("/")
        self.transport = transport or RetryingTransport(timeout=self.config.timeout_ms / 1000)

    def build_request(self, request: GenerateContentRequest) -> OutboundRequest:
        """Build the HTTP request; the key travels as the ``key`` query parameter."""
        return OutboundRequest(
            method="POST",
            url=f"{self.base_url}/models/{request.model}:{self.endpoint}",
            headers={"Content-Type": "application/json"},
            params={"key": self.api_key},
            body=request.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8"),
        )

    async def generate(self, request: CompletionRequest) -> CompletionResponse:
        """Run one completion through Gemini.

        Raises:
            UnsupportedFeatureError: the request or response holds content the
                translators cannot represent.
            ApiError: non-2xx status, or a retryable status after all retries.
            TransportError: network failure after all retries, or the
                ``timeout_ms`` deadline expired.
            InvalidResponseError: empty body or no candidates.
            SerializationError: the body is not a valid generateContent response.
        """
        if not request.model:
            request = request.model_copy(update={"model": self.config.default_model})

        gemini_request = to_gemini_request(request)
        outbound = self.build_request(gemini_request)

        logger.info(
            "Generating content with model %s (%d messages)",
            gemini_request.model,
            len(gemini_request.contents),
        )

        raw = await self._send(outbound)

        if not raw.is_success:
            logger.error("Gemini API error - status: %d, body: %s", raw.status_code, raw.text[:1024])
            raise ApiError(raw.status_code, raw.text)

        if not raw.body.strip():
            raise InvalidResponseError("No response body")

        try:
            parsed = GenerateContentResponse.model_validate_json(raw.body)
        except ValidationError as e:
            if all(err["type"] == UNSUPPORTED_PART for err in e.errors()):
                raise UnsupportedFeatureError(f"Unsupported content part in response: {e}") from e
            logger.error("Error parsing response: %s, body: %s", e, raw.text[:500])
            raise SerializationError(f"Failed to parse generateContent response: {e}") from e

        completion = to_completion_response(parsed)
        if not completion.model:
            completion = completion.model_copy(update={"model": gemini_request.model})

        logger.info(
            "Completion from %s: stop_reason=%s, tokens in/out=%d/%d",
            completion.model,
            completion.stop_reason,
            completion.usage.input_tokens,
            completion.usage.output_tokens,
        )
        return completion

    async def _send(self, outbound: OutboundRequest) -> RawResponse:
        deadline = self.config.timeout_ms / 1000
        try:
            return await asyncio.wait_for(
                self.transport.execute(outbound, self.config.retry_config),
                timeout=deadline,
            )
        except asyncio.TimeoutError as e:
            raise TransportError(f"Request exceeded timeout of {self.config.timeout_ms} ms") from e

    def list_models(self) -> list[ModelInfo]:
        """Static catalog; no network call is made."""
        logger.info("Listing available Gemini models")
        return [to_model_info(model) for model in DEFAULT_MODELS]
