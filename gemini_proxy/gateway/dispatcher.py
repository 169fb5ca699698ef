"""Request dispatcher: routes tagged JSON envelopes to the completion service.

Inbound:
    {"GenerateCompletion": {"request": <CompletionRequest>}}
    {"ListModels": null}            (the bare string "ListModels" is accepted too)

Outbound:
    {"Completion": {"completion": <CompletionResponse>}}
    {"ListModels": {"models": [<ModelInfo>, ...]}}
    {"Error": {"error": "<message>"}}

Every failure that happens after the actor state is available becomes an
Error envelope. Only a failure to serialize the outbound envelope escapes.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from gemini_proxy.core.config import DEFAULT_BASE_URL, ProxyState
from gemini_proxy.core.exceptions import GeminiProxyError, InvalidRequestError, SerializationError
from gemini_proxy.gateway.service import GeminiCompletionService
from gemini_proxy.gateway.transport import RetryingTransport
from gemini_proxy.schemas.completion import CompletionRequest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerateCompletion:
    request: CompletionRequest


@dataclass(frozen=True)
class ListModels:
    pass


Operation = GenerateCompletion | ListModels


def parse_operation(data: bytes) -> Operation:
    """Decode an inbound envelope.

    Raises:
        InvalidRequestError: the bytes are not one of the known envelopes.
    """
    try:
        raw = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidRequestError(f"not valid JSON: {e}") from e

    if raw == "ListModels":
        return ListModels()

    if not isinstance(raw, dict) or len(raw) != 1:
        raise InvalidRequestError("expected an object with exactly one operation key")

    tag, body = next(iter(raw.items()))

    if tag == "ListModels":
        return ListModels()

    if tag == "GenerateCompletion":
        if not isinstance(body, dict) or "request" not in body:
            raise InvalidRequestError("GenerateCompletion requires a 'request' object")
        try:
            request = CompletionRequest.model_validate(body["request"])
        except ValidationError as e:
            raise InvalidRequestError(str(e)) from e
        return GenerateCompletion(request=request)

    raise InvalidRequestError(f"unknown operation '{tag}'")


def _encode(envelope: dict[str, Any]) -> bytes:
    try:
        return json.dumps(envelope, ensure_ascii=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        logger.error("Error serializing response: %s", e)
        raise SerializationError(f"Failed to serialize response: {e}") from e


def error_envelope(message: str) -> bytes:
    return _encode({"Error": {"error": message}})


class RequestDispatcher:
    """Dispatches one inbound envelope at a time for a single proxy actor."""

    def __init__(
        self,
        state: ProxyState,
        transport: RetryingTransport | None = None,
        base_url: str | None = None,
    ):
        self.state = state
        self.service = GeminiCompletionService(
            state.api_key,
            state.config,
            transport=transport,
            base_url=base_url or DEFAULT_BASE_URL,
        )
        self._log_extra = {"actor_id": state.id}

    async def dispatch(self, data: bytes) -> bytes:
        try:
            operation = parse_operation(data)
        except InvalidRequestError as e:
            logger.warning(
                "Rejecting inbound envelope for actor %s: %s", self.state.id, e.message, extra=self._log_extra
            )
            return error_envelope(f"Invalid request format: {e.message}")

        logger.debug("Dispatching %s", type(operation).__name__, extra=self._log_extra)
        if isinstance(operation, ListModels):
            models = self.service.list_models()
            return _encode({"ListModels": {"models": [m.model_dump(mode="json") for m in models]}})

        try:
            completion = await self.service.generate(operation.request)
        except GeminiProxyError as e:
            logger.error("Error generating content for actor %s: %s", self.state.id, e, extra=self._log_extra)
            return error_envelope(f"Failed to generate content: {e}")

        return _encode({"Completion": {"completion": completion.model_dump(mode="json")}})


def handle_request(data: bytes, state: ProxyState, transport: RetryingTransport | None = None) -> bytes:
    """Synchronous entry point for a host that delivers one message at a time."""
    return asyncio.run(RequestDispatcher(state, transport=transport).dispatch(data))
