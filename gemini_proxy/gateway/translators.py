"""Translators between the agnostic completion schema and the Gemini wire schema.

Request path:  CompletionRequest  → GenerateContentRequest
Response path: GenerateContentResponse → CompletionResponse

Only text survives both directions. Function calls are understood on the
response path only. Anything else raises UnsupportedFeatureError so that a
partially translated request or response never leaves this module.
"""

from __future__ import annotations

import logging

from gemini_proxy.core.exceptions import InvalidResponseError, UnsupportedFeatureError
from gemini_proxy.schemas import completion as agnostic
from gemini_proxy.schemas import gemini

logger = logging.getLogger(__name__)


_ROLE_TO_GEMINI: dict[agnostic.Role, gemini.Role] = {
    agnostic.Role.USER: gemini.Role.USER,
    agnostic.Role.ASSISTANT: gemini.Role.MODEL,
    agnostic.Role.SYSTEM: gemini.Role.SYSTEM,
}

_ROLE_FROM_GEMINI: dict[gemini.Role, agnostic.Role] = {v: k for k, v in _ROLE_TO_GEMINI.items()}

# Vendor finish reasons with a dedicated agnostic slot; everything else → Other(tag)
_FINISH_REASON_MAP: dict[gemini.FinishReason, agnostic.StopReason] = {
    gemini.FinishReason.STOP: agnostic.StopReason.END_TURN,
    gemini.FinishReason.FINISH_REASON_UNSPECIFIED: agnostic.StopReason.END_TURN,
    gemini.FinishReason.MAX_TOKENS: agnostic.StopReason.MAX_TOKENS,
}


def to_gemini_role(role: agnostic.Role) -> gemini.Role:
    return _ROLE_TO_GEMINI[role]


def from_gemini_role(role: gemini.Role) -> agnostic.Role:
    return _ROLE_FROM_GEMINI[role]


# ---------------------------------------------------------------------------
# Request path
# ---------------------------------------------------------------------------


def block_to_part(block: agnostic.MessageContent) -> gemini.TextPart:
    if isinstance(block, agnostic.TextContent):
        return gemini.TextPart(text=block.text)
    raise UnsupportedFeatureError(f"only text content is supported in requests, got '{block.type}'")


def message_to_content(message: agnostic.Message) -> gemini.Content:
    return gemini.Content(
        role=to_gemini_role(message.role),
        parts=[block_to_part(block) for block in message.content],
    )


def to_gemini_request(request: agnostic.CompletionRequest) -> gemini.GenerateContentRequest:
    """Translate an agnostic completion request into a generateContent request.

    Raises:
        UnsupportedFeatureError: a message holds a non-text block. Nothing is
            translated partially.
    """
    contents = [message_to_content(message) for message in request.messages]

    system_instruction = None
    if request.system is not None:
        system_instruction = gemini.Content(
            role=gemini.Role.SYSTEM,
            parts=[gemini.TextPart(text=request.system)],
        )

    if request.temperature is not None or request.max_tokens is not None:
        logger.debug("Generation parameters are not forwarded to Gemini; ignoring them")

    return gemini.GenerateContentRequest(
        model=request.model,
        contents=contents,
        generation_config=None,
        system_instruction=system_instruction,
    )


# ---------------------------------------------------------------------------
# Response path
# ---------------------------------------------------------------------------


def part_to_block(part: gemini.ContentPart, position: int = 0) -> agnostic.MessageContent:
    """Map one vendor part onto an agnostic content block."""
    if isinstance(part, gemini.TextPart):
        return agnostic.TextContent(text=part.text)
    if isinstance(part, gemini.FunctionCallPart):
        call = part.function_call
        return agnostic.ToolUseContent(
            id=call.id or f"toolu_{position}",
            name=call.name,
            input=call.args,
        )
    raise UnsupportedFeatureError(f"{type(part).__name__} is not supported in responses")


def content_to_message(content: gemini.Content) -> agnostic.Message:
    """Reverse of ``message_to_content``; also accepts function calls."""
    return agnostic.Message(
        role=from_gemini_role(content.role),
        content=[part_to_block(part, i) for i, part in enumerate(content.parts)],
    )


def to_stop_reason(reason: gemini.FinishReason | str) -> agnostic.StopReason | agnostic.OtherStopReason:
    """Map a vendor finish reason; unmapped and unknown tags keep the vendor tag."""
    if isinstance(reason, gemini.FinishReason):
        mapped = _FINISH_REASON_MAP.get(reason)
        if mapped is not None:
            return mapped
        return agnostic.OtherStopReason(other=reason.value)
    return agnostic.OtherStopReason(other=reason)


def to_usage(usage: gemini.UsageMetadata | None) -> agnostic.Usage:
    if usage is None:
        return agnostic.Usage(input_tokens=0, output_tokens=0)
    return agnostic.Usage(
        input_tokens=usage.prompt_token_count,
        output_tokens=usage.candidates_token_count,
    )


def to_completion_response(response: gemini.GenerateContentResponse) -> agnostic.CompletionResponse:
    """Translate a generateContent response using its first candidate.

    Raises:
        InvalidResponseError: the response has no candidates.
        UnsupportedFeatureError: the candidate holds a part other than text or
            a function call.
    """
    if not response.candidates:
        reason = "no candidates in response"
        if response.prompt_feedback and response.prompt_feedback.block_reason:
            reason += f" (prompt blocked: {response.prompt_feedback.block_reason})"
        raise InvalidResponseError(reason)

    # Only the first candidate is used
    candidate = response.candidates[0]
    if len(response.candidates) > 1:
        logger.debug("Dropping %d extra candidates", len(response.candidates) - 1)

    message = content_to_message(candidate.content)

    stop_reason = to_stop_reason(candidate.finish_reason)
    has_tool_use = any(isinstance(block, agnostic.ToolUseContent) for block in message.content)
    if stop_reason == agnostic.StopReason.END_TURN and has_tool_use:
        stop_reason = agnostic.StopReason.TOOL_USE

    return agnostic.CompletionResponse(
        content=message.content,
        id=str(candidate.index),
        model=response.model_version,
        role=message.role,
        stop_reason=stop_reason,
        stop_sequence=None,
        message_type="gemini",
        usage=to_usage(response.usage_metadata),
    )


def to_model_info(model: gemini.ModelInfo) -> agnostic.ModelInfo:
    return agnostic.ModelInfo(
        id=model.id,
        display_name=model.display_name,
        provider="google",
        max_tokens=model.output_token_limit,
        pricing=None,
    )
