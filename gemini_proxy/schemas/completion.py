"""Provider-agnostic completion schema.

This is the shape the calling system speaks; it knows nothing about Gemini.
Content blocks are discriminated by an explicit ``type`` tag.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


# ---------------------------------------------------------------------------
# Content blocks
# ---------------------------------------------------------------------------


class TextContent(_Frozen):
    type: Literal["text"] = "text"
    text: str


class ToolUseContent(_Frozen):
    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: dict[str, Any] = Field(default_factory=dict)


class ToolResultContent(_Frozen):
    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str
    content: list[Any] | str = Field(default_factory=list)
    is_error: bool = False


class ImageSource(_Frozen):
    media_type: str
    data: str


class ImageContent(_Frozen):
    type: Literal["image"] = "image"
    source: ImageSource


MessageContent = Annotated[
    Union[TextContent, ToolUseContent, ToolResultContent, ImageContent],
    Field(discriminator="type"),
]


class Message(_Frozen):
    role: Role
    content: list[MessageContent]


# ---------------------------------------------------------------------------
# Request / response
# ---------------------------------------------------------------------------


class CompletionRequest(_Frozen):
    model: str = ""
    messages: list[Message]
    system: str | None = None
    # Accepted for compatibility; not forwarded to the vendor.
    max_tokens: int | None = None
    temperature: float | None = None


class StopReason(str, Enum):
    END_TURN = "end_turn"
    MAX_TOKENS = "max_tokens"
    STOP_SEQUENCE = "stop_sequence"
    TOOL_USE = "tool_use"


class OtherStopReason(_Frozen):
    """Vendor stop reason without a dedicated agnostic slot."""

    other: str


class Usage(_Frozen):
    input_tokens: int = 0
    output_tokens: int = 0


class CompletionResponse(_Frozen):
    content: list[MessageContent]
    id: str
    model: str
    role: Role = Role.ASSISTANT
    stop_reason: StopReason | OtherStopReason
    stop_sequence: str | None = None
    message_type: str = "gemini"
    usage: Usage = Field(default_factory=Usage)


class ModelInfo(_Frozen):
    id: str
    display_name: str
    provider: str = "google"
    max_tokens: int
    pricing: dict[str, float] | None = None
