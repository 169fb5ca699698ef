"""Google Gemini (generateContent) wire schema.

Field names are camelCase on the wire and snake_case in Python.

Content parts carry no explicit tag: the variant is decided by which fields
are present. ``parse_part`` resolves it by trying each variant in a fixed
priority order (function call, text, inline data, function response) and
rejects a part that matches none or more than one. A well-formed part of a
kind not modelled here (``fileData``, ``executableCode``, ...) fails with the
``UNSUPPORTED_PART`` error type so callers can tell it from malformed input.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError


class _Wire(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
        protected_namespaces=(),
    )

    def to_wire(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict in vendor field names, unset fields omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Role(str, Enum):
    USER = "user"
    MODEL = "model"
    SYSTEM = "system"


# ---------------------------------------------------------------------------
# Content parts
# ---------------------------------------------------------------------------


class FunctionCall(_Wire):
    name: str
    args: dict[str, Any] = Field(default_factory=dict)
    id: str | None = None


class FunctionCallPart(_Wire):
    function_call: FunctionCall


class TextPart(_Wire):
    text: str


class Blob(_Wire):
    mime_type: str
    data: str  # base64


class InlineDataPart(_Wire):
    inline_data: Blob


class FunctionResponse(_Wire):
    name: str
    response: dict[str, Any] = Field(default_factory=dict)
    id: str | None = None


class FunctionResponsePart(_Wire):
    function_response: FunctionResponse


UNSUPPORTED_PART = "unsupported_part"

# Trial order matters: it is the documented resolution priority.
PART_VARIANTS: tuple[type[_Wire], ...] = (
    FunctionCallPart,
    TextPart,
    InlineDataPart,
    FunctionResponsePart,
)

_KNOWN_PART_KEYS = frozenset(
    key for variant in PART_VARIANTS for name, field in variant.model_fields.items() for key in (name, field.alias)
)


def parse_part(raw: Any) -> _Wire:
    """Resolve an untagged wire part into exactly one variant."""
    if isinstance(raw, PART_VARIANTS):
        return raw
    if not isinstance(raw, dict):
        raise ValueError(f"content part must be an object, got {type(raw).__name__}")

    matches: list[_Wire] = []
    for variant in PART_VARIANTS:
        try:
            matches.append(variant.model_validate(raw))
        except ValidationError:
            continue

    if not matches and not _KNOWN_PART_KEYS.intersection(raw):
        raise PydanticCustomError(
            UNSUPPORTED_PART,
            "content part matches no known variant (keys: {keys})",
            {"keys": sorted(raw)},
        )
    if not matches:
        raise ValueError(f"content part is malformed (keys: {sorted(raw)})")
    if len(matches) > 1:
        names = ", ".join(type(m).__name__ for m in matches)
        raise ValueError(f"content part is ambiguous, matches: {names}")
    return matches[0]


ContentPart = Annotated[
    Union[FunctionCallPart, TextPart, InlineDataPart, FunctionResponsePart],
    BeforeValidator(parse_part),
]


class Content(_Wire):
    parts: list[ContentPart] = Field(default_factory=list)
    role: Role = Role.MODEL


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------


class GenerationConfig(_Wire):
    temperature: float | None = None
    max_output_tokens: int | None = None
    top_p: float | None = None
    top_k: int | None = None
    stop_sequences: list[str] | None = None


class GenerateContentRequest(_Wire):
    model: str
    contents: list[Content]
    generation_config: GenerationConfig | None = None
    system_instruction: Content | None = None


# ---------------------------------------------------------------------------
# Response
# ---------------------------------------------------------------------------


class FinishReason(str, Enum):
    FINISH_REASON_UNSPECIFIED = "FINISH_REASON_UNSPECIFIED"
    STOP = "STOP"
    MAX_TOKENS = "MAX_TOKENS"
    SAFETY = "SAFETY"
    RECITATION = "RECITATION"
    LANGUAGE = "LANGUAGE"
    OTHER = "OTHER"
    BLOCKLIST = "BLOCKLIST"
    PROHIBITED_CONTENT = "PROHIBITED_CONTENT"
    SPII = "SPII"
    MALFORMED_FUNCTION_CALL = "MALFORMED_FUNCTION_CALL"
    IMAGE_SAFETY = "IMAGE_SAFETY"


# Unknown vendor tags are kept verbatim as plain strings.
FinishReasonTag = Annotated[FinishReason | str, Field(union_mode="left_to_right")]


class SafetyRating(_Wire):
    category: str
    probability: str
    blocked: bool | None = None


class Candidate(_Wire):
    content: Content = Field(default_factory=Content)
    finish_reason: FinishReasonTag = FinishReason.FINISH_REASON_UNSPECIFIED
    index: int = 0
    safety_ratings: list[SafetyRating] = Field(default_factory=list)


class PromptFeedback(_Wire):
    block_reason: str | None = None
    safety_ratings: list[SafetyRating] = Field(default_factory=list)


class UsageMetadata(_Wire):
    prompt_token_count: int = 0
    candidates_token_count: int = 0
    total_token_count: int = 0


class GenerateContentResponse(_Wire):
    candidates: list[Candidate] = Field(default_factory=list)
    prompt_feedback: PromptFeedback | None = None
    usage_metadata: UsageMetadata | None = None
    model_version: str = ""


# ---------------------------------------------------------------------------
# Model catalog
# ---------------------------------------------------------------------------


class ModelInfo(_Wire):
    id: str
    display_name: str
    description: str | None = None
    input_token_limit: int
    output_token_limit: int
    supported_generation_methods: list[str] = Field(default_factory=list)
    temperature_range: tuple[float, float] | None = None
    top_p_range: tuple[float, float] | None = None
    top_k_range: tuple[int, int] | None = None


DEFAULT_MODELS: tuple[ModelInfo, ...] = (
    ModelInfo(
        id="gemini-2.0-flash",
        display_name="Gemini 2.0 Flash",
        description="Optimized for speed, versatile on a broad range of tasks",
        input_token_limit=32_000,
        output_token_limit=8_000,
        supported_generation_methods=["generateContent", "streamGenerateContent"],
        temperature_range=(0.0, 2.0),
        top_p_range=(0.0, 1.0),
        top_k_range=(1, 40),
    ),
    ModelInfo(
        id="gemini-2.0-pro",
        display_name="Gemini 2.0 Pro",
        description="High-quality model with strong reasoning across a variety of tasks",
        input_token_limit=32_000,
        output_token_limit=16_000,
        supported_generation_methods=["generateContent", "streamGenerateContent"],
        temperature_range=(0.0, 2.0),
        top_p_range=(0.0, 1.0),
        top_k_range=(1, 40),
    ),
)
