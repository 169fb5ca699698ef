"""Error taxonomy for the Gemini proxy.

Every failure inside the proxy is raised as a subclass of GeminiProxyError.
The dispatcher is the only place that turns them into Error envelopes.
"""

from __future__ import annotations


class GeminiProxyError(Exception):
    """Base class for all proxy errors."""

    kind = "GeminiProxyError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


class InvalidRequestError(GeminiProxyError):
    """Malformed inbound envelope or an unsupported request shape."""

    kind = "InvalidRequest"


class ApiError(GeminiProxyError):
    """The vendor answered with a terminal or retry-exhausted HTTP error."""

    kind = "ApiError"

    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status

    def __str__(self) -> str:
        return f"{self.kind}: status {self.status}: {self.message}"


class TransportError(GeminiProxyError):
    """Network failure that survived every retry attempt."""

    kind = "TransportError"


class InvalidResponseError(GeminiProxyError):
    """Missing or semantically unusable vendor response body."""

    kind = "InvalidResponse"


class ConversionError(GeminiProxyError):
    """A value could not be mapped between the agnostic and vendor schemas."""

    kind = "ConversionError"


class UnsupportedFeatureError(ConversionError):
    """A schema shape exists on one side but the translators cannot represent it."""

    kind = "UnsupportedFeature"


class SerializationError(GeminiProxyError):
    """Malformed JSON at either boundary."""

    kind = "SerializationError"
