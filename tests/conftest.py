import pytest

from gemini_proxy.core.config import ProxyConfig, ProxyState, RetryConfig


class SleepRecorder:
    """Stand-in for asyncio.sleep that records requested delays (seconds)."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def retry_config():
    return RetryConfig(max_retries=3, base_delay_ms=1000, max_delay_ms=30000, backoff_multiplier=2.0)


@pytest.fixture
def proxy_state(retry_config):
    return ProxyState(
        id="test-actor",
        api_key="test-key",
        config=ProxyConfig(retry_config=retry_config),
    )


# Payloads captured from real generateContent responses


@pytest.fixture
def text_response_json() -> dict:
    return {
        "candidates": [
            {
                "content": {
                    "parts": [{"text": "Hi there! How can I help you today?\n"}],
                    "role": "model",
                },
                "finishReason": "STOP",
                "avgLogprobs": -0.053460695526816628,
            }
        ],
        "usageMetadata": {
            "promptTokenCount": 644,
            "candidatesTokenCount": 11,
            "totalTokenCount": 655,
            "promptTokensDetails": [{"modality": "TEXT", "tokenCount": 644}],
            "candidatesTokensDetails": [{"modality": "TEXT", "tokenCount": 11}],
        },
        "modelVersion": "gemini-2.0-flash",
    }


@pytest.fixture
def function_call_response_json() -> dict:
    return {
        "candidates": [
            {
                "content": {
                    "parts": [{"functionCall": {"name": "list_allowed_dirs", "args": {}}}],
                    "role": "model",
                },
                "finishReason": "STOP",
            }
        ],
        "usageMetadata": {
            "promptTokenCount": 654,
            "candidatesTokenCount": 5,
            "totalTokenCount": 659,
        },
        "modelVersion": "gemini-2.0-flash",
    }


@pytest.fixture
def completion_request_json() -> dict:
    return {
        "model": "gemini-2.0-flash",
        "system": "You are terse.",
        "messages": [
            {"role": "user", "content": [{"type": "text", "text": "Hello"}]},
        ],
    }