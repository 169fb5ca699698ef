"""Tests for the tagged-envelope request dispatcher."""

from __future__ import annotations

import json
import logging
from unittest.mock import AsyncMock

import httpx
import pytest

from gemini_proxy.core.exceptions import InvalidRequestError
from gemini_proxy.gateway.dispatcher import (
    GenerateCompletion,
    ListModels,
    RequestDispatcher,
    handle_request,
    parse_operation,
)
from gemini_proxy.gateway.transport import RetryingTransport


def _envelope(payload) -> bytes:
    return json.dumps(payload).encode("utf-8")


def _make_httpx_response(status_code: int, json_data: dict | None = None, text: str = "") -> httpx.Response:
    request = httpx.Request("POST", "https://example.com")
    if json_data is not None:
        return httpx.Response(status_code, json=json_data, request=request)
    return httpx.Response(status_code, text=text, request=request)


def _dispatcher(proxy_state, client: AsyncMock, sleep_recorder) -> RequestDispatcher:
    return RequestDispatcher(proxy_state, transport=RetryingTransport(client=client, sleep=sleep_recorder))


# ==========================================================================
# Test: Envelope parsing
# ==========================================================================


class TestParseOperation:
    def test_generate_completion(self, completion_request_json):
        op = parse_operation(_envelope({"GenerateCompletion": {"request": completion_request_json}}))
        assert isinstance(op, GenerateCompletion)
        assert op.request.model == "gemini-2.0-flash"

    def test_list_models_null(self):
        assert isinstance(parse_operation(b'{"ListModels": null}'), ListModels)

    def test_list_models_bare_string(self):
        assert isinstance(parse_operation(b'"ListModels"'), ListModels)

    @pytest.mark.parametrize(
        "data",
        [
            b"not json",
            b"[]",
            b"{}",
            b'{"ListModels": null, "GenerateCompletion": {}}',
            b'{"Stream": {}}',
            b'{"GenerateCompletion": {}}',
            b'{"GenerateCompletion": {"request": {"messages": "nope"}}}',
            b"\xff\xfe",
        ],
    )
    def test_malformed(self, data):
        with pytest.raises(InvalidRequestError):
            parse_operation(data)


# ==========================================================================
# Test: Dispatch
# ==========================================================================


class TestRequestDispatcher:
    @pytest.mark.asyncio
    async def test_malformed_envelope_yields_error(self, proxy_state, sleep_recorder):
        client = AsyncMock()
        out = await _dispatcher(proxy_state, client, sleep_recorder).dispatch(b"{broken")

        payload = json.loads(out)
        assert list(payload) == ["Error"]
        assert payload["Error"]["error"].startswith("Invalid request format:")
        client.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_log_records_carry_actor_id(self, proxy_state, completion_request_json, sleep_recorder, caplog):
        client = AsyncMock()
        client.request.return_value = _make_httpx_response(404, text="model not found")

        with caplog.at_level(logging.DEBUG, logger="gemini_proxy.gateway.dispatcher"):
            await _dispatcher(proxy_state, client, sleep_recorder).dispatch(
                _envelope({"GenerateCompletion": {"request": completion_request_json}})
            )

        records = [r for r in caplog.records if r.name == "gemini_proxy.gateway.dispatcher"]
        assert records
        assert {r.actor_id for r in records} == {"test-actor"}
        assert any(r.levelno == logging.ERROR for r in records)

    @pytest.mark.asyncio
    async def test_list_models(self, proxy_state, sleep_recorder):
        client = AsyncMock()
        out = await _dispatcher(proxy_state, client, sleep_recorder).dispatch(b'{"ListModels": null}')

        models = json.loads(out)["ListModels"]["models"]
        assert [m["id"] for m in models] == ["gemini-2.0-flash", "gemini-2.0-pro"]
        assert models[0] == {
            "id": "gemini-2.0-flash",
            "display_name": "Gemini 2.0 Flash",
            "provider": "google",
            "max_tokens": 8000,
            "pricing": None,
        }
        client.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_generate_text(self, proxy_state, completion_request_json, text_response_json, sleep_recorder):
        client = AsyncMock()
        client.request.return_value = _make_httpx_response(200, json_data=text_response_json)

        out = await _dispatcher(proxy_state, client, sleep_recorder).dispatch(
            _envelope({"GenerateCompletion": {"request": completion_request_json}})
        )

        completion = json.loads(out)["Completion"]["completion"]
        assert completion["content"] == [{"type": "text", "text": "Hi there! How can I help you today?\n"}]
        assert completion["stop_reason"] == "end_turn"
        assert completion["role"] == "assistant"
        assert completion["usage"] == {"input_tokens": 644, "output_tokens": 11}

    @pytest.mark.asyncio
    async def test_generate_tool_call(
        self, proxy_state, completion_request_json, function_call_response_json, sleep_recorder
    ):
        client = AsyncMock()
        client.request.return_value = _make_httpx_response(200, json_data=function_call_response_json)

        out = await _dispatcher(proxy_state, client, sleep_recorder).dispatch(
            _envelope({"GenerateCompletion": {"request": completion_request_json}})
        )

        completion = json.loads(out)["Completion"]["completion"]
        assert completion["stop_reason"] == "tool_use"
        assert completion["content"][0]["type"] == "tool_use"
        assert completion["content"][0]["name"] == "list_allowed_dirs"

    @pytest.mark.asyncio
    async def test_api_error_yields_error_envelope(self, proxy_state, completion_request_json, sleep_recorder):
        client = AsyncMock()
        client.request.return_value = _make_httpx_response(404, text="model not found")

        out = await _dispatcher(proxy_state, client, sleep_recorder).dispatch(
            _envelope({"GenerateCompletion": {"request": completion_request_json}})
        )

        error = json.loads(out)["Error"]["error"]
        assert error.startswith("Failed to generate content:")
        assert "404" in error
        assert "model not found" in error

    @pytest.mark.asyncio
    async def test_conversion_failure_after_http_success_yields_error(
        self, proxy_state, completion_request_json, sleep_recorder
    ):
        client = AsyncMock()
        client.request.return_value = _make_httpx_response(
            200,
            json_data={
                "candidates": [{"content": {"parts": [{"inlineData": {"mimeType": "image/png", "data": "AA"}}]}}],
                "modelVersion": "gemini-2.0-flash",
            },
        )

        out = await _dispatcher(proxy_state, client, sleep_recorder).dispatch(
            _envelope({"GenerateCompletion": {"request": completion_request_json}})
        )

        assert "UnsupportedFeature" in json.loads(out)["Error"]["error"]

    @pytest.mark.asyncio
    async def test_unsupported_request_content(self, proxy_state, sleep_recorder):
        client = AsyncMock()
        request = {
            "model": "gemini-2.0-flash",
            "messages": [
                {
                    "role": "user",
                    "content": [{"type": "image", "source": {"media_type": "image/png", "data": "AAAA"}}],
                }
            ],
        }

        out = await _dispatcher(proxy_state, client, sleep_recorder).dispatch(
            _envelope({"GenerateCompletion": {"request": request}})
        )

        assert "UnsupportedFeature" in json.loads(out)["Error"]["error"]
        client.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_retry_exhaustion_yields_error(self, proxy_state, completion_request_json, sleep_recorder):
        client = AsyncMock()
        client.request.side_effect = [_make_httpx_response(503, text="busy") for _ in range(4)]

        out = await _dispatcher(proxy_state, client, sleep_recorder).dispatch(
            _envelope({"GenerateCompletion": {"request": completion_request_json}})
        )

        assert "503" in json.loads(out)["Error"]["error"]
        assert client.request.await_count == 4
        assert sleep_recorder.delays == [1.0, 2.0, 4.0]


class TestHandleRequest:
    def test_sync_entry_point(self, proxy_state):
        out = handle_request(b'{"ListModels": null}', proxy_state)
        assert "ListModels" in json.loads(out)

    def test_sync_entry_point_error(self, proxy_state):
        out = handle_request(b"", proxy_state)
        assert "Error" in json.loads(out)
