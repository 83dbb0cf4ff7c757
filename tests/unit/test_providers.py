"""Tests for codemobile.providers clients."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from codemobile.providers import AnthropicProvider, OpenAICompatibleProvider, ProviderConfigError
from codemobile.tools.definitions import AGENT_TOOLS
from codemobile.types.config import GenerationConfig
from codemobile.types.events import Done, Error, TextDelta, ToolCallComplete, Usage
from codemobile.types.messages import Message, ToolCall
from codemobile.types.tools import ToolDef, ToolParam


def _sse(*objs, done: bool = True) -> str:
    lines = [f"data: {json.dumps(o)}\n" for o in objs]
    if done:
        lines.append("data: [DONE]\n")
    return "\n".join(lines)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def _collect(provider, messages=None, tools=None, config=None) -> list:
    messages = messages or [Message.user("hi")]
    return [e async for e in provider.send_message(messages, "model-x", tools, config)]


CONVERSATION = [
    Message.user("Read a.py"),
    Message.assistant("Reading.", (ToolCall("c1", "read_file", '{"path": "a.py"}'),)),
    Message.tool("c1", "File: a.py (1 lines)\nprint(1)"),
]


class TestOpenAICompatibleProvider:
    @pytest.mark.asyncio
    async def test_request_shape(self):
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, text=_sse({"choices": [{"delta": {"content": "ok"}}]}))

        async with _client(handler) as http:
            provider = OpenAICompatibleProvider(
                "openrouter",
                "sk-test",
                "https://openrouter.ai/api/v1/",
                extra_headers={"X-Title": "CodeMobile"},
                supports_stream_options=True,
                http_client=http,
            )
            events = await _collect(
                provider,
                CONVERSATION,
                AGENT_TOOLS,
                GenerationConfig(system_prompt="Be brief.", max_tokens=100, stop=("END",)),
            )

        assert events == [TextDelta("ok"), Done()]
        request = captured[0]
        assert str(request.url) == "https://openrouter.ai/api/v1/chat/completions"
        assert request.headers["authorization"] == "Bearer sk-test"
        assert request.headers["x-title"] == "CodeMobile"

        body = json.loads(request.content)
        assert body["model"] == "model-x"
        assert body["stream"] is True
        assert body["stream_options"] == {"include_usage": True}
        assert body["max_tokens"] == 100
        assert body["stop"] == ["END"]
        assert body["temperature"] == 0.7
        assert body["messages"][0] == {"role": "system", "content": "Be brief."}
        assert body["messages"][2]["tool_calls"] == [
            {"id": "c1", "type": "function", "function": {"name": "read_file", "arguments": '{"path": "a.py"}'}}
        ]
        assert body["messages"][3] == {
            "role": "tool",
            "content": "File: a.py (1 lines)\nprint(1)",
            "tool_call_id": "c1",
        }
        names = [t["function"]["name"] for t in body["tools"]]
        assert names == [t.name for t in AGENT_TOOLS]
        assert all(t["type"] == "function" for t in body["tools"])

    def test_stream_options_omitted_by_default(self):
        provider = OpenAICompatibleProvider("groq", "k", "https://api.groq.com/openai/v1")
        body = provider.build_body([Message.user("hi")], "m", (), GenerationConfig())
        assert "stream_options" not in body
        assert "tools" not in body

    def test_endpoint_override(self):
        provider = OpenAICompatibleProvider(
            "openai", "k", "https://api.openai.com/v1", endpoint_override="https://chatgpt.com/backend-api/codex/responses"
        )
        assert provider.endpoint == "https://chatgpt.com/backend-api/codex/responses"

    def test_missing_base_url(self):
        with pytest.raises(ProviderConfigError, match="No base URL"):
            OpenAICompatibleProvider("custom", "k", "")

    @pytest.mark.asyncio
    async def test_usage_and_tool_calls(self):
        body = _sse(
            {"choices": [{"delta": {"tool_calls": [
                {"index": 0, "id": "c9", "function": {"name": "list_directory", "arguments": "{}"}}
            ]}}]},
            {"choices": [{"delta": {}, "finish_reason": "tool_calls"}]},
            {"choices": [], "usage": {"prompt_tokens": 30, "completion_tokens": 4}},
        )

        async with _client(lambda r: httpx.Response(200, text=body)) as http:
            events = await _collect(OpenAICompatibleProvider("openai", "k", "https://x/v1", http_client=http))

        kinds = [type(e) for e in events if not isinstance(e, TextDelta)]
        assert kinds[-3:] == [Usage, ToolCallComplete, Done]
        assert events[-2].tool_call == ToolCall("c9", "list_directory", "{}")

    @pytest.mark.asyncio
    async def test_http_error(self):
        async with _client(lambda r: httpx.Response(429, text="slow down")) as http:
            events = await _collect(OpenAICompatibleProvider("openai", "k", "https://x/v1", http_client=http))
        assert events == [Error("HTTP 429: slow down", "429")]

    @pytest.mark.asyncio
    async def test_validate_credentials(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200 if request.headers["authorization"] == "Bearer good" else 401, json={})

        async with _client(handler) as http:
            assert await OpenAICompatibleProvider("openai", "good", "https://x/v1", http_client=http).validate_credentials()
            assert not await OpenAICompatibleProvider("openai", "bad", "https://x/v1", http_client=http).validate_credentials()
        assert str(seen[0].url) == "https://x/v1/models"

    @pytest.mark.asyncio
    async def test_skip_validation_makes_no_request(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        async with _client(handler) as http:
            provider = OpenAICompatibleProvider("moonshot", "k", "https://x/v1", skip_validation=True, http_client=http)
            assert await provider.validate_credentials() is True

    @pytest.mark.asyncio
    async def test_validation_transport_error_is_false(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("offline")

        async with _client(handler) as http:
            provider = OpenAICompatibleProvider("openai", "k", "https://x/v1", http_client=http)
            assert await provider.validate_credentials() is False


class TestAnthropicProvider:
    def test_body_shape(self):
        provider = AnthropicProvider("anthropic", "sk-ant")
        body = provider.build_body(
            [*CONVERSATION, Message.tool("c2", "second result")],
            "claude-sonnet-4-5",
            AGENT_TOOLS[:1],
            GenerationConfig(system_prompt="System.", stop=("###",)),
        )
        assert body["max_tokens"] == 8192
        assert body["system"] == "System."
        assert body["stop_sequences"] == ["###"]
        assert body["messages"][0] == {"role": "user", "content": "Read a.py"}
        assert body["messages"][1]["content"] == [
            {"type": "text", "text": "Reading."},
            {"type": "tool_use", "id": "c1", "name": "read_file", "input": {"path": "a.py"}},
        ]
        # Consecutive tool results share one user turn.
        assert len(body["messages"]) == 3
        results = body["messages"][2]["content"]
        assert [b["tool_use_id"] for b in results] == ["c1", "c2"]
        assert body["tools"][0]["name"] == "read_file"
        assert body["tools"][0]["input_schema"]["required"] == ["path"]

    def test_unparseable_arguments_become_empty_input(self):
        provider = AnthropicProvider("anthropic", "k")
        body = provider.build_body(
            [Message.assistant("", (ToolCall("c1", "list_directory", "{broken"),))], "m", (), GenerationConfig()
        )
        assert body["messages"][0]["content"] == [
            {"type": "tool_use", "id": "c1", "name": "list_directory", "input": {}}
        ]

    @pytest.mark.asyncio
    async def test_headers_and_stream(self):
        captured: list[httpx.Request] = []
        body = _sse(
            {"type": "message_start", "message": {"usage": {"input_tokens": 11}}},
            {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "Hi"}},
            {"type": "message_delta", "usage": {"output_tokens": 1}},
            {"type": "message_stop"},
            done=False,
        )

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, text=body)

        async with _client(handler) as http:
            provider = AnthropicProvider(
                "kimi-coding",
                "sk-kimi",
                "https://api.kimi.com/coding/v1",
                extra_headers={"Accept": "text/event-stream"},
                http_client=http,
            )
            events = await _collect(provider)

        assert events == [TextDelta("Hi"), Usage(11, 1), Done()]
        request = captured[0]
        assert str(request.url) == "https://api.kimi.com/coding/v1/messages"
        assert request.headers["x-api-key"] == "sk-kimi"
        assert request.headers["anthropic-version"] == "2023-06-01"
        assert request.headers["accept"] == "text/event-stream"


class TestToolSchema:
    def test_param_schema(self):
        tool = ToolDef(
            name="demo",
            description="Demo tool",
            parameters=(
                ToolParam("mode", "string", "Mode", required=True, enum=("a", "b")),
                ToolParam("files", "array", "Files", required=False),
                ToolParam("limit", "integer", "Limit", required=False, default=10),
            ),
        )
        (schema,) = AnthropicProvider("anthropic", "k")._make_tool_defs([tool])
        props = schema["input_schema"]["properties"]
        assert props["mode"]["enum"] == ["a", "b"]
        assert props["files"]["items"] == {"type": "string"}
        assert props["limit"]["default"] == 10
        assert schema["input_schema"]["required"] == ["mode"]


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_request_ends_stream_without_terminal(self):
        started = asyncio.Event()

        class SlowStream(httpx.AsyncByteStream):
            async def __aiter__(self):
                yield b'data: {"choices": [{"delta": {"content": "first"}}]}\n\n'
                started.set()
                await asyncio.sleep(30)
                yield b"data: [DONE]\n\n"

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, stream=SlowStream())

        async with _client(handler) as http:
            provider = OpenAICompatibleProvider("openai", "k", "https://x/v1", http_client=http)
            events = []

            async def consume():
                async for event in provider.send_message([Message.user("hi")], "m"):
                    events.append(event)

            consumer = asyncio.create_task(consume())
            await asyncio.wait_for(started.wait(), timeout=5)
            provider.cancel_request()
            await asyncio.wait_for(consumer, timeout=5)

        assert events == [TextDelta("first")]

    def test_cancel_without_request_is_noop(self):
        OpenAICompatibleProvider("openai", "k", "https://x/v1").cancel_request()

    def test_list_models(self):
        from codemobile.providers import registry

        models = registry.get_models("anthropic")
        provider = AnthropicProvider("anthropic", "k", models=models)
        assert provider.list_models() == list(models)
