"""OpenAI-compatible provider client.

Speaks the chat-completions streaming dialect used by OpenAI itself and by
most other vendors (OpenRouter, Groq, DeepSeek, Ollama, GitHub Copilot, ...),
as well as the ChatGPT Codex subscription endpoint through
``endpoint_override``.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import httpx

from codemobile.providers.base import BaseProvider
from codemobile.streaming.codecs import WireDialect
from codemobile.types.config import GenerationConfig
from codemobile.types.messages import Message
from codemobile.types.tools import ToolDef

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"


class OpenAICompatibleProvider(BaseProvider):
    """Provider client for OpenAI-compatible chat completion APIs.

    Parameters
    ----------
    endpoint_override:
        Full URL replacing ``{base_url}/chat/completions``.
    supports_stream_options:
        Send ``stream_options.include_usage`` so the final chunk reports
        token usage.  Some compatible servers reject the field.
    **kwargs:
        Forwarded to :class:`~codemobile.providers.base.BaseProvider`.
    """

    dialect = WireDialect.OPENAI

    def __init__(
        self,
        provider_id: str,
        api_key: str,
        base_url: str = DEFAULT_OPENAI_BASE_URL,
        *,
        endpoint_override: str | None = None,
        supports_stream_options: bool = False,
        **kwargs: Any,
    ) -> None:
        super().__init__(provider_id, api_key, base_url, **kwargs)
        self._endpoint = endpoint_override or f"{self._base_url}/chat/completions"
        self._supports_stream_options = supports_stream_options

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def _headers(self) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        headers.update(self._extra_headers)
        return headers

    def _build_request(
        self,
        messages: Sequence[Message],
        model: str,
        tools: Sequence[ToolDef],
        config: GenerationConfig,
    ) -> httpx.Request:
        return self._http().build_request(
            "POST",
            self._endpoint,
            headers=self._headers(),
            json=self.build_body(messages, model, tools, config),
        )

    def build_body(
        self,
        messages: Sequence[Message],
        model: str,
        tools: Sequence[ToolDef],
        config: GenerationConfig,
    ) -> dict[str, Any]:
        """Assemble the JSON request body."""
        body: dict[str, Any] = {
            "model": model,
            "stream": True,
            "messages": self._to_openai_messages(messages, config.system_prompt),
        }
        if self._supports_stream_options:
            body["stream_options"] = {"include_usage": True}
        if config.temperature is not None:
            body["temperature"] = config.temperature
        if config.max_tokens is not None:
            body["max_tokens"] = config.max_tokens
        if config.top_p is not None:
            body["top_p"] = config.top_p
        if config.stop:
            body["stop"] = list(config.stop)
        if tools:
            body["tools"] = self._to_openai_tools(tools)
        return body

    async def _validate(self, client: httpx.AsyncClient) -> bool:
        resp = await client.get(f"{self._base_url}/models", headers=self._headers())
        if not resp.is_success:
            logger.warning("%s /models returned HTTP %d", self.id, resp.status_code)
        return resp.is_success

    # ------------------------------------------------------------------
    # Format conversion helpers
    # ------------------------------------------------------------------

    def _to_openai_messages(
        self,
        messages: Sequence[Message],
        system_prompt: str | None,
    ) -> list[dict[str, Any]]:
        """Convert :class:`Message` objects to the OpenAI messages array.

        The system prompt goes first with ``role="system"``.  Assistant tool
        calls keep their raw JSON arguments; tool results reference the call
        via ``tool_call_id``.
        """
        result: list[dict[str, Any]] = []
        if system_prompt:
            result.append({"role": "system", "content": system_prompt})

        for msg in messages:
            entry: dict[str, Any] = {"role": msg.role.value, "content": msg.content}
            if msg.tool_calls:
                entry["tool_calls"] = [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {"name": tc.name, "arguments": tc.arguments},
                    }
                    for tc in msg.tool_calls
                ]
            if msg.tool_call_id:
                entry["tool_call_id"] = msg.tool_call_id
            result.append(entry)
        return result

    def _to_openai_tools(self, tools: Sequence[ToolDef]) -> list[dict[str, Any]]:
        """Wrap the generic tool schema in the ``{"type": "function"}`` envelope."""
        return [
            {
                "type": "function",
                "function": {
                    "name": t["name"],
                    "description": t["description"],
                    "parameters": t["input_schema"],
                },
            }
            for t in self._make_tool_defs(tools)
        ]
