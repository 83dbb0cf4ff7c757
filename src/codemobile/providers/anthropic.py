"""Anthropic Messages API provider client."""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import Any

import httpx

from codemobile.providers.base import BaseProvider
from codemobile.streaming.codecs import WireDialect
from codemobile.types.config import GenerationConfig
from codemobile.types.messages import Message, Role
from codemobile.types.tools import ToolDef

logger = logging.getLogger(__name__)

DEFAULT_ANTHROPIC_BASE_URL = "https://api.anthropic.com/v1"
ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_MAX_TOKENS = 8192
VALIDATION_MODEL = "claude-3-5-haiku-20241022"


class AnthropicProvider(BaseProvider):
    """Provider client for Anthropic-compatible Messages APIs.

    Also used for vendors that expose an Anthropic-shaped endpoint, such as
    Kimi for Coding.
    """

    dialect = WireDialect.ANTHROPIC

    def __init__(
        self,
        provider_id: str,
        api_key: str,
        base_url: str = DEFAULT_ANTHROPIC_BASE_URL,
        **kwargs: Any,
    ) -> None:
        super().__init__(provider_id, api_key, base_url, **kwargs)

    def _headers(self) -> dict[str, str]:
        headers = {
            "x-api-key": self._api_key,
            "anthropic-version": ANTHROPIC_VERSION,
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
            f"{self._base_url}/messages",
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
            "max_tokens": config.max_tokens or DEFAULT_MAX_TOKENS,
            "stream": True,
            "messages": self._to_anthropic_messages(messages),
        }
        if config.system_prompt:
            body["system"] = config.system_prompt
        if config.temperature is not None:
            body["temperature"] = config.temperature
        if config.top_p is not None:
            body["top_p"] = config.top_p
        if config.stop:
            body["stop_sequences"] = list(config.stop)
        if tools:
            body["tools"] = self._to_anthropic_tools(tools)
        return body

    async def _validate(self, client: httpx.AsyncClient) -> bool:
        resp = await client.post(
            f"{self._base_url}/messages",
            headers=self._headers(),
            json={
                "model": VALIDATION_MODEL,
                "max_tokens": 1,
                "messages": [{"role": "user", "content": "hi"}],
            },
        )
        if not resp.is_success:
            logger.warning("%s validation returned HTTP %d", self.id, resp.status_code)
        return resp.is_success

    # ------------------------------------------------------------------
    # Format conversion helpers
    # ------------------------------------------------------------------

    def _to_anthropic_messages(self, messages: Sequence[Message]) -> list[dict[str, Any]]:
        """Convert :class:`Message` objects to Anthropic's messages format.

        Tool results become ``tool_result`` blocks inside a user message;
        consecutive results are merged into one user turn.  Assistant tool
        calls become ``tool_use`` blocks with parsed input.  Inline system
        messages are sent as user text.
        """
        result: list[dict[str, Any]] = []

        for msg in messages:
            if msg.role is Role.TOOL:
                block = {
                    "type": "tool_result",
                    "tool_use_id": msg.tool_call_id or "",
                    "content": msg.content,
                }
                previous = result[-1] if result else None
                if (
                    previous is not None
                    and previous["role"] == "user"
                    and isinstance(previous["content"], list)
                    and all(b.get("type") == "tool_result" for b in previous["content"])
                ):
                    previous["content"].append(block)
                else:
                    result.append({"role": "user", "content": [block]})

            elif msg.role is Role.ASSISTANT and msg.tool_calls:
                blocks: list[dict[str, Any]] = []
                if msg.content:
                    blocks.append({"type": "text", "text": msg.content})
                for tc in msg.tool_calls:
                    blocks.append(
                        {
                            "type": "tool_use",
                            "id": tc.id,
                            "name": tc.name,
                            "input": _parse_arguments(tc.arguments),
                        }
                    )
                result.append({"role": "assistant", "content": blocks})

            elif msg.role is Role.ASSISTANT:
                result.append({"role": "assistant", "content": msg.content})

            else:
                result.append({"role": "user", "content": msg.content})

        return result

    def _to_anthropic_tools(self, tools: Sequence[ToolDef]) -> list[dict[str, Any]]:
        """Map the generic tool schema onto Anthropic's ``input_schema`` shape."""
        return [
            {
                "name": t["name"],
                "description": t["description"],
                "input_schema": t["input_schema"],
            }
            for t in self._make_tool_defs(tools)
        ]


def _parse_arguments(arguments: str) -> dict[str, Any]:
    try:
        parsed = json.loads(arguments) if arguments else {}
    except json.JSONDecodeError:
        logger.debug("Sending unparseable tool arguments as empty input")
        return {}
    return parsed if isinstance(parsed, dict) else {}
