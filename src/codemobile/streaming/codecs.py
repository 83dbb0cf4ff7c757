"""Wire codecs: turn one SSE ``data`` payload into a canonical stream event.

Two dialects exist, selected once per client through :class:`WireDialect`:

- ``OPENAI``: chat-completions chunks with ``choices[0].delta`` arrays.
- ``ANTHROPIC``: Messages API events discriminated by ``type``.

Codecs are pure: all per-stream mutable data lives in a :class:`StreamState`
owned by the single task consuming the stream.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from codemobile.types.events import (
    Done,
    Error,
    StreamEvent,
    TextDelta,
    ToolCallComplete,
    ToolCallDelta,
    Usage,
)
from codemobile.types.messages import ToolCall

logger = logging.getLogger(__name__)

_PREVIEW_CHARS = 200


class WireDialect(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


@dataclass(slots=True)
class ToolCallBuilder:
    """A tool call whose arguments are still arriving."""

    id: str | None = None
    name: str | None = None
    fragments: list[str] = field(default_factory=list)

    @property
    def arguments(self) -> str:
        return "".join(self.fragments)

    @property
    def is_complete(self) -> bool:
        return bool(self.id) and bool(self.name)

    def build(self) -> ToolCall:
        return ToolCall(id=self.id or "", name=self.name or "", arguments=self.arguments or "{}")


@dataclass(slots=True)
class StreamState:
    """Mutable state for one stream: tool calls by chunk index and usage totals.

    :class:`Usage` events are incremental; ``reported_*`` track how much of the
    totals has already been emitted so callers can simply sum them.
    """

    pending: dict[int, ToolCallBuilder] = field(default_factory=dict)
    input_tokens: int = 0
    output_tokens: int = 0
    reported_input_tokens: int = 0
    reported_output_tokens: int = 0

    def usage_delta(self) -> Usage:
        delta = Usage(
            input_tokens=self.input_tokens - self.reported_input_tokens,
            output_tokens=self.output_tokens - self.reported_output_tokens,
        )
        self.reported_input_tokens = self.input_tokens
        self.reported_output_tokens = self.output_tokens
        return delta


class WireCodec(ABC):
    """Decode SSE payloads of one dialect."""

    dialect: WireDialect

    def decode(self, payload: str, state: StreamState) -> StreamEvent | None:
        """Decode one ``data`` payload; never raises.

        Returns ``None`` for chunks that carry nothing the caller needs.
        """
        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            logger.warning("Invalid JSON chunk from %s stream", self.dialect.value)
            return Error(f"Invalid JSON from API: {payload[:_PREVIEW_CHARS]}")
        if not isinstance(data, dict):
            return Error(f"Invalid JSON from API: {payload[:_PREVIEW_CHARS]}")
        try:
            return self._decode_chunk(data, state)
        except (TypeError, ValueError, AttributeError, IndexError) as exc:
            logger.warning("Unexpected %s chunk shape: %s", self.dialect.value, exc)
            return Error(f"Invalid JSON from API: {payload[:_PREVIEW_CHARS]}")

    def finish(self, state: StreamState) -> list[StreamEvent]:
        """Events to emit once the stream is complete, before ``Done``."""
        return []

    @abstractmethod
    def _decode_chunk(self, data: dict[str, Any], state: StreamState) -> StreamEvent | None:
        ...


class OpenAICodec(WireCodec):
    """OpenAI chat-completions streaming chunks."""

    dialect = WireDialect.OPENAI

    def _decode_chunk(self, data: dict[str, Any], state: StreamState) -> StreamEvent | None:
        usage = data.get("usage")
        if isinstance(usage, dict):
            state.input_tokens += int(usage.get("prompt_tokens") or 0)
            state.output_tokens += int(usage.get("completion_tokens") or 0)
            return state.usage_delta()

        choices = data.get("choices") or []
        if not choices:
            return None
        choice = choices[0]
        delta = choice.get("delta") or {}

        content = delta.get("content")
        if content:
            return TextDelta(content)

        tool_calls = delta.get("tool_calls") or []
        last: ToolCallDelta | None = None
        for entry in tool_calls:
            index = int(entry.get("index", 0))
            function = entry.get("function") or {}
            builder = state.pending.setdefault(index, ToolCallBuilder())
            if entry.get("id"):
                builder.id = entry["id"]
            if function.get("name"):
                builder.name = function["name"]
            fragment = function.get("arguments")
            if fragment:
                builder.fragments.append(fragment)
            last = ToolCallDelta(
                index=index,
                id=builder.id,
                name=builder.name,
                arguments_fragment=fragment,
            )
        if last is not None:
            return last

        if choice.get("finish_reason") in ("stop", "tool_calls"):
            return Done()
        return None

    def finish(self, state: StreamState) -> list[StreamEvent]:
        events: list[StreamEvent] = []
        for index in sorted(state.pending):
            builder = state.pending[index]
            if builder.is_complete:
                events.append(ToolCallComplete(builder.build()))
            else:
                logger.debug("Dropping incomplete tool call at index %d", index)
        state.pending.clear()
        return events


class AnthropicCodec(WireCodec):
    """Anthropic Messages API streaming events."""

    dialect = WireDialect.ANTHROPIC

    def _decode_chunk(self, data: dict[str, Any], state: StreamState) -> StreamEvent | None:
        kind = data.get("type")

        if kind == "message_start":
            usage = (data.get("message") or {}).get("usage") or {}
            state.input_tokens += int(usage.get("input_tokens") or 0)
            return None

        if kind == "content_block_start":
            block = data.get("content_block") or {}
            if block.get("type") != "tool_use":
                return None
            index = int(data.get("index", 0))
            builder = ToolCallBuilder(id=block.get("id"), name=block.get("name"))
            state.pending[index] = builder
            return ToolCallDelta(index=index, id=builder.id, name=builder.name)

        if kind == "content_block_delta":
            return self._decode_delta(data, state)

        if kind == "content_block_stop":
            index = int(data.get("index", 0))
            builder = state.pending.pop(index, None)
            if builder is None:
                return None
            return ToolCallComplete(builder.build())

        if kind == "message_delta":
            usage = data.get("usage") or {}
            state.output_tokens += int(usage.get("output_tokens") or 0)
            return state.usage_delta()

        if kind == "message_stop":
            return Done()

        if kind == "error":
            error = data.get("error") or {}
            return Error(error.get("message") or "Claude error", error.get("type"))

        return None

    def _decode_delta(self, data: dict[str, Any], state: StreamState) -> StreamEvent | None:
        delta = data.get("delta") or {}
        delta_type = delta.get("type")

        if delta_type == "text_delta":
            text = delta.get("text") or ""
            return TextDelta(text) if text else None
        if delta_type == "thinking_delta":
            return None
        if delta_type == "input_json_delta":
            index = int(data.get("index", 0))
            fragment = delta.get("partial_json") or ""
            builder = state.pending.get(index)
            if builder is None:
                return None
            if fragment:
                builder.fragments.append(fragment)
            return ToolCallDelta(
                index=index,
                id=builder.id,
                name=builder.name,
                arguments_fragment=fragment,
            )

        # Some compatible servers put plain text or reasoning in untyped deltas.
        text = delta.get("text") or delta.get("reasoning_content")
        return TextDelta(text) if text else None


_CODECS: dict[WireDialect, WireCodec] = {
    WireDialect.OPENAI: OpenAICodec(),
    WireDialect.ANTHROPIC: AnthropicCodec(),
}


def codec_for(dialect: WireDialect) -> WireCodec:
    """Return the codec for *dialect*."""
    return _CODECS[dialect]
