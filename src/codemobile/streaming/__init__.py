"""SSE transport and wire codecs."""

from codemobile.streaming.codecs import (
    AnthropicCodec,
    OpenAICodec,
    StreamState,
    ToolCallBuilder,
    WireCodec,
    WireDialect,
    codec_for,
)
from codemobile.streaming.sse import data_payload, iter_sse_events, stream_events

__all__ = [
    "AnthropicCodec",
    "OpenAICodec",
    "StreamState",
    "ToolCallBuilder",
    "WireCodec",
    "WireDialect",
    "codec_for",
    "data_payload",
    "iter_sse_events",
    "stream_events",
]
