"""Canonical, vendor-independent stream events.

Every provider stream is normalized into a sequence of these events.  A
stream ends with exactly one terminal event, :class:`Done` or :class:`Error`;
a stream that ends without either was cancelled.
"""

from __future__ import annotations

from dataclasses import dataclass

from codemobile.types.messages import ToolCall


@dataclass(frozen=True, slots=True)
class TextDelta:
    """A chunk of assistant text."""

    text: str


@dataclass(frozen=True, slots=True)
class ToolCallDelta:
    """Partial information about a tool call still being assembled."""

    index: int
    id: str | None = None
    name: str | None = None
    arguments_fragment: str | None = None


@dataclass(frozen=True, slots=True)
class ToolCallComplete:
    """A fully assembled tool call."""

    tool_call: ToolCall


@dataclass(frozen=True, slots=True)
class Usage:
    """Token usage reported by the provider."""

    input_tokens: int = 0
    output_tokens: int = 0


@dataclass(frozen=True, slots=True)
class Done:
    """Normal end of the stream."""


@dataclass(frozen=True, slots=True)
class Error:
    """Terminal failure of the stream."""

    message: str
    code: str | None = None


StreamEvent = TextDelta | ToolCallDelta | ToolCallComplete | Usage | Done | Error

TERMINAL_EVENTS: tuple[type, ...] = (Done, Error)


def is_terminal(event: StreamEvent) -> bool:
    """Return True when *event* ends the stream."""
    return isinstance(event, TERMINAL_EVENTS)
