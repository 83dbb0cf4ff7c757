"""Configuration types."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any


class SessionMode(str, Enum):
    """BUILD lets the model use tools; PLAN is conversation only."""

    BUILD = "build"
    PLAN = "plan"


@dataclass(frozen=True, slots=True)
class GenerationConfig:
    """Sampling parameters sent with each request."""

    temperature: float | None = 0.7
    max_tokens: int | None = None
    top_p: float | None = None
    system_prompt: str | None = None
    stop: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Settings:
    """Runtime limits and timings shared by every component.

    Components receive one instance at construction; tests pass a copy with
    shrunken intervals instead of patching module constants.
    """

    # Agentic loop
    max_tool_rounds: int = 25

    # Tool execution
    max_file_size: int = 512 * 1024
    max_output_chars: int = 32_000
    max_search_results: int = 50
    max_tree_entries: int = 200
    command_timeout: float = 120.0

    # Device flow
    min_poll_interval: float = 5.0
    slow_down_increment: float = 5.0
    codex_poll_margin: float = 3.0
    codex_device_timeout: float = 300.0

    # HTTP
    request_timeout: float = 120.0

    def with_overrides(self, overrides: dict[str, Any]) -> Settings:
        """Return a copy with known keys from *overrides* applied and coerced."""
        known = {f.name: f for f in fields(self)}
        changes: dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in known:
                continue
            current = getattr(self, key)
            changes[key] = type(current)(value)
        return replace(self, **changes)
