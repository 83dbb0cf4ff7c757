"""Test fixtures including MockProvider for deterministic testing."""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import pytest

from codemobile.types.config import GenerationConfig, Settings
from codemobile.types.events import Done, StreamEvent, TextDelta, ToolCallComplete, Usage
from codemobile.types.messages import Message, ToolCall
from codemobile.types.providers import ModelDef
from codemobile.types.tools import ToolDef


def text_round(text: str, input_tokens: int = 0, output_tokens: int = 0) -> list[StreamEvent]:
    """A scripted response that just says *text*."""
    events: list[StreamEvent] = [TextDelta(text)]
    if input_tokens or output_tokens:
        events.append(Usage(input_tokens, output_tokens))
    events.append(Done())
    return events


def tool_round(*calls: ToolCall, text: str = "", input_tokens: int = 0, output_tokens: int = 0) -> list[StreamEvent]:
    """A scripted response that calls one or more tools."""
    events: list[StreamEvent] = [TextDelta(text)] if text else []
    events.extend(ToolCallComplete(call) for call in calls)
    if input_tokens or output_tokens:
        events.append(Usage(input_tokens, output_tokens))
    events.append(Done())
    return events


@dataclass
class SentRequest:
    messages: list[Message]
    model: str
    tools: Sequence[ToolDef] | None
    config: GenerationConfig | None


class MockProvider:
    """A deterministic provider that replays scripted rounds of events.

    Usage:
        provider = MockProvider([
            tool_round(ToolCall("c1", "read_file", '{"path": "a.py"}')),
            text_round("The file defines main()."),
        ])

    When the script runs out, the last round is repeated.
    """

    def __init__(self, rounds: list[list[StreamEvent]]):
        self._rounds = list(rounds)
        self.requests: list[SentRequest] = []
        self.cancelled = 0

    async def send_message(
        self,
        messages: Sequence[Message],
        model: str,
        tools: Sequence[ToolDef] | None = None,
        config: GenerationConfig | None = None,
    ) -> AsyncIterator[StreamEvent]:
        self.requests.append(SentRequest(list(messages), model, tools, config))
        index = min(len(self.requests) - 1, len(self._rounds) - 1)
        for event in self._rounds[index]:
            yield event

    def list_models(self) -> list[ModelDef]:
        return [ModelDef("mock-model", "Mock Model")]

    async def validate_credentials(self) -> bool:
        return True

    def cancel_request(self) -> None:
        self.cancelled += 1


class MemoryMessageStore:
    """In-memory MessageStore that records every call."""

    def __init__(self) -> None:
        self.messages: dict[str, list[Message]] = {}
        self.message_tokens: list[tuple[int | None, int | None]] = []
        self.token_updates: list[tuple[str, int, int]] = []

    def add_message(
        self,
        session_id: str,
        message: Message,
        input_tokens: int | None = None,
        output_tokens: int | None = None,
    ) -> None:
        self.messages.setdefault(session_id, []).append(message)
        self.message_tokens.append((input_tokens, output_tokens))

    def get_messages(self, session_id: str) -> list[Message]:
        return list(self.messages.get(session_id, []))

    def update_tokens(self, session_id: str, input_tokens: int, output_tokens: int) -> None:
        self.token_updates.append((session_id, input_tokens, output_tokens))


@dataclass
class MemoryCredentialStore:
    """Dict-backed CredentialStore."""

    data: dict[str, dict[str, Any]] = field(default_factory=dict)

    def _get(self, config_id: str, key: str) -> Any:
        return self.data.get(config_id, {}).get(key)

    def _set(self, config_id: str, key: str, value: Any) -> None:
        self.data.setdefault(config_id, {})[key] = value

    def get_api_key(self, config_id: str) -> str | None:
        return self._get(config_id, "api_key")

    def get_access_token(self, config_id: str) -> str | None:
        return self._get(config_id, "access_token")

    def get_refresh_token(self, config_id: str) -> str | None:
        return self._get(config_id, "refresh_token")

    def get_token_expiry(self, config_id: str) -> int | None:
        return self._get(config_id, "token_expiry")

    def get_account_id(self, config_id: str) -> str | None:
        return self._get(config_id, "account_id")

    def save_api_key(self, config_id: str, value: str) -> None:
        self._set(config_id, "api_key", value)

    def save_access_token(self, config_id: str, value: str) -> None:
        self._set(config_id, "access_token", value)

    def save_refresh_token(self, config_id: str, value: str) -> None:
        self._set(config_id, "refresh_token", value)

    def save_token_expiry(self, config_id: str, value: int) -> None:
        self._set(config_id, "token_expiry", value)

    def save_account_id(self, config_id: str, value: str) -> None:
        self._set(config_id, "account_id", value)


@pytest.fixture
def fast_settings() -> Settings:
    """Settings with zero poll intervals and short timeouts."""
    return replace(
        Settings(),
        min_poll_interval=0.0,
        slow_down_increment=0.0,
        codex_poll_margin=0.0,
        command_timeout=5.0,
        request_timeout=5.0,
    )


@pytest.fixture
def tmp_project(tmp_path: Path) -> Path:
    """A small project tree on disk."""
    root = tmp_path / "project"
    (root / "src").mkdir(parents=True)
    (root / "src" / "main.py").write_text("def main():\n    print('hello')\n", encoding="utf-8")
    (root / "src" / "util.py").write_text("def helper():\n    return 42\n", encoding="utf-8")
    (root / "README.md").write_text("# Demo\n\nA demo project.\n", encoding="utf-8")
    (root / ".hidden").write_text("secret\n", encoding="utf-8")
    (root / "node_modules").mkdir()
    (root / "node_modules" / "dep.js").write_text("print('hello')\n", encoding="utf-8")
    return root


@pytest.fixture
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point ~ at a temporary directory so config, credentials and sessions stay local."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    for key in ("ANTHROPIC_API_KEY", "OPENAI_API_KEY", "GROQ_API_KEY"):
        monkeypatch.delenv(key, raising=False)
    return home
