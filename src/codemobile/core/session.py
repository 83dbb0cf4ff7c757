"""JSONL append-only session persistence."""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from codemobile.core.config import config_home
from codemobile.types.messages import Message

logger = logging.getLogger(__name__)


def _sessions_dir() -> Path:
    """Get the sessions directory, creating it if needed."""
    d = config_home() / "sessions"
    d.mkdir(parents=True, exist_ok=True)
    return d


def new_session_id() -> str:
    """Generate a new session ID."""
    return uuid.uuid4().hex[:12]


@runtime_checkable
class MessageStore(Protocol):
    """Where the orchestrator persists conversation turns."""

    def add_message(
        self,
        session_id: str,
        message: Message,
        input_tokens: int | None = None,
        output_tokens: int | None = None,
    ) -> None: ...

    def get_messages(self, session_id: str) -> list[Message]: ...

    def update_tokens(self, session_id: str, input_tokens: int, output_tokens: int) -> None: ...


@dataclass(frozen=True, slots=True)
class SessionInfo:
    """Summary of a stored session."""

    session_id: str
    message_count: int
    input_tokens: int
    output_tokens: int
    updated_at: str | None = None


class JsonlMessageStore:
    """One append-only ``<session_id>.jsonl`` file per session.

    Each line is ``{"type": "message" | "tokens", "data": ..., "timestamp": ...}``.
    Token totals are the sum of every ``tokens`` entry.
    """

    def __init__(self, directory: Path | None = None) -> None:
        self._directory = directory

    @property
    def directory(self) -> Path:
        if self._directory is None:
            return _sessions_dir()
        self._directory.mkdir(parents=True, exist_ok=True)
        return self._directory

    def path_for(self, session_id: str) -> Path:
        return self.directory / f"{session_id}.jsonl"

    def add_message(
        self,
        session_id: str,
        message: Message,
        input_tokens: int | None = None,
        output_tokens: int | None = None,
    ) -> None:
        entry: dict[str, Any] = {"type": "message", "data": message.to_dict()}
        if input_tokens is not None:
            entry["input_tokens"] = input_tokens
        if output_tokens is not None:
            entry["output_tokens"] = output_tokens
        self._append(session_id, entry)

    def get_messages(self, session_id: str) -> list[Message]:
        return [
            Message.from_dict(entry["data"])
            for entry in self._entries(session_id)
            if entry.get("type") == "message"
        ]

    def update_tokens(self, session_id: str, input_tokens: int, output_tokens: int) -> None:
        self._append(
            session_id,
            {"type": "tokens", "input_tokens": input_tokens, "output_tokens": output_tokens},
        )

    def get_info(self, session_id: str) -> SessionInfo:
        messages = 0
        input_tokens = output_tokens = 0
        updated_at = None
        for entry in self._entries(session_id):
            updated_at = entry.get("timestamp", updated_at)
            if entry.get("type") == "message":
                messages += 1
            elif entry.get("type") == "tokens":
                input_tokens += int(entry.get("input_tokens", 0))
                output_tokens += int(entry.get("output_tokens", 0))
        return SessionInfo(session_id, messages, input_tokens, output_tokens, updated_at)

    def list_sessions(self) -> list[SessionInfo]:
        """All sessions, most recently modified first."""
        paths = sorted(self.directory.glob("*.jsonl"), key=lambda p: p.stat().st_mtime, reverse=True)
        return [self.get_info(p.stem) for p in paths]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _append(self, session_id: str, entry: dict[str, Any]) -> None:
        entry["timestamp"] = datetime.now(UTC).isoformat()
        with open(self.path_for(session_id), "a", encoding="utf-8") as f:
            f.write(json.dumps(entry, default=str) + "\n")

    def _entries(self, session_id: str) -> list[dict[str, Any]]:
        path = self.path_for(session_id)
        if not path.exists():
            return []
        entries: list[dict[str, Any]] = []
        with open(path, encoding="utf-8") as f:
            for number, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(json.loads(line))
                except json.JSONDecodeError:
                    logger.warning("Skipping corrupt line %d in %s", number, path)
        return entries
