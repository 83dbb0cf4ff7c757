"""Tests for codemobile.core.session."""

from __future__ import annotations

import json
import os
from pathlib import Path

from codemobile.core.session import JsonlMessageStore, MessageStore, new_session_id
from codemobile.types.messages import Message, Role, ToolCall


class TestSessionId:
    def test_new_session_id(self):
        sid = new_session_id()
        assert len(sid) == 12
        assert sid.isalnum()

    def test_ids_are_unique(self):
        assert len({new_session_id() for _ in range(50)}) == 50


class TestJsonlMessageStore:
    def test_satisfies_protocol(self, tmp_path: Path):
        assert isinstance(JsonlMessageStore(tmp_path), MessageStore)

    def test_round_trip_preserves_tool_calls(self, tmp_path: Path):
        store = JsonlMessageStore(tmp_path)
        call = ToolCall("c1", "read_file", '{"path": "a.py"}')
        store.add_message("s1", Message.user("read a.py"))
        store.add_message("s1", Message.assistant("", (call,)))
        store.add_message("s1", Message.tool("c1", "File: a.py (1 lines)\nx"))
        store.add_message("s1", Message.assistant("done"), 10, 2)

        messages = store.get_messages("s1")

        assert [m.role for m in messages] == [Role.USER, Role.ASSISTANT, Role.TOOL, Role.ASSISTANT]
        assert messages[1].tool_calls == (call,)
        assert messages[2].tool_call_id == "c1"

    def test_entries_are_append_only_lines(self, tmp_path: Path):
        store = JsonlMessageStore(tmp_path)
        store.add_message("s1", Message.assistant("hi"), 5, 1)
        store.update_tokens("s1", 5, 1)

        lines = store.path_for("s1").read_text().splitlines()
        first, second = (json.loads(line) for line in lines)
        assert first["type"] == "message"
        assert first["data"] == {"role": "assistant", "content": "hi"}
        assert (first["input_tokens"], first["output_tokens"]) == (5, 1)
        assert second["type"] == "tokens"
        assert "timestamp" in second

    def test_token_totals_accumulate(self, tmp_path: Path):
        store = JsonlMessageStore(tmp_path)
        store.add_message("s1", Message.user("hi"))
        store.update_tokens("s1", 100, 20)
        store.update_tokens("s1", 50, 5)

        info = store.get_info("s1")

        assert info.message_count == 1
        assert (info.input_tokens, info.output_tokens) == (150, 25)
        assert info.updated_at is not None

    def test_missing_session(self, tmp_path: Path):
        store = JsonlMessageStore(tmp_path)
        assert store.get_messages("nope") == []
        assert store.get_info("nope").message_count == 0

    def test_corrupt_lines_are_skipped(self, tmp_path: Path):
        store = JsonlMessageStore(tmp_path)
        store.add_message("s1", Message.user("first"))
        with open(store.path_for("s1"), "a", encoding="utf-8") as f:
            f.write("{truncated\n\n")
        store.add_message("s1", Message.user("second"))

        assert [m.content for m in store.get_messages("s1")] == ["first", "second"]

    def test_list_sessions_most_recent_first(self, tmp_path: Path):
        store = JsonlMessageStore(tmp_path)
        store.add_message("old", Message.user("a"))
        store.add_message("new", Message.user("b"))
        os.utime(store.path_for("old"), (1_000_000, 1_000_000))

        assert [s.session_id for s in store.list_sessions()] == ["new", "old"]

    def test_default_directory_is_under_home(self, isolated_home: Path):
        store = JsonlMessageStore()
        store.add_message("s1", Message.user("hi"))
        assert (isolated_home / ".codemobile" / "sessions" / "s1.jsonl").exists()
