"""Tests for codemobile.core.prompt."""

from __future__ import annotations

from codemobile.core.prompt import (
    BUILD_MODE,
    IDENTITY,
    MAX_FILE_TREE_CHARS,
    PLAN_MODE,
    SAFETY,
    TOOL_USAGE,
    SystemPromptBuilder,
)
from codemobile.types.config import SessionMode


class TestSections:
    def test_build_mode_sections_in_order(self):
        prompt = SystemPromptBuilder(SessionMode.BUILD).build()
        assert prompt.startswith(IDENTITY)
        assert prompt.index("## Mode: BUILD") < prompt.index("## Tool Usage") < prompt.index("## Code Formatting")
        assert prompt.endswith(SAFETY)
        assert "## Project Context" not in prompt

    def test_plan_mode_has_no_tool_usage(self):
        prompt = SystemPromptBuilder(SessionMode.PLAN).build()
        assert PLAN_MODE in prompt
        assert BUILD_MODE not in prompt
        assert TOOL_USAGE not in prompt

    def test_mode_can_be_switched(self):
        builder = SystemPromptBuilder(SessionMode.BUILD).mode(SessionMode.PLAN)
        assert "## Mode: PLAN" in builder.build()


class TestProjectContext:
    def test_full_context(self):
        prompt = (
            SystemPromptBuilder()
            .project("shop", "/home/me/shop")
            .open_file("app.py", "print('hi')")
            .modified_files(["app.py", "models.py"])
            .file_tree("|-- app.py\n\\-- models.py")
            .build()
        )
        context = prompt[prompt.index("## Project Context") :]
        assert context.splitlines()[:5] == [
            "## Project Context",
            "- Project: shop",
            "- Root: /home/me/shop",
            "- Recently modified: app.py, models.py",
            "- Currently viewing: app.py",
        ]
        assert "```\nprint('hi')\n```" in context
        assert "- File structure:\n```\n|-- app.py\n\\-- models.py\n```" in context

    def test_modified_files_are_capped(self):
        files = [f"f{i}.py" for i in range(20)]
        prompt = SystemPromptBuilder().modified_files(files).build()
        assert "f14.py (+5 more)" in prompt
        assert "f15.py" not in prompt

    def test_long_preview_and_tree_are_truncated(self):
        prompt = (
            SystemPromptBuilder()
            .open_file("big.py", "x" * 5000)
            .file_tree("y" * 5000)
            .build()
        )
        assert "x" * 2000 + "\n// ... truncated ..." in prompt
        assert "x" * 2001 not in prompt
        assert "y" * MAX_FILE_TREE_CHARS + "\n... (truncated)" in prompt

    def test_open_file_without_preview(self):
        prompt = SystemPromptBuilder().open_file("a.py").build()
        assert prompt.endswith("- Currently viewing: a.py")


class TestCustomInstructions:
    def test_appended_last(self):
        prompt = SystemPromptBuilder().project("p", None).custom_instructions("  Use tabs.  ").build()
        assert prompt.endswith("## Custom Instructions\nUse tabs.")
        assert prompt.index("## Project Context") < prompt.index("## Custom Instructions")

    def test_blank_instructions_are_ignored(self):
        assert "Custom Instructions" not in SystemPromptBuilder().custom_instructions("   ").build()
