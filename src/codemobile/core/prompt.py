"""System prompt assembly.

The prompt is a fixed sequence of sections followed by optional project
context and user instructions::

    prompt = (
        SystemPromptBuilder(SessionMode.BUILD)
        .project("shop", "/home/me/shop")
        .modified_files(["app.py", "models.py"])
        .file_tree(tree)
        .build()
    )
"""

from __future__ import annotations

from collections.abc import Sequence

from codemobile.types.config import SessionMode

MAX_MODIFIED_FILES = 15
MAX_FILE_PREVIEW_CHARS = 2000
MAX_FILE_TREE_CHARS = 1500

IDENTITY = (
    "You are CodeMobile, a senior-level coding assistant. You help developers "
    "write, debug, refactor and understand code in their project."
)

TONE_AND_STYLE = """\
## Tone and Style
- Be concise and direct. A typical answer is 1-5 lines, not counting code blocks.
- Give more detail only when the task is complex or the user asks for it.
- Skip preamble ("Here is the code...") and postamble ("Let me know if...").
- After finishing an edit or task, confirm briefly what you did.
- Reply in the language the user writes in.
- Use markdown: backticks for symbols, fenced code blocks with a language tag.
- Do not use emojis unless asked."""

BUILD_MODE = """\
## Mode: BUILD
You are in BUILD mode: write and edit code in the project.
You have tools to read, create, edit and delete files, list directories, search file contents and run shell commands.

### Use the function calling tools
- Interact with the project only through the provided tools (write_file, edit_file, read_file, ...).
- Never write tool calls as text, XML tags or pseudo-code in the chat; they have no effect.
- If a tool cannot be used, say why instead of pretending.

### Guidelines
- Create and change files with write_file and edit_file rather than pasting code into the chat.
- Read a file with read_file before modifying it.
- Explore with list_directory and search_files before large changes.
- Use run_command for builds, tests, git and package managers.
- Include required imports and handle errors and edge cases.
- Prefer modern, idiomatic patterns for the language at hand."""

PLAN_MODE = """\
## Mode: PLAN
You are in PLAN mode: focus on architecture, design and strategy. No tools are available.

### Guidelines
- Help the user think the problem through before any code is written.
- Discuss tradeoffs, patterns and alternatives.
- Present plans as numbered steps.
- Do not write implementation code unless asked; small pseudocode or interface sketches are fine.
- Suggest a file layout when relevant.
- Break described features down into concrete tasks."""

TOOL_USAGE = """\
## Tool Usage
- **read_file**: read file contents, optionally a line range
- **write_file**: create or overwrite a file
- **edit_file**: replace one exact occurrence of old_string with new_string
- **delete_file**: delete a file or an empty directory
- **list_directory**: list a directory, optionally as a recursive tree
- **run_command**: run a shell command in the project
- **search_files**: search file contents for a pattern

### Rules
- Read a file before editing it.
- old_string must match exactly, including whitespace. Include at least 3 lines of context.
- Use write_file with the complete content for new files.
- After changes, run the relevant build, lint or test command when one exists.
- When a tool fails, read the error and try a different approach."""

CODE_FORMATTING = """\
## Code Formatting
- Use fenced code blocks with a language tag.
- Name the file when showing edits to existing code.
- Mark unchanged regions in partial edits with `# ... existing code ...`.
- Never put line numbers inside code blocks."""

PROFESSIONAL_STANDARDS = """\
## Professional Standards
- Put technical accuracy first. Do not agree with incorrect assumptions to be agreeable.
- Say so when you do not know something. Never invent APIs or library methods.
- Investigate before answering when there is uncertainty."""

PROACTIVENESS = """\
## Proactiveness
- Do what the user asks. Answer questions before proposing changes.
- Mention follow-ups (tests, edge cases) only when directly relevant.
- Point out an obvious bug next to the code you are working on."""

CONTEXT_AWARENESS = """\
## Context Awareness
- Use the provided project context (open file, file tree, modified files) for targeted answers.
- Trace symbols to their definitions before making claims about them.
- Ask one focused question when the context is insufficient.
- Refer to specific files and line ranges."""

SAFETY = """\
## Safety
- Help with defensive security tasks only; never write malicious code.
- Do not guess URLs other than well-known documentation.
- Warn when code handles credentials, user data or network traffic insecurely.
- Never hardcode secrets in generated code; use environment variables or a secret store."""

PROJECT_CONTEXT_HEADER = "## Project Context"


class SystemPromptBuilder:
    """Compose the system prompt for one session mode."""

    def __init__(self, mode: SessionMode = SessionMode.BUILD) -> None:
        self._mode = mode
        self._project_name: str | None = None
        self._project_path: str | None = None
        self._open_file_path: str | None = None
        self._open_file_content: str | None = None
        self._modified_files: list[str] = []
        self._file_tree: str | None = None
        self._custom_instructions: str | None = None

    def mode(self, mode: SessionMode) -> SystemPromptBuilder:
        self._mode = mode
        return self

    def project(self, name: str | None, path: str | None) -> SystemPromptBuilder:
        self._project_name = name
        self._project_path = path
        return self

    def open_file(self, relative_path: str | None, content_preview: str | None = None) -> SystemPromptBuilder:
        self._open_file_path = relative_path
        self._open_file_content = content_preview
        return self

    def modified_files(self, files: Sequence[str]) -> SystemPromptBuilder:
        self._modified_files = list(files)
        return self

    def file_tree(self, tree: str | None) -> SystemPromptBuilder:
        self._file_tree = tree
        return self

    def custom_instructions(self, instructions: str | None) -> SystemPromptBuilder:
        self._custom_instructions = instructions
        return self

    def build(self) -> str:
        sections = [IDENTITY, TONE_AND_STYLE]
        if self._mode is SessionMode.BUILD:
            sections += [BUILD_MODE, TOOL_USAGE]
        else:
            sections.append(PLAN_MODE)
        sections += [CODE_FORMATTING, PROFESSIONAL_STANDARDS, PROACTIVENESS, CONTEXT_AWARENESS, SAFETY]

        context = self._project_context()
        if context:
            sections.append(context)
        if self._custom_instructions and self._custom_instructions.strip():
            sections.append(f"## Custom Instructions\n{self._custom_instructions.strip()}")
        return "\n\n".join(s.strip() for s in sections)

    def _project_context(self) -> str:
        has_context = (
            self._project_name is not None
            or self._project_path is not None
            or self._modified_files
            or self._open_file_path is not None
            or self._file_tree is not None
        )
        if not has_context:
            return ""

        parts = [PROJECT_CONTEXT_HEADER]
        if self._project_name is not None:
            parts.append(f"- Project: {self._project_name}")
        if self._project_path is not None:
            parts.append(f"- Root: {self._project_path}")

        if self._modified_files:
            shown = ", ".join(self._modified_files[:MAX_MODIFIED_FILES])
            hidden = len(self._modified_files) - MAX_MODIFIED_FILES
            suffix = f" (+{hidden} more)" if hidden > 0 else ""
            parts.append(f"- Recently modified: {shown}{suffix}")

        if self._open_file_path is not None:
            parts.append(f"- Currently viewing: {self._open_file_path}")
            if self._open_file_content is not None:
                preview = self._open_file_content
                if len(preview) > MAX_FILE_PREVIEW_CHARS:
                    preview = preview[:MAX_FILE_PREVIEW_CHARS] + "\n// ... truncated ..."
                parts.append(f"```\n{preview}\n```")

        if self._file_tree is not None:
            tree = self._file_tree
            if len(tree) > MAX_FILE_TREE_CHARS:
                tree = tree[:MAX_FILE_TREE_CHARS] + "\n... (truncated)"
            parts.append(f"- File structure:\n```\n{tree}\n```")

        return "\n".join(parts)
