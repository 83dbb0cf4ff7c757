"""Storage backend interface shared by the local and scoped tool backends.

Both backends must render identical results for identical trees, so
everything that is not raw I/O (directory listings, tree rendering,
content search, read formatting) lives here.
"""

from __future__ import annotations

import fnmatch
import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from codemobile.types.config import Settings
from codemobile.types.tools import ToolResult

logger = logging.getLogger(__name__)

SKIPPED_DIRECTORIES = frozenset({"node_modules", "build", "__pycache__"})
SEARCH_LINE_PREVIEW = 120
OUTPUT_TRUNCATED = "\n... (output truncated)"


class PathSafetyError(Exception):
    """A tool path resolves outside the project root."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Error: Path '{path}' escapes the project root.")
        self.path = path


@dataclass(frozen=True, slots=True)
class Entry:
    """A file or directory as seen by the shared listing and search code."""

    name: str
    rel: str  # "/"-separated path from the project root, "" for the root
    is_dir: bool
    size: int
    handle: Any


class ToolBackend(ABC):
    """File and shell capabilities the tool executor dispatches to.

    Every operation returns a :class:`ToolResult`.  Implementations raise
    :class:`PathSafetyError` for paths escaping the root; other failures are
    returned as failed results.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or Settings()

    # ------------------------------------------------------------------
    # Capabilities
    # ------------------------------------------------------------------

    @abstractmethod
    def read(self, path: str, start_line: int | None = None, end_line: int | None = None) -> ToolResult:
        ...

    @abstractmethod
    def write(self, path: str, content: str) -> ToolResult:
        ...

    @abstractmethod
    def edit(self, path: str, old: str, new: str) -> ToolResult:
        ...

    @abstractmethod
    def delete(self, path: str) -> ToolResult:
        ...

    @abstractmethod
    async def run(self, command: str, cwd: str | None = None) -> ToolResult:
        ...

    def list(self, path: str = ".", recursive: bool = False) -> ToolResult:
        directory = self._lookup(path)
        if directory is None:
            return ToolResult.fail(f"Error: Directory not found: {path}")
        if not directory.is_dir:
            return ToolResult.fail(f"Error: '{path}' is a file, not a directory.")

        if recursive:
            lines = render_tree(directory, self._sorted_children, self.settings.max_tree_entries)
        else:
            lines = [
                f"{child.name}/" if child.is_dir else child.name
                for child in self._sorted_children(directory, include_hidden=True)
            ]
        if not lines:
            return ToolResult.ok(f"Directory is empty: {path}")
        return ToolResult.ok("\n".join(lines))

    def search(self, pattern: str, path: str | None = None, file_pattern: str | None = None) -> ToolResult:
        shown = path or "."
        directory = self._lookup(shown)
        if directory is None:
            return ToolResult.fail(f"Error: Directory not found: {shown}")
        if not directory.is_dir:
            return ToolResult.fail(f"Error: '{shown}' is a file, not a directory.")

        regex = compile_search_pattern(pattern)
        limit = self.settings.max_search_results
        matches: list[str] = []
        truncated = self._search_dir(directory, regex, file_pattern, matches, limit)

        if not matches:
            return ToolResult.ok(f"No matches found for '{pattern}'.")
        suffix = "es" if len(matches) > 1 else ""
        lines = [f"Found {len(matches)} match{suffix}:", *matches]
        if truncated:
            lines.append(f"... (results truncated, showing first {limit})")
        return ToolResult.ok("\n".join(lines))

    # ------------------------------------------------------------------
    # Storage primitives
    # ------------------------------------------------------------------

    @abstractmethod
    def _lookup(self, path: str) -> Entry | None:
        """Return the entry at *path*, or None if it does not exist."""

    @abstractmethod
    def _children(self, entry: Entry) -> list[Entry]:
        ...

    @abstractmethod
    def _read_text(self, entry: Entry) -> str:
        ...

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def _sorted_children(self, entry: Entry, include_hidden: bool = False) -> list[Entry]:
        children = self._children(entry)
        if not include_hidden:
            children = [c for c in children if not c.name.startswith(".")]
        return sorted(children, key=lambda c: (not c.is_dir, c.name.lower()))

    def _search_dir(
        self,
        directory: Entry,
        regex: re.Pattern[str],
        file_pattern: str | None,
        matches: list[str],
        limit: int,
    ) -> bool:
        """Append matches under *directory*; True once more than *limit* were seen."""
        for child in sorted(self._children(directory), key=lambda c: c.name.lower()):
            if child.name.startswith(".") or child.name in SKIPPED_DIRECTORIES:
                continue
            if child.is_dir:
                if self._search_dir(child, regex, file_pattern, matches, limit):
                    return True
                continue
            if file_pattern and not matches_file_pattern(child.name, file_pattern):
                continue
            if child.size > self.settings.max_file_size:
                continue
            try:
                text = self._read_text(child)
            except OSError as exc:
                logger.debug("Skipping unreadable file %s: %s", child.rel, exc)
                continue
            for number, line in enumerate(text.split("\n"), start=1):
                if regex.search(line):
                    if len(matches) >= limit:
                        return True
                    matches.append(f"{child.rel}:{number}: {line.strip()[:SEARCH_LINE_PREVIEW]}")
        return False


# ------------------------------------------------------------------
# Rendering helpers
# ------------------------------------------------------------------


def render_tree(
    root: Entry,
    children: Callable[[Entry], list[Entry]],
    max_entries: int,
) -> list[str]:
    """Render *root*'s descendants with ``|-- `` / ``\\-- `` connectors."""
    lines: list[str] = []
    count = 0

    def walk(entry: Entry, prefix: str) -> bool:
        nonlocal count
        items = children(entry)
        for idx, child in enumerate(items):
            if count >= max_entries:
                lines.append(f"{prefix}... (truncated)")
                return False
            count += 1
            last = idx == len(items) - 1
            connector = "\\-- " if last else "|-- "
            lines.append(f"{prefix}{connector}{child.name}{'/' if child.is_dir else ''}")
            if child.is_dir and not walk(child, prefix + ("    " if last else "|   ")):
                return False
        return True

    walk(root, "")
    return lines


def format_read_result(path: str, content: str, start_line: int | None, end_line: int | None) -> ToolResult:
    lines = content.split("\n") if content else []
    total = len(lines)
    if total == 0:
        return ToolResult.ok(f"File: {path} (0 lines)\n")

    start = min(max(start_line or 1, 1), total)
    end = min(max(end_line or total, start), total)
    if start_line is not None or end_line is not None:
        header = f"File: {path} (lines {start}-{end} of {total})\n"
    else:
        header = f"File: {path} ({total} lines)\n"
    return ToolResult.ok(header + "\n".join(lines[start - 1 : end]))


def too_large(size: int) -> ToolResult:
    return ToolResult.fail(f"Error: File too large ({size} bytes). Use start_line/end_line to read a portion.")


def write_result(path: str, content: str, existed: bool) -> ToolResult:
    verb = "Updated" if existed else "Created"
    return ToolResult.ok(f"{verb} file: {path} ({line_count(content)} lines written)")


def edit_content(path: str, content: str, old: str, new: str) -> tuple[str | None, ToolResult]:
    """Apply a unique-match replacement; the new text is None when nothing changes."""
    occurrences = count_occurrences(content, old)
    if occurrences == 0:
        return None, ToolResult.fail(
            f"Error: Could not find the specified text in {path}. "
            "Make sure old_string matches exactly including whitespace and indentation."
        )
    if occurrences > 1:
        return None, ToolResult.fail(
            f"Error: Found {occurrences} occurrences of old_string in {path}. "
            "Include more context to make the match unique."
        )
    return content.replace(old, new, 1), ToolResult.ok(f"Edited file: {path} (replaced 1 occurrence)")


def line_count(content: str) -> int:
    return content.count("\n") + (1 if content else 0)


def count_occurrences(text: str, search: str) -> int:
    """Count possibly overlapping occurrences of a non-empty *search*."""
    count = 0
    index = text.find(search)
    while index >= 0:
        count += 1
        index = text.find(search, index + 1)
    return count


def compile_search_pattern(pattern: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error:
        return re.compile(re.escape(pattern), re.IGNORECASE)


def matches_file_pattern(name: str, file_pattern: str) -> bool:
    return fnmatch.fnmatchcase(name.lower(), file_pattern.lower())


def truncate_output(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + OUTPUT_TRUNCATED
