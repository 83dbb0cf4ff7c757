"""Tool backend for permission-scoped document trees.

Scoped storage exposes a project only as a tree of named documents (for
example a ``content://`` tree granted by a document picker).  There are no
filesystem paths, so tool paths are normalized to "/"-separated segments
and walked one name at a time from the root document.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from codemobile.tools.backend import (
    Entry,
    PathSafetyError,
    ToolBackend,
    edit_content,
    format_read_result,
    too_large,
    write_result,
)
from codemobile.types.config import Settings
from codemobile.types.tools import ToolResult

logger = logging.getLogger(__name__)

SCOPED_SCHEME = "content://"
RUN_UNSUPPORTED = (
    "Error: run_command is not supported for scoped storage projects. "
    "Open the project from a filesystem path to run commands."
)
ROOT_UNAVAILABLE = "Error: Could not open scoped project root. Re-select the folder and grant access."


@runtime_checkable
class TreeDocument(Protocol):
    """A node of a scoped storage tree."""

    @property
    def name(self) -> str: ...

    @property
    def is_directory(self) -> bool: ...

    @property
    def size(self) -> int: ...

    def list_children(self) -> list[TreeDocument]: ...

    def find(self, name: str) -> TreeDocument | None: ...

    def create_file(self, name: str) -> TreeDocument | None: ...

    def create_directory(self, name: str) -> TreeDocument | None: ...

    def delete(self) -> bool: ...

    def read_bytes(self) -> bytes: ...

    def write_bytes(self, data: bytes) -> None: ...


class InMemoryTree:
    """Dictionary-backed :class:`TreeDocument` implementation."""

    def __init__(self, name: str = "", is_directory: bool = True, parent: InMemoryTree | None = None) -> None:
        self._name = name
        self._is_directory = is_directory
        self._parent = parent
        self._children: dict[str, InMemoryTree] = {}
        self._data = b""

    @classmethod
    def from_dict(cls, files: dict[str, str | bytes], name: str = "") -> InMemoryTree:
        """Build a tree from ``{"dir/file.txt": content}``; a trailing "/" makes an empty directory."""
        root = cls(name)
        for path, content in files.items():
            parts = [p for p in path.split("/") if p]
            node = root
            for part in parts[:-1] if not path.endswith("/") else parts:
                node = node.find(part) or node.create_directory(part)
            if not path.endswith("/"):
                leaf = node.create_file(parts[-1])
                leaf.write_bytes(content.encode() if isinstance(content, str) else content)
        return root

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_directory(self) -> bool:
        return self._is_directory

    @property
    def size(self) -> int:
        return len(self._data)

    def list_children(self) -> list[InMemoryTree]:
        return list(self._children.values())

    def find(self, name: str) -> InMemoryTree | None:
        return self._children.get(name)

    def create_file(self, name: str) -> InMemoryTree:
        return self._create(name, is_directory=False)

    def create_directory(self, name: str) -> InMemoryTree:
        return self._create(name, is_directory=True)

    def delete(self) -> bool:
        if self._parent is None:
            return False
        self._parent._children.pop(self._name, None)
        self._parent = None
        return True

    def read_bytes(self) -> bytes:
        if self._is_directory:
            raise IsADirectoryError(self._name)
        return self._data

    def write_bytes(self, data: bytes) -> None:
        if self._is_directory:
            raise IsADirectoryError(self._name)
        self._data = bytes(data)

    def _create(self, name: str, is_directory: bool) -> InMemoryTree:
        if not self._is_directory:
            raise NotADirectoryError(self._name)
        if name in self._children:
            raise FileExistsError(name)
        child = InMemoryTree(name, is_directory=is_directory, parent=self)
        self._children[name] = child
        return child

    def __repr__(self) -> str:
        kind = "dir" if self._is_directory else "file"
        return f"InMemoryTree({self._name!r}, {kind})"


class ScopedStorageBackend(ToolBackend):
    """Backend over a :class:`TreeDocument` root.

    *root* may be None when a scoped URI could not be opened; every
    operation then fails with an actionable message.
    """

    def __init__(
        self,
        root: TreeDocument | None,
        settings: Settings | None = None,
        root_uri: str | None = None,
    ) -> None:
        super().__init__(settings)
        self.root = root
        self.root_uri = root_uri.rstrip("/") if root_uri else None

    def normalize(self, path: str) -> str:
        """Return *path* as "/"-joined segments relative to the root.

        Raises
        ------
        PathSafetyError
            For absolute paths, foreign ``content://`` URIs and ``..`` segments.
        """
        candidate = path.strip().replace("\\", "/")
        if not candidate or candidate == ".":
            return ""
        if candidate.startswith(SCOPED_SCHEME):
            if self.root_uri is None or not candidate.startswith(self.root_uri):
                raise PathSafetyError(path)
            candidate = candidate[len(self.root_uri) :].lstrip("/")
        elif candidate.startswith("/"):
            raise PathSafetyError(path)
        if candidate.startswith("./"):
            candidate = candidate[2:]
        segments = [s for s in candidate.split("/") if s and s != "."]
        if ".." in segments:
            raise PathSafetyError(path)
        return "/".join(segments)

    # ------------------------------------------------------------------
    # Capabilities
    # ------------------------------------------------------------------

    def read(self, path: str, start_line: int | None = None, end_line: int | None = None) -> ToolResult:
        if self.root is None:
            return ToolResult.fail(ROOT_UNAVAILABLE)
        target = self._find(self.normalize(path))
        if target is None:
            return ToolResult.fail(f"Error: File not found: {path}")
        if target.is_directory:
            return ToolResult.fail(f"Error: '{path}' is a directory, use list_directory instead.")
        if target.size > self.settings.max_file_size and start_line is None and end_line is None:
            return too_large(target.size)
        content = target.read_bytes().decode("utf-8", errors="replace")
        return format_read_result(path, content, start_line, end_line)

    def write(self, path: str, content: str) -> ToolResult:
        if self.root is None:
            return ToolResult.fail(ROOT_UNAVAILABLE)
        rel = self.normalize(path)
        if not rel:
            return ToolResult.fail(f"Error: '{path}' is a directory.")
        parent_rel, _, file_name = rel.rpartition("/")
        parent = self._ensure_directory(parent_rel)
        if parent is None:
            return ToolResult.fail(f"Error: Could not create parent directories for: {path}")

        existing = parent.find(file_name)
        if existing is not None and existing.is_directory:
            return ToolResult.fail(f"Error: '{path}' is a directory.")
        target = existing or parent.create_file(file_name)
        if target is None:
            return ToolResult.fail(f"Error: Could not create file: {path}")
        target.write_bytes(content.encode("utf-8"))
        return write_result(path, content, existing is not None)

    def edit(self, path: str, old: str, new: str) -> ToolResult:
        if self.root is None:
            return ToolResult.fail(ROOT_UNAVAILABLE)
        target = self._find(self.normalize(path))
        if target is None:
            return ToolResult.fail(f"Error: File not found: {path}")
        if target.is_directory:
            return ToolResult.fail(f"Error: '{path}' is not a file.")
        if target.size > self.settings.max_file_size:
            return ToolResult.fail(f"Error: File too large ({target.size} bytes).")
        content = target.read_bytes().decode("utf-8", errors="replace")
        updated, result = edit_content(path, content, old, new)
        if updated is not None:
            target.write_bytes(updated.encode("utf-8"))
        return result

    def delete(self, path: str) -> ToolResult:
        if self.root is None:
            return ToolResult.fail(ROOT_UNAVAILABLE)
        rel = self.normalize(path)
        if not rel:
            return ToolResult.fail("Error: Cannot delete project root.")
        target = self._find(rel)
        if target is None:
            return ToolResult.fail(f"Error: File not found: {path}")
        was_directory = target.is_directory
        if was_directory and target.list_children():
            return ToolResult.fail("Error: Directory is not empty. Delete contents first.")
        if not target.delete():
            return ToolResult.fail(f"Error: Failed to delete: {path}")
        kind = "directory" if was_directory else "file"
        return ToolResult.ok(f"Deleted {kind}: {path}")

    async def run(self, command: str, cwd: str | None = None) -> ToolResult:
        return ToolResult.fail(RUN_UNSUPPORTED)

    def list(self, path: str = ".", recursive: bool = False) -> ToolResult:
        if self.root is None:
            return ToolResult.fail(ROOT_UNAVAILABLE)
        return super().list(path, recursive)

    def search(self, pattern: str, path: str | None = None, file_pattern: str | None = None) -> ToolResult:
        if self.root is None:
            return ToolResult.fail(ROOT_UNAVAILABLE)
        return super().search(pattern, path, file_pattern)

    # ------------------------------------------------------------------
    # Storage primitives
    # ------------------------------------------------------------------

    def _lookup(self, path: str) -> Entry | None:
        rel = self.normalize(path)
        document = self._find(rel)
        if document is None:
            return None
        return _entry(document, rel)

    def _children(self, entry: Entry) -> list[Entry]:
        prefix = f"{entry.rel}/" if entry.rel else ""
        return [_entry(child, prefix + child.name) for child in entry.handle.list_children()]

    def _read_text(self, entry: Entry) -> str:
        return entry.handle.read_bytes().decode("utf-8", errors="replace")

    def _find(self, rel: str) -> TreeDocument | None:
        current = self.root
        if current is None or not rel:
            return current
        for segment in rel.split("/"):
            found = current.find(segment)
            if found is None:
                return None
            current = found
        return current

    def _ensure_directory(self, rel: str) -> TreeDocument | None:
        current = self.root
        if current is None or not rel:
            return current
        for segment in rel.split("/"):
            existing = current.find(segment)
            if existing is None:
                created = current.create_directory(segment)
                if created is None:
                    return None
                current = created
            elif existing.is_directory:
                current = existing
            else:
                return None
        return current


def _entry(document: TreeDocument, rel: str) -> Entry:
    is_dir = document.is_directory
    return Entry(
        name=document.name,
        rel=rel,
        is_dir=is_dir,
        size=0 if is_dir else document.size,
        handle=document,
    )
