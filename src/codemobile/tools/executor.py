"""ToolExecutor: parse tool-call arguments and dispatch to a storage backend."""

from __future__ import annotations

import functools
import json
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

import anyio

from codemobile.tools import definitions as tools
from codemobile.tools.backend import PathSafetyError, ToolBackend, truncate_output
from codemobile.tools.local import LocalBackend
from codemobile.tools.scoped import SCOPED_SCHEME, ScopedStorageBackend, TreeDocument
from codemobile.types.config import Settings
from codemobile.types.messages import ToolCall
from codemobile.types.tools import ToolResult

logger = logging.getLogger(__name__)

ProjectRoot = str | Path | TreeDocument


class _ArgumentError(Exception):
    """An argument is missing or has the wrong type."""


def select_backend(
    project_root: ProjectRoot,
    settings: Settings,
    open_tree: Callable[[str], TreeDocument | None] | None = None,
) -> ToolBackend:
    """Pick the backend for *project_root* once, from its addressing scheme."""
    if isinstance(project_root, TreeDocument):
        return ScopedStorageBackend(project_root, settings)
    root = str(project_root)
    if root.startswith(SCOPED_SCHEME):
        tree = open_tree(root) if open_tree is not None else None
        if tree is None:
            logger.warning("Could not open scoped project root %s", root)
        return ScopedStorageBackend(tree, settings, root_uri=root)
    return LocalBackend(root, settings)


class ToolExecutor:
    """Executes model tool calls against one project root.

    :meth:`execute` never raises: malformed arguments, unknown tools, path
    violations and I/O failures all come back as failed
    :class:`ToolResult` values the model can act on.

    Usage::

        executor = ToolExecutor("/path/to/project")
        result = await executor.execute(ToolCall("c1", "read_file", '{"path": "README.md"}'))
    """

    def __init__(
        self,
        project_root: ProjectRoot,
        settings: Settings | None = None,
        *,
        open_tree: Callable[[str], TreeDocument | None] | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.backend = select_backend(project_root, self.settings, open_tree)
        self._handlers: dict[str, Callable[[dict[str, Any]], Awaitable[ToolResult]]] = {
            tools.READ_FILE: self._read_file,
            tools.WRITE_FILE: self._write_file,
            tools.EDIT_FILE: self._edit_file,
            tools.DELETE_FILE: self._delete_file,
            tools.LIST_DIRECTORY: self._list_directory,
            tools.RUN_COMMAND: self._run_command,
            tools.SEARCH_FILES: self._search_files,
        }

    async def execute(self, tool_call: ToolCall) -> ToolResult:
        """Run one tool call and return its result."""
        try:
            args = json.loads(tool_call.arguments)
        except (json.JSONDecodeError, TypeError):
            args = None
        if not isinstance(args, dict):
            return ToolResult.fail(f"Error: Invalid tool arguments JSON: {tool_call.arguments[:200]}")

        handler = self._handlers.get(tool_call.name)
        if handler is None:
            return ToolResult.fail(f"Error: Unknown tool '{tool_call.name}'.")

        logger.debug("Executing tool %s with args %s", tool_call.name, tool_call.arguments[:500])
        try:
            result = await handler(args)
        except _ArgumentError as exc:
            return ToolResult.fail(str(exc))
        except PathSafetyError as exc:
            logger.warning("Rejected %s path %r", tool_call.name, exc.path)
            return ToolResult.fail(str(exc))
        except PermissionError as exc:
            return ToolResult.fail(f"Error: Permission denied: {exc}")
        except Exception as exc:  # noqa: BLE001
            logger.exception("Tool %s failed", tool_call.name)
            return ToolResult.fail(f"Error executing {tool_call.name}: {exc}")

        if len(result.output) > self.settings.max_output_chars:
            return ToolResult(truncate_output(result.output, self.settings.max_output_chars), result.success)
        return result

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _read_file(self, args: dict[str, Any]) -> ToolResult:
        return await self._offload(
            self.backend.read,
            _required(args, "path"),
            _optional_int(args, "start_line"),
            _optional_int(args, "end_line"),
        )

    async def _write_file(self, args: dict[str, Any]) -> ToolResult:
        return await self._offload(self.backend.write, _required(args, "path"), _required(args, "content"))

    async def _edit_file(self, args: dict[str, Any]) -> ToolResult:
        path = _required(args, "path")
        old = _required(args, "old_string")
        new = _required(args, "new_string")
        if not old:
            raise _ArgumentError("Error: 'old_string' must not be empty.")
        return await self._offload(self.backend.edit, path, old, new)

    async def _delete_file(self, args: dict[str, Any]) -> ToolResult:
        return await self._offload(self.backend.delete, _required(args, "path"))

    async def _list_directory(self, args: dict[str, Any]) -> ToolResult:
        path = _optional_str(args, "path") or "."
        return await self._offload(self.backend.list, path, _flag(args, "recursive"))

    async def _run_command(self, args: dict[str, Any]) -> ToolResult:
        return await self.backend.run(_required(args, "command"), _optional_str(args, "cwd"))

    async def _search_files(self, args: dict[str, Any]) -> ToolResult:
        return await self._offload(
            self.backend.search,
            _required(args, "pattern"),
            _optional_str(args, "path"),
            _optional_str(args, "file_pattern"),
        )

    @staticmethod
    async def _offload(func: Callable[..., ToolResult], *args: Any) -> ToolResult:
        return await anyio.to_thread.run_sync(functools.partial(func, *args))


# ------------------------------------------------------------------
# Argument helpers
# ------------------------------------------------------------------


def _required(args: dict[str, Any], name: str) -> str:
    value = args.get(name)
    if value is None:
        raise _ArgumentError(f"Error: '{name}' parameter is required.")
    return value if isinstance(value, str) else str(value)


def _optional_str(args: dict[str, Any], name: str) -> str | None:
    value = args.get(name)
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def _optional_int(args: dict[str, Any], name: str) -> int | None:
    value = args.get(name)
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise _ArgumentError(f"Error: '{name}' must be an integer.") from None


def _flag(args: dict[str, Any], name: str) -> bool:
    value = args.get(name, False)
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)
