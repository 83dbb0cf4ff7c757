"""Tool backend operating directly on a filesystem project root."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from pathlib import Path

from codemobile.tools.backend import (
    Entry,
    PathSafetyError,
    ToolBackend,
    edit_content,
    format_read_result,
    too_large,
    truncate_output,
    write_result,
)
from codemobile.types.config import Settings
from codemobile.types.tools import ToolResult

logger = logging.getLogger(__name__)


async def _reap(proc: asyncio.subprocess.Process) -> None:
    """Kill *proc* if it is still running and wait for it to exit."""
    with contextlib.suppress(ProcessLookupError):
        if proc.returncode is None:
            proc.kill()
        await proc.wait()


class LocalBackend(ToolBackend):
    """Filesystem backend confined to *root*.

    Relative paths resolve against the root; absolute paths are accepted
    only when they resolve inside it.  Symlinks are resolved before the
    containment check.
    """

    def __init__(self, root: str | Path, settings: Settings | None = None) -> None:
        super().__init__(settings)
        self.root = Path(root).expanduser().resolve()

    def resolve(self, path: str) -> Path:
        """Map a tool path to an absolute path inside the root.

        Raises
        ------
        PathSafetyError
            If the resolved path lies outside the root.
        """
        candidate = Path(path.strip() or ".").expanduser()
        if not candidate.is_absolute():
            candidate = self.root / candidate
        resolved = candidate.resolve()
        if not resolved.is_relative_to(self.root):
            raise PathSafetyError(path)
        return resolved

    # ------------------------------------------------------------------
    # Capabilities
    # ------------------------------------------------------------------

    def read(self, path: str, start_line: int | None = None, end_line: int | None = None) -> ToolResult:
        target = self.resolve(path)
        if not target.exists():
            return ToolResult.fail(f"Error: File not found: {path}")
        if not target.is_file():
            return ToolResult.fail(f"Error: '{path}' is a directory, use list_directory instead.")
        size = target.stat().st_size
        if size > self.settings.max_file_size and start_line is None and end_line is None:
            return too_large(size)
        content = target.read_text(encoding="utf-8", errors="replace")
        return format_read_result(path, content, start_line, end_line)

    def write(self, path: str, content: str) -> ToolResult:
        target = self.resolve(path)
        if target == self.root or target.is_dir():
            return ToolResult.fail(f"Error: '{path}' is a directory.")
        existed = target.exists()
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        return write_result(path, content, existed)

    def edit(self, path: str, old: str, new: str) -> ToolResult:
        target = self.resolve(path)
        if not target.exists():
            return ToolResult.fail(f"Error: File not found: {path}")
        if not target.is_file():
            return ToolResult.fail(f"Error: '{path}' is not a file.")
        size = target.stat().st_size
        if size > self.settings.max_file_size:
            return ToolResult.fail(f"Error: File too large ({size} bytes).")
        updated, result = edit_content(path, target.read_text(encoding="utf-8", errors="replace"), old, new)
        if updated is not None:
            target.write_text(updated, encoding="utf-8")
        return result

    def delete(self, path: str) -> ToolResult:
        target = self.resolve(path)
        if target == self.root:
            return ToolResult.fail("Error: Cannot delete project root.")
        if not target.exists():
            return ToolResult.fail(f"Error: File not found: {path}")
        if target.is_dir():
            if any(target.iterdir()):
                return ToolResult.fail("Error: Directory is not empty. Delete contents first.")
            target.rmdir()
            return ToolResult.ok(f"Deleted directory: {path}")
        target.unlink()
        return ToolResult.ok(f"Deleted file: {path}")

    async def run(self, command: str, cwd: str | None = None) -> ToolResult:
        workdir = self.resolve(cwd) if cwd else self.root
        if not workdir.is_dir():
            return ToolResult.fail(f"Error: Working directory not found: {cwd}")

        timeout = self.settings.command_timeout
        logger.debug("Running %r in %s", command, workdir)
        try:
            proc = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                cwd=str(workdir),
            )
        except OSError as exc:
            return ToolResult.fail(f"Error executing command: {exc}")

        try:
            stdout_bytes, _ = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except TimeoutError:
            await _reap(proc)
            return ToolResult.fail(f"Error: Command timed out after {timeout:g} seconds: {command}")
        except asyncio.CancelledError:
            await _reap(proc)
            raise

        output = stdout_bytes.decode("utf-8", errors="replace") if stdout_bytes else ""
        exit_code = proc.returncode if proc.returncode is not None else 0
        body = truncate_output(output, self.settings.max_output_chars) if output else "(no output)"
        return ToolResult(f"Exit code: {exit_code}\n{body}".rstrip(), success=exit_code == 0)

    # ------------------------------------------------------------------
    # Storage primitives
    # ------------------------------------------------------------------

    def _lookup(self, path: str) -> Entry | None:
        target = self.resolve(path)
        if not target.exists():
            return None
        return self._entry(target)

    def _children(self, entry: Entry) -> list[Entry]:
        children: list[Entry] = []
        for child in entry.handle.iterdir():
            if child.is_symlink() and not child.resolve().is_relative_to(self.root):
                logger.debug("Skipping symlink leaving the root: %s", child)
                continue
            try:
                children.append(self._entry(child))
            except OSError as exc:
                logger.debug("Skipping %s: %s", child, exc)
        return children

    def _read_text(self, entry: Entry) -> str:
        return entry.handle.read_text(encoding="utf-8", errors="replace")

    def _entry(self, path: Path) -> Entry:
        is_dir = path.is_dir()
        rel = "" if path == self.root else path.relative_to(self.root).as_posix()
        return Entry(
            name=path.name,
            rel=rel,
            is_dir=is_dir,
            size=0 if is_dir else path.stat().st_size,
            handle=path,
        )
