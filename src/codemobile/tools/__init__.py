"""Agent tools: catalog, storage backends and executor."""

from codemobile.tools.backend import PathSafetyError, ToolBackend
from codemobile.tools.definitions import AGENT_TOOLS
from codemobile.tools.executor import ToolExecutor, select_backend
from codemobile.tools.local import LocalBackend
from codemobile.tools.scoped import InMemoryTree, ScopedStorageBackend, TreeDocument

__all__ = [
    "AGENT_TOOLS",
    "InMemoryTree",
    "LocalBackend",
    "PathSafetyError",
    "ScopedStorageBackend",
    "ToolBackend",
    "ToolExecutor",
    "TreeDocument",
    "select_backend",
]
