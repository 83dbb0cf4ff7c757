"""Agent loop, prompt assembly and persistence."""

from codemobile.core.credentials import TomlCredentialStore
from codemobile.core.orchestrator import (
    AgenticOrchestrator,
    OrchestratorResult,
    StopReason,
    ToolResultEvent,
)
from codemobile.core.prompt import SystemPromptBuilder
from codemobile.core.session import JsonlMessageStore, MessageStore, new_session_id

__all__ = [
    "AgenticOrchestrator",
    "JsonlMessageStore",
    "MessageStore",
    "OrchestratorResult",
    "StopReason",
    "SystemPromptBuilder",
    "TomlCredentialStore",
    "ToolResultEvent",
    "new_session_id",
]
