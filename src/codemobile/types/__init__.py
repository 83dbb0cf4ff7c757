"""Type definitions for codemobile."""

from codemobile.types.config import GenerationConfig, SessionMode, Settings
from codemobile.types.events import (
    Done,
    Error,
    StreamEvent,
    TextDelta,
    ToolCallComplete,
    ToolCallDelta,
    Usage,
    is_terminal,
)
from codemobile.types.messages import Message, Role, ToolCall
from codemobile.types.providers import (
    ApiType,
    AuthMethod,
    ModelDef,
    ProviderCategory,
    ProviderClient,
    ProviderConfig,
    ProviderDef,
)
from codemobile.types.tools import ToolDef, ToolParam, ToolResult

__all__ = [
    "ApiType",
    "AuthMethod",
    "Done",
    "Error",
    "GenerationConfig",
    "Message",
    "ModelDef",
    "ProviderCategory",
    "ProviderClient",
    "ProviderConfig",
    "ProviderDef",
    "Role",
    "SessionMode",
    "Settings",
    "StreamEvent",
    "TextDelta",
    "ToolCall",
    "ToolCallComplete",
    "ToolCallDelta",
    "ToolDef",
    "ToolParam",
    "ToolResult",
    "Usage",
    "is_terminal",
]
