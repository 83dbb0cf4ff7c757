"""Tool definition and result types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class ToolParam:
    """A parameter for a tool."""

    name: str
    type: str  # "string", "integer", "boolean", "array", "object"
    description: str
    required: bool = True
    enum: tuple[str, ...] | None = None
    default: Any = None
    items: dict[str, Any] | None = None  # For array types: JSON Schema for items


@dataclass(frozen=True, slots=True)
class ToolDef:
    """Definition of a tool exposed to the model."""

    name: str
    description: str
    parameters: tuple[ToolParam, ...] = ()

    @property
    def required(self) -> tuple[str, ...]:
        return tuple(p.name for p in self.parameters if p.required)


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Outcome of one tool execution. Failures are values, never exceptions."""

    output: str
    success: bool = True

    @classmethod
    def ok(cls, output: str) -> ToolResult:
        return cls(output=output, success=True)

    @classmethod
    def fail(cls, output: str) -> ToolResult:
        return cls(output=output, success=False)
