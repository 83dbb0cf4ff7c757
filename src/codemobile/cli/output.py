"""Rich-powered rendering of orchestrator events."""

from __future__ import annotations

from rich.console import Console
from rich.text import Text

from codemobile.core.orchestrator import OrchestratorResult, StopReason, ToolResultEvent
from codemobile.types.events import Error, StreamEvent, TextDelta, ToolCallComplete

# Palette
STYLE_TOOL_NAME = "bold #a78bfa"
STYLE_TOOL_DETAIL = "#7c7c8a"
STYLE_ERROR_LABEL = "bold #f87171"
STYLE_ERROR_BODY = "#f87171"
STYLE_RESULT_LABEL = "bold #94a3b8"
STYLE_RESULT_VALUE = "#e2e8f0"
STYLE_RESULT_DIM = "dim #7c7c8a"

MAX_DETAIL_CHARS = 80
MAX_PREVIEW_LINES = 6


class StreamPrinter:
    """Prints assistant text to stdout and tool activity to stderr.

    Text deltas are buffered until a newline so partial lines are never
    interleaved with tool output.
    """

    def __init__(self, stdout: Console | None = None, stderr: Console | None = None) -> None:
        self._stdout = stdout or Console()
        self._stderr = stderr or Console(stderr=True)
        self._line_buffer = ""

    def handle(self, event: StreamEvent | ToolResultEvent) -> None:
        match event:
            case TextDelta(text=text):
                self._feed(text)
            case ToolCallComplete(tool_call=call):
                self.flush()
                line = Text("  ▸ ", style=STYLE_TOOL_DETAIL)
                line.append(call.name, style=STYLE_TOOL_NAME)
                line.append(f" {_clip(call.arguments, MAX_DETAIL_CHARS)}", style=STYLE_TOOL_DETAIL)
                self._stderr.print(line, highlight=False)
            case ToolResultEvent(result=result):
                style = STYLE_RESULT_DIM if result.success else STYLE_ERROR_BODY
                lines = result.output.splitlines() or [""]
                for text in lines[:MAX_PREVIEW_LINES]:
                    self._stderr.print(Text(f"    {text}", style=style), highlight=False)
                if len(lines) > MAX_PREVIEW_LINES:
                    hidden = len(lines) - MAX_PREVIEW_LINES
                    self._stderr.print(Text(f"    ... {hidden} more line(s)", style=STYLE_RESULT_DIM))
            case Error(message=message):
                self.flush()
                line = Text("Error: ", style=STYLE_ERROR_LABEL)
                line.append(message, style=STYLE_ERROR_BODY)
                self._stderr.print(line, highlight=False)
            case _:
                pass

    def flush(self) -> None:
        if self._line_buffer:
            self._stdout.print(self._line_buffer, highlight=False, markup=False)
            self._line_buffer = ""

    def summary(self, session_id: str, result: OrchestratorResult | None) -> None:
        self.flush()
        if result is None:
            return
        line = Text()
        line.append("session ", style=STYLE_RESULT_LABEL)
        line.append(session_id, style=STYLE_RESULT_VALUE)
        line.append(" | rounds ", style=STYLE_RESULT_LABEL)
        line.append(str(result.rounds), style=STYLE_RESULT_VALUE)
        line.append(" | tokens ", style=STYLE_RESULT_LABEL)
        line.append(f"{result.input_tokens:,} in / {result.output_tokens:,} out", style=STYLE_RESULT_VALUE)
        if result.stop_reason is not StopReason.END_TURN:
            line.append(f" | {result.stop_reason.value}", style=STYLE_ERROR_LABEL)
        self._stderr.print(line, highlight=False)

    def _feed(self, text: str) -> None:
        self._line_buffer += text
        while "\n" in self._line_buffer:
            line, self._line_buffer = self._line_buffer.split("\n", 1)
            self._stdout.print(line, highlight=False, markup=False)


def _clip(value: str, limit: int) -> str:
    value = " ".join(value.split())
    if len(value) <= limit:
        return value
    return value[: limit - 3] + "..."
