"""The agentic loop: model call, tool execution, repeat within a round budget."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import aclosing
from dataclasses import dataclass
from enum import Enum

from codemobile.core.session import MessageStore
from codemobile.tools.definitions import AGENT_TOOLS
from codemobile.tools.executor import ToolExecutor
from codemobile.types.config import GenerationConfig, SessionMode, Settings
from codemobile.types.events import (
    Error,
    StreamEvent,
    TextDelta,
    ToolCallComplete,
    Usage,
    is_terminal,
)
from codemobile.types.messages import Message, ToolCall
from codemobile.types.providers import ProviderClient
from codemobile.types.tools import ToolResult

logger = logging.getLogger(__name__)


class StopReason(str, Enum):
    END_TURN = "end_turn"
    MAX_ROUNDS = "max_rounds"
    ERROR = "error"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class ToolResultEvent:
    """Emitted after each tool call finishes."""

    tool_call: ToolCall
    result: ToolResult


@dataclass(frozen=True, slots=True)
class OrchestratorResult:
    """Summary of one :meth:`AgenticOrchestrator.run`."""

    text: str
    rounds: int
    input_tokens: int
    output_tokens: int
    stop_reason: StopReason
    error: str | None = None


class AgenticOrchestrator:
    """Alternates model calls and tool execution for one conversation.

    Each round streams one response.  Completed tool calls are executed
    sequentially and their results fed back for the next round; a response
    without tool calls ends the run.  The loop makes at most
    ``settings.max_tool_rounds`` provider calls.

    Every provider event is re-yielded to the caller, followed by a
    :class:`ToolResultEvent` per executed tool.  Turns are persisted to the
    message store as they complete, so cancelling the consuming task keeps
    everything persisted so far.
    """

    def __init__(
        self,
        provider: ProviderClient,
        executor: ToolExecutor | None,
        store: MessageStore,
        settings: Settings | None = None,
    ) -> None:
        self._provider = provider
        self._executor = executor
        self._store = store
        self._settings = settings or Settings()
        self.last_result: OrchestratorResult | None = None

    async def run(
        self,
        session_id: str,
        conversation: Sequence[Message],
        model: str,
        mode: SessionMode = SessionMode.BUILD,
        config: GenerationConfig | None = None,
    ) -> AsyncIterator[StreamEvent | ToolResultEvent]:
        """Drive the conversation until the model stops calling tools.

        *conversation* must already end with the new user message; it is
        copied, never mutated.  The outcome is stored in :attr:`last_result`.
        """
        config = config or GenerationConfig()
        executor = self._executor if mode is SessionMode.BUILD else None
        tools = AGENT_TOOLS if executor is not None else None
        messages = list(conversation)

        rounds = 0
        input_tokens = output_tokens = 0
        texts: list[str] = []
        stop_reason = StopReason.MAX_ROUNDS
        error: str | None = None
        self.last_result = None

        try:
            while rounds < self._settings.max_tool_rounds:
                rounds += 1
                logger.debug("Round %d for session %s", rounds, session_id)
                parts: list[str] = []
                tool_calls: list[ToolCall] = []
                failed: Error | None = None
                terminated = False

                stream = self._provider.send_message(messages, model, tools, config)
                async with aclosing(stream):
                    async for event in stream:
                        if isinstance(event, TextDelta):
                            parts.append(event.text)
                        elif isinstance(event, ToolCallComplete):
                            tool_calls.append(event.tool_call)
                        elif isinstance(event, Usage):
                            input_tokens += event.input_tokens
                            output_tokens += event.output_tokens
                        yield event
                        if is_terminal(event):
                            terminated = True
                            failed = event if isinstance(event, Error) else None
                            break

                text = "".join(parts)
                if failed is not None:
                    stop_reason, error = StopReason.ERROR, failed.message
                    logger.warning("Provider error in round %d: %s", rounds, failed.message)
                    break
                if not terminated:
                    stop_reason = StopReason.CANCELLED
                    logger.info("Session %s stream ended without a result in round %d", session_id, rounds)
                    break

                if text.strip():
                    texts.append(text.strip())

                if tool_calls and executor is not None:
                    assistant = Message.assistant(text.strip(), tuple(tool_calls))
                    self._store.add_message(session_id, assistant)
                    messages.append(assistant)
                    for call in tool_calls:
                        logger.debug("Dispatching tool %s (%s)", call.name, call.id)
                        result = await executor.execute(call)
                        tool_message = Message.tool(call.id, result.output)
                        self._store.add_message(session_id, tool_message)
                        messages.append(tool_message)
                        yield ToolResultEvent(call, result)
                    continue

                if text:
                    self._store.add_message(
                        session_id, Message.assistant(text), input_tokens, output_tokens
                    )
                stop_reason = StopReason.END_TURN
                break
            else:
                logger.info("Session %s hit the %d round limit", session_id, rounds)

            if stop_reason not in (StopReason.ERROR, StopReason.CANCELLED) and (input_tokens or output_tokens):
                self._store.update_tokens(session_id, input_tokens, output_tokens)
        except (asyncio.CancelledError, GeneratorExit):
            self._provider.cancel_request()
            stop_reason = StopReason.CANCELLED
            logger.info("Session %s cancelled in round %d", session_id, rounds)
            raise
        finally:
            self.last_result = OrchestratorResult(
                text="\n\n".join(texts),
                rounds=rounds,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                stop_reason=stop_reason,
                error=error,
            )
            logger.info(
                "Session %s finished: %s after %d round(s)", session_id, stop_reason.value, rounds
            )

