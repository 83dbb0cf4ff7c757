"""Server-Sent Events transport over httpx."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

import httpx

from codemobile.streaming.codecs import StreamState, WireCodec
from codemobile.types.events import Done, Error, StreamEvent

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"


def data_payload(line: str) -> str | None:
    """Return the payload of a ``data:`` line, or None for any other SSE line.

    Both ``data: {...}`` and ``data:{...}`` are accepted.  ``event:``, ``id:``,
    ``retry:``, comments and blank lines carry nothing and yield None.
    """
    if not line.startswith("data:"):
        return None
    payload = line[len("data:"):].strip()
    return payload or None


async def iter_sse_events(
    lines: AsyncIterator[str],
    codec: WireCodec,
    state: StreamState | None = None,
) -> AsyncIterator[StreamEvent]:
    """Decode SSE *lines* into canonical events ending with exactly one terminal.

    A JSON-level ``Done`` is held back until the transport finishes, so that
    trailing usage chunks and completed tool calls still reach the caller
    before it.  ``data: [DONE]`` ends reading immediately.  If the server
    closes the stream without any terminator, ``Done`` is synthesized.
    """
    state = state if state is not None else StreamState()
    completed = False

    async for line in lines:
        payload = data_payload(line)
        if payload is None:
            continue
        if payload == DONE_SENTINEL:
            break
        event = codec.decode(payload, state)
        if event is None:
            continue
        if isinstance(event, Done):
            completed = True
            continue
        if isinstance(event, Error):
            if completed:
                logger.warning("Ignoring error after completion: %s", event.message)
                continue
            yield event
            return
        yield event

    if not completed:
        logger.debug("Stream ended without a completion chunk")
    for event in codec.finish(state):
        yield event
    yield Done()


async def stream_events(
    client: httpx.AsyncClient,
    request: httpx.Request,
    codec: WireCodec,
) -> AsyncIterator[StreamEvent]:
    """Send *request* and stream its SSE body as canonical events.

    Transport failures and non-2xx responses become :class:`Error` events.
    Cancellation propagates untouched so the stream simply stops.
    """
    logger.debug("POST %s (%s stream)", request.url, codec.dialect.value)
    try:
        response = await client.send(request, stream=True)
    except httpx.HTTPError as exc:
        logger.warning("Request to %s failed: %s", request.url, exc)
        yield Error(str(exc) or "Connection failed")
        return

    try:
        if not response.is_success:
            body = (await response.aread()).decode("utf-8", errors="replace")
            logger.warning("HTTP %d from %s", response.status_code, request.url)
            yield Error(f"HTTP {response.status_code}: {body}", str(response.status_code))
            return
        async for event in iter_sse_events(response.aiter_lines(), codec):
            yield event
    except httpx.HTTPError as exc:
        logger.warning("Stream from %s broke: %s", request.url, exc)
        yield Error(str(exc) or "Unknown streaming error")
    finally:
        await response.aclose()
