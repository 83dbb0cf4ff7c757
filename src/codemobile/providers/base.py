"""Base provider client: HTTP plumbing, cancellation and tool schema conversion."""

from __future__ import annotations

import asyncio
import logging
import math
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Mapping, Sequence
from typing import Any

import anyio
import httpx

from codemobile.streaming.codecs import WireDialect, codec_for
from codemobile.streaming.sse import stream_events
from codemobile.types.config import GenerationConfig, Settings
from codemobile.types.events import Error, StreamEvent
from codemobile.types.messages import Message
from codemobile.types.providers import ModelDef
from codemobile.types.tools import ToolDef, ToolParam

logger = logging.getLogger(__name__)


class ProviderConfigError(ValueError):
    """A provider client cannot be built from the given configuration."""


class BaseProvider(ABC):
    """Abstract base class for all provider clients.

    Concrete sub-classes describe their wire dialect, how to build the
    outbound chat request and how to validate credentials.  Streaming,
    cancellation and error normalization live here.

    Parameters
    ----------
    provider_id:
        Registry id of the provider (e.g. ``"anthropic"``).
    api_key:
        API key or OAuth access token sent with every request.
    base_url:
        API root without a trailing slash.
    extra_headers:
        Vendor identification headers added to every request.
    skip_validation:
        When *True*, :meth:`validate_credentials` reports success without
        any network call.
    models:
        Static model catalog returned by :meth:`list_models`.
    settings:
        Shared runtime settings (request timeout).
    http_client:
        Optional pre-built ``httpx.AsyncClient``; mainly for tests using
        ``httpx.MockTransport``.
    """

    dialect: WireDialect

    def __init__(
        self,
        provider_id: str,
        api_key: str,
        base_url: str,
        *,
        name: str = "",
        extra_headers: Mapping[str, str] | None = None,
        skip_validation: bool = False,
        models: Sequence[ModelDef] = (),
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not base_url:
            raise ProviderConfigError(f"No base URL configured for {name or provider_id}")
        self.id = provider_id
        self.name = name or provider_id
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._extra_headers = dict(extra_headers or {})
        self._skip_validation = skip_validation
        self._models = list(models)
        self._settings = settings or Settings()
        self._client = http_client
        self._owns_client = http_client is None
        self._active: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # Public interface (ProviderClient protocol)
    # ------------------------------------------------------------------

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def skip_validation(self) -> bool:
        return self._skip_validation

    def list_models(self) -> list[ModelDef]:
        """Return the static model catalog for this provider."""
        return list(self._models)

    async def send_message(
        self,
        messages: Sequence[Message],
        model: str,
        tools: Sequence[ToolDef] | None = None,
        config: GenerationConfig | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Stream one model response as canonical :class:`StreamEvent` objects.

        The network exchange runs in a child task that :meth:`cancel_request`
        can abort.  A cancelled stream ends without ``Done`` or ``Error``.

        Parameters
        ----------
        messages:
            Full conversation so far, oldest first.
        model:
            Model identifier to request.
        tools:
            Tool definitions the model may call, or *None* for plain chat.
        config:
            Sampling parameters and system prompt.

        Yields
        ------
        StreamEvent
            Events ending with exactly one ``Done`` or ``Error`` unless
            cancelled.
        """
        config = config or GenerationConfig()
        try:
            request = self._build_request(messages, model, tools or (), config)
        except (TypeError, ValueError) as exc:
            logger.warning("Could not build %s request: %s", self.id, exc)
            yield Error(f"Could not build request: {exc}")
            return

        client = self._http()
        codec = codec_for(self.dialect)
        send, recv = anyio.create_memory_object_stream[StreamEvent](max_buffer_size=math.inf)

        async def pump() -> None:
            async for event in stream_events(client, request, codec):
                send.send_nowait(event)

        task = asyncio.create_task(pump())
        task.add_done_callback(lambda _: send.close())
        self._active = task
        try:
            async with recv:
                async for event in recv:
                    yield event
            if task.cancelled():
                logger.debug("%s request cancelled", self.id)
            elif task.exception() is not None:
                exc = task.exception()
                logger.warning("%s stream failed: %r", self.id, exc)
                yield Error(str(exc) or type(exc).__name__)
        finally:
            if not task.done():
                task.cancel()
            if self._active is task:
                self._active = None

    def cancel_request(self) -> None:
        """Abort the in-flight request, if any. Never raises."""
        task = self._active
        if task is not None and not task.done():
            logger.debug("Cancelling %s request", self.id)
            task.cancel()

    async def validate_credentials(self) -> bool:
        """Issue a cheap authenticated request; True when the credential works."""
        if self._skip_validation:
            return True
        try:
            return await self._validate(self._http())
        except httpx.HTTPError as exc:
            logger.warning("%s credential validation failed: %s", self.id, exc)
            return False

    async def aclose(self) -> None:
        self.cancel_request()
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Abstract interface, implemented by sub-classes
    # ------------------------------------------------------------------

    @abstractmethod
    def _build_request(
        self,
        messages: Sequence[Message],
        model: str,
        tools: Sequence[ToolDef],
        config: GenerationConfig,
    ) -> httpx.Request:
        """Build the streaming chat request."""

    @abstractmethod
    async def _validate(self, client: httpx.AsyncClient) -> bool:
        """Perform the provider's cheapest authenticated call."""

    # ------------------------------------------------------------------
    # Protected helpers for sub-classes
    # ------------------------------------------------------------------

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._settings.request_timeout)
            self._owns_client = True
        return self._client

    def _make_tool_defs(self, tools: Sequence[ToolDef]) -> list[dict[str, Any]]:
        """Convert :class:`ToolDef` objects into JSON-Schema-style dicts.

        The output format is provider-neutral; each client wraps it in its
        own envelope.

        Parameters
        ----------
        tools:
            Tool definitions to convert.

        Returns
        -------
        list[dict[str, Any]]
            One dict per tool, each with keys ``name``, ``description``, and
            ``input_schema`` (a JSON Schema ``object``).

        Examples
        --------
        >>> defs = provider._make_tool_defs([ToolDef(
        ...     name="read_file",
        ...     description="Read a file.",
        ...     parameters=(ToolParam(name="path", type="string",
        ...                          description="Relative path", required=True),),
        ... )])
        >>> defs[0]["input_schema"]["required"]
        ['path']
        """
        result: list[dict[str, Any]] = []
        for tool in tools:
            properties: dict[str, Any] = {}
            required_params: list[str] = []

            for param in tool.parameters:
                properties[param.name] = self._param_to_schema(param)
                if param.required:
                    required_params.append(param.name)

            schema: dict[str, Any] = {
                "type": "object",
                "properties": properties,
            }
            if required_params:
                schema["required"] = required_params

            result.append(
                {
                    "name": tool.name,
                    "description": tool.description,
                    "input_schema": schema,
                }
            )
        return result

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _param_to_schema(param: ToolParam) -> dict[str, Any]:
        """Render a single :class:`ToolParam` as a JSON Schema property dict."""
        prop: dict[str, Any] = {
            "type": param.type,
            "description": param.description,
        }
        if param.enum is not None:
            prop["enum"] = list(param.enum)
        if param.default is not None:
            prop["default"] = param.default
        if param.type == "array":
            prop["items"] = param.items if param.items is not None else {"type": "string"}
        return prop
