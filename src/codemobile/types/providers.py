"""Provider client protocol and registry record types."""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, runtime_checkable

from codemobile.types.config import GenerationConfig
from codemobile.types.events import StreamEvent
from codemobile.types.messages import Message
from codemobile.types.tools import ToolDef


class ApiType(str, Enum):
    """HTTP dialect a provider speaks."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    OPENAI_COMPATIBLE = "openai_compatible"
    GOOGLE = "google"


class AuthMethod(str, Enum):
    API_KEY = "api_key"
    OAUTH_GITHUB = "oauth_github"
    OAUTH_BROWSER = "oauth_browser"
    OAUTH_OPENAI_CODEX = "oauth_openai_codex"


class ProviderCategory(str, Enum):
    POPULAR = "popular"
    CLOUD = "cloud"
    ROUTER = "router"
    GATEWAY = "gateway"
    LOCAL = "local"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class ModelDef:
    """A model known to the static catalog."""

    id: str
    name: str
    family: str = ""
    context_window: int = 128_000
    max_output: int = 8_192
    supports_tools: bool = True
    supports_vision: bool = False
    supports_reasoning: bool = False
    cost_input_per_mtok: float = 0.0
    cost_output_per_mtok: float = 0.0


@dataclass(frozen=True, slots=True)
class ProviderDef:
    """Declarative description of a provider.

    ``skip_validation``, ``supports_stream_options``, ``extra_headers`` and
    ``endpoint_override`` capture per-provider quirks as data so that adding a
    provider never requires touching client or factory code.  The ``oauth_*``
    fields apply instead when the provider is used with an OAuth subscription
    credential rather than an API key. ``oauth_refreshable`` marks tokens that
    can be renewed with a stored refresh token, and ``oauth_account_header``
    names the header that carries the stored account id.
    """

    id: str
    name: str
    description: str
    api_base_url: str
    auth_methods: tuple[AuthMethod, ...] = (AuthMethod.API_KEY,)
    env_keys: tuple[str, ...] = ()
    models: tuple[ModelDef, ...] = ()
    is_popular: bool = False
    category: ProviderCategory = ProviderCategory.OTHER
    api_type: ApiType = ApiType.OPENAI_COMPATIBLE
    skip_validation: bool = False
    supports_stream_options: bool = False
    extra_headers: dict[str, str] = field(default_factory=dict)
    endpoint_override: str | None = None
    oauth_headers: dict[str, str] = field(default_factory=dict)
    oauth_endpoint_override: str | None = None
    oauth_refreshable: bool = False
    oauth_account_header: str | None = None

    def supports(self, method: AuthMethod) -> bool:
        return method in self.auth_methods


@dataclass(frozen=True, slots=True)
class ProviderConfig:
    """A user-configured provider instance; credentials live in the credential store."""

    id: str
    registry_id: str
    display_name: str = ""
    base_url: str | None = None
    selected_model_id: str | None = None
    is_oauth: bool = False


@runtime_checkable
class ProviderClient(Protocol):
    """Protocol every provider client implements."""

    def send_message(
        self,
        messages: Sequence[Message],
        model: str,
        tools: Sequence[ToolDef] | None = None,
        config: GenerationConfig | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Stream one model response as canonical events."""
        ...

    def list_models(self) -> list[ModelDef]:
        ...

    async def validate_credentials(self) -> bool:
        ...

    def cancel_request(self) -> None:
        ...
