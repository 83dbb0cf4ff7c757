"""Build provider clients from user configuration and stored credentials."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Protocol, runtime_checkable

import httpx

from codemobile.auth.codex import CodexDeviceFlow
from codemobile.providers import registry
from codemobile.providers.anthropic import AnthropicProvider
from codemobile.providers.base import BaseProvider, ProviderConfigError
from codemobile.providers.openai import OpenAICompatibleProvider
from codemobile.types.config import Settings
from codemobile.types.providers import ApiType, ProviderConfig, ProviderDef

logger = logging.getLogger(__name__)

@runtime_checkable
class CredentialStore(Protocol):
    """Secret storage keyed by provider config id."""

    def get_api_key(self, config_id: str) -> str | None: ...
    def get_access_token(self, config_id: str) -> str | None: ...
    def get_refresh_token(self, config_id: str) -> str | None: ...
    def get_token_expiry(self, config_id: str) -> int | None: ...
    def get_account_id(self, config_id: str) -> str | None: ...
    def save_api_key(self, config_id: str, value: str) -> None: ...
    def save_access_token(self, config_id: str, value: str) -> None: ...
    def save_refresh_token(self, config_id: str, value: str) -> None: ...
    def save_token_expiry(self, config_id: str, value: int) -> None: ...
    def save_account_id(self, config_id: str, value: str) -> None: ...


class ProviderFactory:
    """Turn a :class:`ProviderConfig` into a ready :class:`BaseProvider`.

    Per-provider quirks come from the registry record; the factory only
    decides between the API-key and OAuth variants of a provider and which
    wire dialect client to build.
    """

    def __init__(
        self,
        credentials: CredentialStore,
        settings: Settings | None = None,
        codex_flow: CodexDeviceFlow | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._credentials = credentials
        self._settings = settings or Settings()
        self._codex_flow = codex_flow or CodexDeviceFlow()
        self._http_client = http_client
        self._refresh_locks: dict[str, asyncio.Lock] = {}
        self.last_client: BaseProvider | None = None

    def create(self, config: ProviderConfig) -> BaseProvider:
        """Build a client for *config*.

        Raises
        ------
        ProviderConfigError
            If the registry id is unknown, the credential is missing or no
            base URL can be determined.
        """
        definition = registry.get_by_id(config.registry_id)
        if definition is None:
            raise ProviderConfigError(f"Unknown provider: {config.registry_id}")
        name = config.display_name or definition.name

        if config.is_oauth:
            secret = self._credentials.get_access_token(config.id)
            if not secret:
                raise ProviderConfigError(f"No OAuth token for {name}. Please authenticate.")
        else:
            secret = self._credentials.get_api_key(config.id)
            if not secret:
                raise ProviderConfigError(f"No API key configured for {name}")

        headers = dict(definition.extra_headers)
        endpoint = definition.endpoint_override
        skip_validation = definition.skip_validation
        if config.is_oauth:
            headers.update(definition.oauth_headers)
            if definition.oauth_endpoint_override:
                endpoint = definition.oauth_endpoint_override
                skip_validation = True
            if definition.oauth_account_header:
                account_id = self._credentials.get_account_id(config.id)
                if account_id:
                    headers[definition.oauth_account_header] = account_id

        client = self._build(definition, config, name, secret, headers, endpoint, skip_validation)
        logger.debug("Built %s client for %s at %s", definition.api_type.value, config.id, client.base_url)
        self.last_client = client
        return client

    def create_or_none(self, config: ProviderConfig) -> BaseProvider | None:
        """Like :meth:`create`, but log and return None instead of raising."""
        try:
            return self.create(config)
        except ProviderConfigError as exc:
            logger.debug("Cannot build provider %s: %s", config.id, exc)
            return None

    async def create_or_none_with_refresh(self, config: ProviderConfig) -> BaseProvider | None:
        """Refresh an expiring Codex token if needed, then :meth:`create_or_none`."""
        await self.refresh_if_needed(config)
        return self.create_or_none(config)

    async def refresh_if_needed(self, config: ProviderConfig) -> None:
        """Refresh the stored Codex OAuth token when it is blank, undated or expired.

        Concurrent callers for the same config share one refresh.  A failed
        refresh keeps the stored credential.
        """
        if not self._needs_refresh(config):
            return
        lock = self._refresh_locks.setdefault(config.id, asyncio.Lock())
        async with lock:
            # Another task may have refreshed while this one waited.
            if self._needs_refresh(config):
                await self._refresh(config)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _build(
        self,
        definition: ProviderDef,
        config: ProviderConfig,
        name: str,
        secret: str,
        headers: dict[str, str],
        endpoint: str | None,
        skip_validation: bool,
    ) -> BaseProvider:
        base_url = config.base_url or definition.api_base_url
        common = dict(
            name=name,
            extra_headers=headers,
            skip_validation=skip_validation,
            models=definition.models,
            settings=self._settings,
            http_client=self._http_client,
        )
        if definition.api_type is ApiType.ANTHROPIC:
            return AnthropicProvider(config.id, secret, base_url, **common)
        return OpenAICompatibleProvider(
            config.id,
            secret,
            base_url,
            endpoint_override=endpoint,
            supports_stream_options=definition.supports_stream_options,
            **common,
        )

    def _needs_refresh(self, config: ProviderConfig) -> bool:
        if not config.is_oauth:
            return False
        definition = registry.get_by_id(config.registry_id)
        if definition is None or not definition.oauth_refreshable:
            return False
        if not self._credentials.get_refresh_token(config.id):
            return False
        access = self._credentials.get_access_token(config.id)
        expiry = self._credentials.get_token_expiry(config.id) or 0
        return not access or expiry <= 0 or _now_ms() >= expiry

    async def _refresh(self, config: ProviderConfig) -> None:
        refresh_token = self._credentials.get_refresh_token(config.id)
        if not refresh_token:
            return
        credential = await self._codex_flow.refresh(refresh_token, client=self._http_client)
        if credential is None:
            logger.warning("Token refresh failed for %s; using stored credential", config.id)
            return
        self._credentials.save_access_token(config.id, credential.access_token)
        if credential.refresh_token:
            self._credentials.save_refresh_token(config.id, credential.refresh_token)
        self._credentials.save_token_expiry(config.id, credential.expires_at)
        if credential.account_id:
            self._credentials.save_account_id(config.id, credential.account_id)
        logger.info("Refreshed OAuth token for %s", config.id)


def _now_ms() -> int:
    return int(time.time() * 1000)
