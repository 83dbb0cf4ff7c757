"""Tests for codemobile.providers.factory."""

from __future__ import annotations

import asyncio
import time

import pytest

from codemobile.auth.device_flow import OAuthCredential
from codemobile.providers import AnthropicProvider, OpenAICompatibleProvider, ProviderConfigError, ProviderFactory
from codemobile.providers.factory import CredentialStore
from codemobile.providers.registry import CODEX_API_ENDPOINT
from codemobile.types.providers import ProviderConfig
from tests.conftest import MemoryCredentialStore


class FakeCodexFlow:
    """Stands in for CodexDeviceFlow.refresh."""

    def __init__(self, credential: OAuthCredential | None, delay: float = 0.0) -> None:
        self.credential = credential
        self.delay = delay
        self.calls: list[str] = []

    async def refresh(self, refresh_token: str, client=None) -> OAuthCredential | None:
        self.calls.append(refresh_token)
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.credential


def _now_ms() -> int:
    return int(time.time() * 1000)


class TestCreate:
    def test_memory_store_satisfies_protocol(self):
        assert isinstance(MemoryCredentialStore(), CredentialStore)

    def test_api_key_provider(self):
        store = MemoryCredentialStore()
        store.save_api_key("anthropic", "sk-ant")
        factory = ProviderFactory(store)

        client = factory.create(ProviderConfig(id="anthropic", registry_id="anthropic"))

        assert isinstance(client, AnthropicProvider)
        assert client.name == "Anthropic"
        assert client.base_url == "https://api.anthropic.com/v1"
        assert factory.last_client is client

    def test_unknown_registry_id(self):
        with pytest.raises(ProviderConfigError, match="Unknown provider: nope"):
            ProviderFactory(MemoryCredentialStore()).create(ProviderConfig(id="x", registry_id="nope"))

    def test_missing_api_key(self):
        with pytest.raises(ProviderConfigError, match="No API key configured for My Groq"):
            ProviderFactory(MemoryCredentialStore()).create(
                ProviderConfig(id="groq", registry_id="groq", display_name="My Groq")
            )

    def test_missing_oauth_token(self):
        with pytest.raises(ProviderConfigError, match="No OAuth token for GitHub Copilot. Please authenticate."):
            ProviderFactory(MemoryCredentialStore()).create(
                ProviderConfig(id="github-copilot", registry_id="github-copilot", is_oauth=True)
            )

    def test_custom_requires_base_url(self):
        store = MemoryCredentialStore()
        store.save_api_key("custom", "k")
        factory = ProviderFactory(store)
        with pytest.raises(ProviderConfigError, match="No base URL"):
            factory.create(ProviderConfig(id="custom", registry_id="custom"))

        client = factory.create(ProviderConfig(id="custom", registry_id="custom", base_url="http://gpu:8000/v1"))
        assert client.endpoint == "http://gpu:8000/v1/chat/completions"
        assert client.skip_validation

    def test_copilot_quirks(self):
        store = MemoryCredentialStore()
        store.save_access_token("github-copilot", "gho_x")
        client = ProviderFactory(store).create(
            ProviderConfig(id="github-copilot", registry_id="github-copilot", is_oauth=True)
        )
        assert isinstance(client, OpenAICompatibleProvider)
        assert client.skip_validation
        assert client._supports_stream_options
        assert client._extra_headers["Openai-Intent"] == "conversation-edits"
        assert client._api_key == "gho_x"
        assert "ChatGPT-Account-Id" not in client._extra_headers

    def test_codex_oauth_overrides(self):
        store = MemoryCredentialStore()
        store.save_access_token("openai", "at")
        store.save_account_id("openai", "acct_7")
        client = ProviderFactory(store).create(ProviderConfig(id="openai", registry_id="openai", is_oauth=True))

        assert client.endpoint == CODEX_API_ENDPOINT
        assert client.skip_validation
        assert client._extra_headers["ChatGPT-Account-Id"] == "acct_7"
        assert client._extra_headers["originator"] == "codemobile"

    def test_openai_api_key_variant_is_plain(self):
        store = MemoryCredentialStore()
        store.save_api_key("openai", "sk")
        client = ProviderFactory(store).create(ProviderConfig(id="openai", registry_id="openai"))

        assert client.endpoint == "https://api.openai.com/v1/chat/completions"
        assert not client.skip_validation
        assert "ChatGPT-Account-Id" not in client._extra_headers

    def test_kimi_coding_builds_anthropic_client(self):
        store = MemoryCredentialStore()
        store.save_api_key("kimi", "sk-kimi")
        client = ProviderFactory(store).create(ProviderConfig(id="kimi", registry_id="kimi-coding"))
        assert isinstance(client, AnthropicProvider)
        assert client._extra_headers == {"Accept": "text/event-stream"}

    def test_create_or_none(self):
        factory = ProviderFactory(MemoryCredentialStore())
        assert factory.create_or_none(ProviderConfig(id="groq", registry_id="groq")) is None


class TestRefresh:
    def _codex_store(self, expiry: int, access: str | None = "old-at") -> MemoryCredentialStore:
        store = MemoryCredentialStore()
        if access:
            store.save_access_token("openai", access)
        store.save_refresh_token("openai", "rt")
        store.save_token_expiry("openai", expiry)
        return store

    CONFIG = ProviderConfig(id="openai", registry_id="openai", is_oauth=True)

    @pytest.mark.asyncio
    async def test_expired_token_is_refreshed(self):
        store = self._codex_store(expiry=_now_ms() - 1000)
        flow = FakeCodexFlow(OAuthCredential("new-at", "new-rt", _now_ms() + 3_600_000, "acct_2"))
        factory = ProviderFactory(store, codex_flow=flow)

        client = await factory.create_or_none_with_refresh(self.CONFIG)

        assert flow.calls == ["rt"]
        assert client._api_key == "new-at"
        assert store.get_refresh_token("openai") == "new-rt"
        assert store.get_account_id("openai") == "acct_2"
        assert store.get_token_expiry("openai") > _now_ms()

    @pytest.mark.asyncio
    async def test_valid_token_is_not_refreshed(self):
        store = self._codex_store(expiry=_now_ms() + 3_600_000)
        flow = FakeCodexFlow(OAuthCredential("new-at"))
        client = await ProviderFactory(store, codex_flow=flow).create_or_none_with_refresh(self.CONFIG)
        assert flow.calls == []
        assert client._api_key == "old-at"

    @pytest.mark.asyncio
    async def test_missing_expiry_triggers_refresh(self):
        store = self._codex_store(expiry=0)
        flow = FakeCodexFlow(OAuthCredential("new-at", None, _now_ms() + 1000))
        await ProviderFactory(store, codex_flow=flow).refresh_if_needed(self.CONFIG)
        assert store.get_access_token("openai") == "new-at"
        assert store.get_refresh_token("openai") == "rt"

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_stored_token(self):
        store = self._codex_store(expiry=_now_ms() - 1000)
        client = await ProviderFactory(store, codex_flow=FakeCodexFlow(None)).create_or_none_with_refresh(self.CONFIG)
        assert client._api_key == "old-at"

    @pytest.mark.asyncio
    async def test_failed_refresh_without_access_token(self):
        store = self._codex_store(expiry=0, access=None)
        factory = ProviderFactory(store, codex_flow=FakeCodexFlow(None))
        assert await factory.create_or_none_with_refresh(self.CONFIG) is None

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_refresh(self):
        store = self._codex_store(expiry=_now_ms() - 1000)
        flow = FakeCodexFlow(OAuthCredential("new-at", "new-rt", _now_ms() + 3_600_000), delay=0.05)
        factory = ProviderFactory(store, codex_flow=flow)

        clients = await asyncio.gather(*(factory.create_or_none_with_refresh(self.CONFIG) for _ in range(3)))

        assert flow.calls == ["rt"]
        assert all(c._api_key == "new-at" for c in clients)

    @pytest.mark.asyncio
    async def test_api_key_config_never_refreshes(self):
        store = self._codex_store(expiry=_now_ms() - 1000)
        store.save_api_key("openai", "sk")
        flow = FakeCodexFlow(OAuthCredential("new-at"))
        await ProviderFactory(store, codex_flow=flow).refresh_if_needed(ProviderConfig(id="openai", registry_id="openai"))
        assert flow.calls == []

    @pytest.mark.asyncio
    async def test_non_refreshable_oauth_provider_never_refreshes(self):
        store = MemoryCredentialStore()
        store.save_access_token("copilot", "gho_x")
        store.save_refresh_token("copilot", "rt")
        store.save_token_expiry("copilot", _now_ms() - 1000)
        flow = FakeCodexFlow(OAuthCredential("new-at"))
        config = ProviderConfig(id="copilot", registry_id="github-copilot", is_oauth=True)

        client = await ProviderFactory(store, codex_flow=flow).create_or_none_with_refresh(config)

        assert flow.calls == []
        assert client._api_key == "gho_x"
