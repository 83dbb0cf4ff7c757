"""Tests for codemobile.providers.registry."""

from __future__ import annotations

import pytest

from codemobile.providers import registry
from codemobile.types.providers import ApiType, AuthMethod, ProviderCategory


class TestLookup:
    def test_ids_are_unique(self):
        ids = [p.id for p in registry.get_all()]
        assert len(ids) == len(set(ids))

    def test_get_by_id(self):
        assert registry.get_by_id("anthropic").api_type is ApiType.ANTHROPIC
        assert registry.get_by_id("nope") is None

    def test_popular(self):
        popular = {p.id for p in registry.get_popular()}
        assert {"anthropic", "github-copilot", "openai", "google", "openrouter"} <= popular
        assert "ollama" not in popular

    def test_by_category(self):
        local = {p.id for p in registry.get_by_category(ProviderCategory.LOCAL)}
        assert local == {"ollama", "lmstudio", "llamacpp"}

    def test_search(self):
        assert [p.id for p in registry.search("KIMI")] == ["moonshot", "kimi-coding"]
        assert len(registry.search("   ")) == len(registry.get_all())
        assert registry.search("zzz-no-match") == []

    def test_get_models(self):
        assert "gpt-5.1-codex" in {m.id for m in registry.get_models("openai")}
        assert registry.get_models("nope") == []

    def test_resolve_model(self):
        assert registry.resolve_model("openai", "gpt-4o").context_window == 128_000

    def test_resolve_unknown(self):
        with pytest.raises(KeyError, match="Known: "):
            registry.resolve_model("openai", "gpt-1")
        with pytest.raises(KeyError, match="Unknown provider"):
            registry.resolve_model("nope", "x")


class TestQuirks:
    def test_copilot(self):
        copilot = registry.get_by_id("github-copilot")
        assert copilot.auth_methods == (AuthMethod.OAUTH_GITHUB,)
        assert copilot.skip_validation
        assert copilot.supports_stream_options
        assert copilot.extra_headers["Openai-Intent"] == "conversation-edits"
        assert copilot.extra_headers["User-Agent"] == registry.CLIENT_USER_AGENT
        assert not copilot.oauth_refreshable
        assert copilot.oauth_account_header is None

    def test_openai_oauth_variant(self):
        openai = registry.get_by_id("openai")
        assert openai.supports(AuthMethod.OAUTH_OPENAI_CODEX)
        assert openai.supports(AuthMethod.API_KEY)
        assert openai.oauth_endpoint_override == registry.CODEX_API_ENDPOINT
        assert openai.oauth_headers == registry.CODEX_HEADERS
        assert openai.oauth_refreshable
        assert openai.oauth_account_header == "ChatGPT-Account-Id"
        assert not openai.skip_validation

    def test_kimi_coding_uses_anthropic_dialect(self):
        kimi = registry.get_by_id("kimi-coding")
        assert kimi.api_type is ApiType.ANTHROPIC
        assert kimi.extra_headers == {"Accept": "text/event-stream"}
        assert kimi.skip_validation

    def test_skip_validation_set(self):
        skipped = {p.id for p in registry.get_all() if p.skip_validation}
        assert {"moonshot", "minimax", "cohere", "sambanova", "chutes", "custom"} <= skipped
        assert "anthropic" not in skipped

    def test_custom_has_no_base_url(self):
        assert registry.get_by_id("custom").api_base_url == ""
