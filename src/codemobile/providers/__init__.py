"""Provider clients, registry and factory."""

from codemobile.providers.anthropic import AnthropicProvider
from codemobile.providers.base import BaseProvider, ProviderConfigError
from codemobile.providers.factory import CredentialStore, ProviderFactory
from codemobile.providers.openai import OpenAICompatibleProvider

__all__ = [
    "AnthropicProvider",
    "BaseProvider",
    "CredentialStore",
    "OpenAICompatibleProvider",
    "ProviderConfigError",
    "ProviderFactory",
]
