"""Static registry of known providers and their model catalogs.

Per-provider quirks (validation support, ``stream_options`` support, vendor
headers, endpoint overrides) are fields on :class:`ProviderDef`, so the
factory never special-cases provider ids.
"""

from __future__ import annotations

from codemobile.types.providers import (
    ApiType,
    AuthMethod,
    ModelDef,
    ProviderCategory,
    ProviderDef,
)

CODEX_API_ENDPOINT = "https://chatgpt.com/backend-api/codex/responses"
CLIENT_USER_AGENT = "CodeMobile/1.0"

COPILOT_HEADERS: dict[str, str] = {
    "Openai-Intent": "conversation-edits",
    "User-Agent": CLIENT_USER_AGENT,
    "x-initiator": "agent",
    "Copilot-Vision-Request": "true",
    "originator": "codemobile",
}

CODEX_HEADERS: dict[str, str] = {
    "originator": "codemobile",
    "User-Agent": CLIENT_USER_AGENT,
}

_CLAUDE_MODELS = (
    ModelDef(
        id="claude-sonnet-4-5", name="Claude Sonnet 4.5", family="claude-sonnet",
        context_window=200_000, max_output=64_000, supports_vision=True,
        supports_reasoning=True, cost_input_per_mtok=3.0, cost_output_per_mtok=15.0,
    ),
    ModelDef(
        id="claude-haiku-4-5", name="Claude Haiku 4.5", family="claude-haiku",
        context_window=200_000, max_output=64_000, supports_vision=True,
        supports_reasoning=True, cost_input_per_mtok=1.1, cost_output_per_mtok=5.5,
    ),
    ModelDef(
        id="claude-opus-4-5-20251101", name="Claude Opus 4.5", family="claude-opus",
        context_window=200_000, max_output=128_000, supports_vision=True,
        supports_reasoning=True, cost_input_per_mtok=5.0, cost_output_per_mtok=25.0,
    ),
    ModelDef(
        id="claude-opus-4-1", name="Claude Opus 4.1", family="claude-opus",
        context_window=200_000, max_output=32_000, supports_vision=True,
        supports_reasoning=True, cost_input_per_mtok=15.0, cost_output_per_mtok=75.0,
    ),
)

_OPENAI_MODELS = (
    ModelDef(
        id="gpt-5", name="GPT-5", family="gpt", context_window=400_000,
        max_output=128_000, supports_vision=True, supports_reasoning=True,
        cost_input_per_mtok=2.0, cost_output_per_mtok=8.0,
    ),
    ModelDef(
        id="gpt-5-mini", name="GPT-5 Mini", family="gpt-mini", context_window=400_000,
        max_output=128_000, supports_vision=True, supports_reasoning=True,
        cost_input_per_mtok=0.3, cost_output_per_mtok=1.2,
    ),
    ModelDef(
        id="gpt-5-nano", name="GPT-5 Nano", family="gpt-nano", context_window=400_000,
        max_output=128_000, supports_vision=True, supports_reasoning=True,
    ),
    ModelDef(
        id="gpt-5.1", name="GPT-5.1", family="gpt", context_window=400_000,
        max_output=128_000, supports_vision=True, supports_reasoning=True,
        cost_input_per_mtok=2.5, cost_output_per_mtok=10.0,
    ),
    ModelDef(
        id="gpt-5.1-codex", name="GPT-5.1 Codex", family="gpt-codex",
        context_window=400_000, max_output=128_000, supports_vision=True,
        supports_reasoning=True,
    ),
    ModelDef(
        id="gpt-5.1-codex-mini", name="GPT-5.1 Codex Mini", family="gpt-codex",
        context_window=400_000, max_output=128_000, supports_vision=True,
        supports_reasoning=True,
    ),
    ModelDef(
        id="gpt-5.2-codex", name="GPT-5.2 Codex", family="gpt-codex",
        context_window=400_000, max_output=128_000, supports_vision=True,
        supports_reasoning=True,
    ),
    ModelDef(
        id="gpt-5-pro", name="GPT-5 Pro", family="gpt-pro", context_window=400_000,
        max_output=272_000, supports_vision=True, supports_reasoning=True,
        cost_input_per_mtok=15.0, cost_output_per_mtok=120.0,
    ),
    ModelDef(
        id="gpt-4o", name="GPT-4o", family="gpt-4o", context_window=128_000,
        max_output=16_384, supports_vision=True,
        cost_input_per_mtok=2.5, cost_output_per_mtok=10.0,
    ),
    ModelDef(
        id="gpt-4o-mini", name="GPT-4o Mini", family="gpt-4o", context_window=128_000,
        max_output=16_384, supports_vision=True,
        cost_input_per_mtok=0.15, cost_output_per_mtok=0.6,
    ),
)

_GEMINI_MODELS = (
    ModelDef(
        id="gemini-3-flash", name="Gemini 3 Flash", family="gemini-flash",
        context_window=1_048_576, max_output=65_536, supports_vision=True,
        supports_reasoning=True, cost_input_per_mtok=0.5, cost_output_per_mtok=3.0,
    ),
    ModelDef(
        id="gemini-3-pro-preview", name="Gemini 3 Pro Preview", family="gemini-pro",
        context_window=1_000_000, max_output=64_000, supports_vision=True,
        supports_reasoning=True, cost_input_per_mtok=2.0, cost_output_per_mtok=12.0,
    ),
    ModelDef(
        id="gemini-2.5-flash", name="Gemini 2.5 Flash", family="gemini-flash",
        context_window=1_048_576, max_output=65_536, supports_vision=True,
        supports_reasoning=True, cost_input_per_mtok=0.3, cost_output_per_mtok=2.5,
    ),
)

PROVIDERS: tuple[ProviderDef, ...] = (
    # Popular
    ProviderDef(
        id="anthropic",
        name="Anthropic",
        description="Claude models through the Anthropic Messages API",
        api_base_url="https://api.anthropic.com/v1",
        env_keys=("ANTHROPIC_API_KEY",),
        models=_CLAUDE_MODELS,
        is_popular=True,
        category=ProviderCategory.POPULAR,
        api_type=ApiType.ANTHROPIC,
    ),
    ProviderDef(
        id="github-copilot",
        name="GitHub Copilot",
        description="Models included with a GitHub Copilot subscription",
        api_base_url="https://api.githubcopilot.com",
        auth_methods=(AuthMethod.OAUTH_GITHUB,),
        models=(
            ModelDef(
                id="claude-sonnet-4-5", name="Claude Sonnet 4.5", family="claude-sonnet",
                context_window=200_000, max_output=64_000, supports_vision=True,
            ),
            ModelDef(
                id="gpt-5", name="GPT-5", family="gpt", context_window=400_000,
                max_output=128_000, supports_vision=True, supports_reasoning=True,
            ),
            ModelDef(
                id="gpt-5-mini", name="GPT-5 Mini", family="gpt-mini",
                context_window=400_000, max_output=128_000, supports_vision=True,
                supports_reasoning=True,
            ),
            ModelDef(
                id="gemini-3-flash", name="Gemini 3 Flash", family="gemini-flash",
                context_window=1_048_576, max_output=65_536, supports_vision=True,
                supports_reasoning=True,
            ),
        ),
        is_popular=True,
        category=ProviderCategory.POPULAR,
        skip_validation=True,
        supports_stream_options=True,
        extra_headers=COPILOT_HEADERS,
    ),
    ProviderDef(
        id="openai",
        name="OpenAI",
        description="GPT models with an API key or a ChatGPT Plus/Pro subscription",
        api_base_url="https://api.openai.com/v1",
        env_keys=("OPENAI_API_KEY",),
        auth_methods=(AuthMethod.OAUTH_OPENAI_CODEX, AuthMethod.API_KEY),
        models=_OPENAI_MODELS,
        is_popular=True,
        category=ProviderCategory.POPULAR,
        api_type=ApiType.OPENAI,
        supports_stream_options=True,
        oauth_headers=CODEX_HEADERS,
        oauth_endpoint_override=CODEX_API_ENDPOINT,
        oauth_refreshable=True,
        oauth_account_header="ChatGPT-Account-Id",
    ),
    ProviderDef(
        id="google",
        name="Google",
        description="Gemini models through the OpenAI-compatible endpoint",
        api_base_url="https://generativelanguage.googleapis.com/v1beta/openai",
        env_keys=("GOOGLE_GENERATIVE_AI_API_KEY", "GEMINI_API_KEY"),
        models=_GEMINI_MODELS,
        is_popular=True,
        category=ProviderCategory.POPULAR,
        api_type=ApiType.GOOGLE,
    ),
    # Routers
    ProviderDef(
        id="openrouter",
        name="OpenRouter",
        description="Many providers behind a single API key",
        api_base_url="https://openrouter.ai/api/v1",
        env_keys=("OPENROUTER_API_KEY",),
        models=(
            ModelDef(
                id="anthropic/claude-sonnet-4-5", name="Claude Sonnet 4.5",
                family="claude-sonnet", context_window=200_000, max_output=64_000,
                supports_vision=True, cost_input_per_mtok=3.0, cost_output_per_mtok=15.0,
            ),
            ModelDef(
                id="openai/gpt-5", name="GPT-5", family="gpt", context_window=400_000,
                max_output=128_000, supports_vision=True,
                cost_input_per_mtok=2.0, cost_output_per_mtok=8.0,
            ),
            ModelDef(
                id="deepseek/deepseek-v3.2", name="DeepSeek V3.2", family="deepseek",
                context_window=163_840, max_output=163_840,
                cost_input_per_mtok=0.27, cost_output_per_mtok=0.41,
            ),
            ModelDef(
                id="x-ai/grok-4", name="Grok 4", family="grok", context_window=256_000,
                max_output=64_000, supports_reasoning=True,
                cost_input_per_mtok=3.0, cost_output_per_mtok=15.0,
            ),
        ),
        is_popular=True,
        category=ProviderCategory.ROUTER,
    ),
    # Cloud
    ProviderDef(
        id="xai",
        name="xAI",
        description="Grok models",
        api_base_url="https://api.x.ai/v1",
        env_keys=("XAI_API_KEY",),
        models=(
            ModelDef(
                id="grok-4", name="Grok 4", family="grok", context_window=256_000,
                max_output=64_000, supports_reasoning=True,
                cost_input_per_mtok=3.0, cost_output_per_mtok=15.0,
            ),
        ),
        category=ProviderCategory.CLOUD,
    ),
    ProviderDef(
        id="deepseek",
        name="DeepSeek",
        description="DeepSeek chat and reasoning models",
        api_base_url="https://api.deepseek.com",
        env_keys=("DEEPSEEK_API_KEY",),
        models=(
            ModelDef(
                id="deepseek-chat", name="DeepSeek Chat", family="deepseek",
                context_window=128_000, cost_input_per_mtok=0.27, cost_output_per_mtok=1.1,
            ),
            ModelDef(
                id="deepseek-reasoner", name="DeepSeek Reasoner", family="deepseek",
                context_window=128_000, supports_reasoning=True,
                cost_input_per_mtok=0.55, cost_output_per_mtok=2.19,
            ),
        ),
        category=ProviderCategory.CLOUD,
    ),
    ProviderDef(
        id="mistral",
        name="Mistral",
        description="Mistral and Codestral models",
        api_base_url="https://api.mistral.ai/v1",
        env_keys=("MISTRAL_API_KEY",),
        models=(
            ModelDef(id="mistral-large-latest", name="Mistral Large", family="mistral"),
            ModelDef(id="codestral-latest", name="Codestral", family="codestral"),
        ),
        category=ProviderCategory.CLOUD,
    ),
    ProviderDef(
        id="groq",
        name="Groq",
        description="Fast inference for open models",
        api_base_url="https://api.groq.com/openai/v1",
        env_keys=("GROQ_API_KEY",),
        models=(
            ModelDef(id="llama-3.3-70b-versatile", name="Llama 3.3 70B", family="llama"),
        ),
        category=ProviderCategory.CLOUD,
    ),
    ProviderDef(
        id="moonshot",
        name="Moonshot AI",
        description="Kimi models",
        api_base_url="https://api.moonshot.ai/v1",
        env_keys=("MOONSHOT_API_KEY",),
        models=(
            ModelDef(id="kimi-k2-0905-preview", name="Kimi K2", family="kimi", context_window=256_000),
        ),
        category=ProviderCategory.CLOUD,
        skip_validation=True,
    ),
    ProviderDef(
        id="kimi-coding",
        name="Kimi for Coding",
        description="Kimi coding plan through an Anthropic-compatible endpoint",
        api_base_url="https://api.kimi.com/coding/v1",
        env_keys=("KIMI_API_KEY",),
        models=(
            ModelDef(id="kimi-for-coding", name="Kimi for Coding", family="kimi", context_window=256_000),
        ),
        category=ProviderCategory.CLOUD,
        api_type=ApiType.ANTHROPIC,
        skip_validation=True,
        extra_headers={"Accept": "text/event-stream"},
    ),
    ProviderDef(
        id="minimax",
        name="MiniMax",
        description="MiniMax models",
        api_base_url="https://api.minimaxi.chat/v1",
        env_keys=("MINIMAX_API_KEY",),
        models=(
            ModelDef(id="MiniMax-M2", name="MiniMax M2", family="minimax", context_window=204_800),
        ),
        category=ProviderCategory.CLOUD,
        skip_validation=True,
    ),
    ProviderDef(
        id="cohere",
        name="Cohere",
        description="Command models",
        api_base_url="https://api.cohere.ai/compatibility/v1",
        env_keys=("COHERE_API_KEY",),
        models=(
            ModelDef(id="command-a-03-2025", name="Command A", family="command", context_window=256_000),
        ),
        category=ProviderCategory.CLOUD,
        skip_validation=True,
    ),
    ProviderDef(
        id="sambanova",
        name="SambaNova",
        description="Fast inference on SambaNova hardware",
        api_base_url="https://api.sambanova.ai/v1",
        env_keys=("SAMBANOVA_API_KEY",),
        category=ProviderCategory.CLOUD,
        skip_validation=True,
    ),
    ProviderDef(
        id="chutes",
        name="Chutes",
        description="Decentralized serverless inference",
        api_base_url="https://llm.chutes.ai/v1",
        env_keys=("CHUTES_API_KEY",),
        category=ProviderCategory.CLOUD,
        skip_validation=True,
    ),
    # Local
    ProviderDef(
        id="ollama",
        name="Ollama",
        description="Models served by a local or networked Ollama server",
        api_base_url="http://localhost:11434/v1",
        category=ProviderCategory.LOCAL,
    ),
    ProviderDef(
        id="lmstudio",
        name="LM Studio",
        description="Models served by LM Studio",
        api_base_url="http://localhost:1234/v1",
        category=ProviderCategory.LOCAL,
    ),
    ProviderDef(
        id="llamacpp",
        name="llama.cpp",
        description="A local llama.cpp server",
        api_base_url="http://localhost:8080/v1",
        category=ProviderCategory.LOCAL,
    ),
    # Custom
    ProviderDef(
        id="custom",
        name="Custom",
        description="Any OpenAI-compatible endpoint",
        api_base_url="",
        category=ProviderCategory.OTHER,
        skip_validation=True,
    ),
)

_BY_ID: dict[str, ProviderDef] = {p.id: p for p in PROVIDERS}


def get_all() -> list[ProviderDef]:
    return list(PROVIDERS)


def get_popular() -> list[ProviderDef]:
    return [p for p in PROVIDERS if p.is_popular]


def get_by_category(category: ProviderCategory) -> list[ProviderDef]:
    return [p for p in PROVIDERS if p.category is category]


def get_by_id(provider_id: str) -> ProviderDef | None:
    return _BY_ID.get(provider_id)


def search(query: str) -> list[ProviderDef]:
    """Case-insensitive match on name, description or id; blank returns all."""
    if not query.strip():
        return list(PROVIDERS)
    q = query.lower()
    return [
        p for p in PROVIDERS
        if q in p.name.lower() or q in p.description.lower() or q in p.id.lower()
    ]


def get_models(provider_id: str) -> list[ModelDef]:
    provider = get_by_id(provider_id)
    return list(provider.models) if provider else []


def resolve_model(provider_id: str, model_id: str) -> ModelDef:
    """Return the catalog entry for *model_id* under *provider_id*.

    Raises
    ------
    KeyError
        When the provider or model is unknown.
    """
    provider = get_by_id(provider_id)
    if provider is None:
        known = ", ".join(sorted(_BY_ID))
        raise KeyError(f"Unknown provider {provider_id!r}. Known: {known}")
    for model in provider.models:
        if model.id == model_id:
            return model
    known = ", ".join(m.id for m in provider.models) or "(none listed)"
    raise KeyError(f"Unknown model {model_id!r} for {provider.name}. Known: {known}")
