"""CLI entry point for CodeMobile."""

from __future__ import annotations

import asyncio
import functools
import logging
from pathlib import Path

import anyio
import click

from codemobile.cli.output import StreamPrinter
from codemobile.core.config import load_defaults, load_settings, load_toml_config
from codemobile.core.credentials import TomlCredentialStore
from codemobile.core.orchestrator import AgenticOrchestrator, StopReason
from codemobile.core.prompt import SystemPromptBuilder
from codemobile.core.session import JsonlMessageStore, new_session_id
from codemobile.providers import registry
from codemobile.providers.base import ProviderConfigError
from codemobile.providers.factory import ProviderFactory
from codemobile.tools.executor import ToolExecutor
from codemobile.types.config import GenerationConfig, SessionMode
from codemobile.types.messages import Message
from codemobile.types.providers import AuthMethod, ProviderConfig

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER = "anthropic"


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to stderr")
def cli(verbose: bool) -> None:
    """CodeMobile: a multi-provider coding assistant.

    \b
    Usage:
      codemobile chat "Fix the bug in auth.py"
      codemobile chat --mode plan "How should I structure the API?"
      codemobile auth login github-copilot
      codemobile providers list --popular
      codemobile models list -p openai
    """
    if verbose:
        from rich.logging import RichHandler

        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(show_path=False, rich_tracebacks=True)],
        )


@cli.command("chat")
@click.argument("prompt", nargs=-1, required=True)
@click.option("--provider", "-p", default=None, help="Provider id (see `providers list`)")
@click.option("--model", "-m", default=None, help="Model id")
@click.option(
    "--mode",
    type=click.Choice([m.value for m in SessionMode]),
    default=SessionMode.BUILD.value,
    help="build lets the model use tools; plan is conversation only",
)
@click.option("--cwd", default=None, help="Project root (defaults to the current directory)")
@click.option("--session", "-s", default=None, help="Resume session ID")
def chat_cmd(
    prompt: tuple[str, ...],
    provider: str | None,
    model: str | None,
    mode: str,
    cwd: str | None,
    session: str | None,
) -> None:
    """Send PROMPT to the model and stream the answer."""
    text = " ".join(prompt).strip()
    if not text:
        raise click.UsageError("empty prompt")

    saved = load_defaults()
    provider = provider or saved.get("provider") or DEFAULT_PROVIDER
    if model is None and saved.get("provider", provider) == provider:
        model = saved.get("model")

    stop_reason = asyncio.run(
        _run_chat(
            text,
            provider_id=provider,
            model=model,
            mode=SessionMode(mode),
            cwd=cwd,
            session_id=session,
        )
    )
    if stop_reason is StopReason.ERROR:
        raise SystemExit(1)


async def _run_chat(
    prompt: str,
    *,
    provider_id: str,
    model: str | None,
    mode: SessionMode,
    cwd: str | None,
    session_id: str | None,
) -> StopReason | None:
    """Build the collaborators, run one orchestrated turn and print it."""
    definition = registry.get_by_id(provider_id)
    if definition is None:
        raise click.ClickException(f"Unknown provider: {provider_id}")

    root = Path(cwd or ".").expanduser().resolve()
    settings = load_settings(str(root))
    credentials = TomlCredentialStore()
    store = JsonlMessageStore()

    is_oauth = credentials.has_oauth(definition.id) or not definition.supports(AuthMethod.API_KEY)
    config = ProviderConfig(
        id=definition.id,
        registry_id=definition.id,
        display_name=definition.name,
        is_oauth=is_oauth,
    )
    factory = ProviderFactory(credentials, settings)
    await factory.refresh_if_needed(config)
    try:
        client = factory.create(config)
    except ProviderConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    if model is None:
        if not definition.models:
            raise click.ClickException(f"No default model for {definition.name}; pass --model")
        model = definition.models[0].id

    session_id = session_id or new_session_id()
    history = store.get_messages(session_id)
    user = Message.user(prompt)
    store.add_message(session_id, user)

    executor = ToolExecutor(root, settings)
    system_prompt = await _system_prompt(executor, root, mode)
    orchestrator = AgenticOrchestrator(client, executor, store, settings)
    printer = StreamPrinter()
    logger.debug("Chat session %s with %s/%s in %s", session_id, definition.id, model, root)

    try:
        async for event in orchestrator.run(
            session_id,
            [*history, user],
            model,
            mode,
            GenerationConfig(system_prompt=system_prompt),
        ):
            printer.handle(event)
    finally:
        printer.summary(session_id, orchestrator.last_result)
        await client.aclose()

    result = orchestrator.last_result
    return result.stop_reason if result else None


async def _system_prompt(executor: ToolExecutor, root: Path, mode: SessionMode) -> str:
    tree = await anyio.to_thread.run_sync(functools.partial(executor.backend.list, ".", recursive=True))
    instructions = load_toml_config(str(root)).get("instructions")
    return (
        SystemPromptBuilder(mode)
        .project(root.name, str(root))
        .file_tree(tree.output if tree.success else None)
        .custom_instructions(instructions if isinstance(instructions, str) else None)
        .build()
    )


def _register_subcommands() -> None:
    """Register CLI subcommands."""
    from codemobile.cli.commands import (
        auth_cmd,
        config_cmd,
        connect_cmd,
        models_cmd,
        providers_cmd,
        sessions_cmd,
    )

    cli.add_command(auth_cmd, "auth")
    cli.add_command(config_cmd, "config")
    cli.add_command(connect_cmd, "connect")
    cli.add_command(models_cmd, "models")
    cli.add_command(providers_cmd, "providers")
    cli.add_command(sessions_cmd, "sessions")


_register_subcommands()


def main() -> None:
    """Entry point."""
    cli()


if __name__ == "__main__":
    main()
