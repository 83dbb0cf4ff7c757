"""CLI subcommands for CodeMobile (auth, connect, models, providers, sessions, config)."""

from __future__ import annotations

import asyncio
import getpass

import click
from rich.console import Console

from codemobile.auth import (
    AuthError,
    CodexDeviceFlow,
    DeviceFlow,
    DeviceFlowAuthenticator,
    GitHubDeviceFlow,
    OAuthCredential,
    Polling,
    ShowCode,
    Success,
)
from codemobile.core.config import load_defaults, load_settings, load_toml_config, save_defaults
from codemobile.core.credentials import TomlCredentialStore
from codemobile.core.session import JsonlMessageStore
from codemobile.providers import registry
from codemobile.types.providers import AuthMethod

DEVICE_FLOWS: dict[str, type[DeviceFlow]] = {
    "github-copilot": GitHubDeviceFlow,
    "openai": CodexDeviceFlow,
}


# ------------------------------------------------------------------
# auth
# ------------------------------------------------------------------


@click.group()
def auth_cmd() -> None:
    """Sign in with a provider subscription."""


@auth_cmd.command("login")
@click.argument("provider", type=click.Choice(sorted(DEVICE_FLOWS)))
def auth_login(provider: str) -> None:
    """Run the device authorization flow for PROVIDER and store the token."""
    credentials = TomlCredentialStore()
    credential = asyncio.run(_device_login(provider))
    credentials.save_access_token(provider, credential.access_token)
    if credential.refresh_token:
        credentials.save_refresh_token(provider, credential.refresh_token)
    if credential.expires_at:
        credentials.save_token_expiry(provider, credential.expires_at)
    if credential.account_id:
        credentials.save_account_id(provider, credential.account_id)
    click.echo(f"Signed in to {registry.get_by_id(provider).name}.")


async def _device_login(provider: str) -> OAuthCredential:
    console = Console(stderr=True)
    authenticator = DeviceFlowAuthenticator(DEVICE_FLOWS[provider](), load_settings())
    async for event in authenticator.authenticate():
        match event:
            case ShowCode(user_code=code, verification_uri=uri, expires_in=expires_in):
                console.print(f"Open [bold]{uri}[/bold] and enter the code:")
                console.print(f"\n    [bold #a78bfa]{code}[/bold #a78bfa]\n")
                console.print(f"[dim]The code expires in {int(expires_in // 60)} minute(s).[/dim]")
            case Polling():
                pass
            case Success(credential=credential):
                return credential
            case AuthError(message=message):
                raise click.ClickException(message)
    raise click.ClickException("Authentication ended without a result")


@auth_cmd.command("logout")
@click.argument("provider")
def auth_logout(provider: str) -> None:
    """Forget every stored credential for PROVIDER."""
    if TomlCredentialStore().delete(provider):
        click.echo(f"Removed credentials for {provider}.")
    else:
        click.echo(f"No stored credentials for {provider}.")


@auth_cmd.command("status")
def auth_status() -> None:
    """Show which providers have a usable credential."""
    credentials = TomlCredentialStore()
    for definition in registry.get_all():
        if credentials.has_oauth(definition.id):
            state = "oauth"
        elif credentials.get_api_key(definition.id):
            state = "api key"
        else:
            continue
        click.echo(f"{definition.id:<18} {state}")


# ------------------------------------------------------------------
# connect
# ------------------------------------------------------------------


@click.command("connect")
@click.option("--provider", "-p", default=None, help="Provider id")
@click.option("--api-key", default=None, help="API key (prompted when omitted)")
def connect_cmd(provider: str | None, api_key: str | None) -> None:
    """Save an API key for a provider."""
    if provider is None:
        choices = [d.id for d in registry.get_all() if d.supports(AuthMethod.API_KEY)]
        provider = click.prompt("Provider", type=click.Choice(choices), default=choices[0])

    definition = registry.get_by_id(provider)
    if definition is None:
        click.echo(f"Error: Unknown provider: {provider}", err=True)
        raise SystemExit(1)
    if not definition.supports(AuthMethod.API_KEY):
        click.echo(
            f"Error: {definition.name} does not take an API key; "
            f"use `codemobile auth login {definition.id}`.",
            err=True,
        )
        raise SystemExit(1)

    if api_key is None:
        api_key = getpass.getpass(f"API key for {definition.name}: ")
    api_key = api_key.strip()
    if not api_key:
        click.echo("Error: empty API key", err=True)
        raise SystemExit(1)

    TomlCredentialStore().save_api_key(definition.id, api_key)
    click.echo(f"Saved API key for {definition.name}.")


# ------------------------------------------------------------------
# providers
# ------------------------------------------------------------------


@click.group()
def providers_cmd() -> None:
    """Browse the provider catalog."""


@providers_cmd.command("list")
@click.option("--popular", is_flag=True, help="Only popular providers")
@click.option("--search", "query", default=None, help="Filter by name, id or description")
def providers_list(popular: bool, query: str | None) -> None:
    """List known providers."""
    if query is not None:
        providers = registry.search(query)
    elif popular:
        providers = registry.get_popular()
    else:
        providers = registry.get_all()
    if popular:
        providers = [p for p in providers if p.is_popular]

    if not providers:
        click.echo("No providers found.")
        return

    click.echo(f"{'ID':<16} {'Name':<20} {'Category':<10} {'Auth':<22} {'Models'}")
    click.echo("-" * 80)
    for p in providers:
        auth = ", ".join(m.value for m in p.auth_methods)
        click.echo(f"{p.id:<16} {p.name:<20} {p.category.value:<10} {auth:<22} {len(p.models)}")


# ------------------------------------------------------------------
# models
# ------------------------------------------------------------------


@click.group()
def models_cmd() -> None:
    """Browse the model catalog."""


@models_cmd.command("list")
@click.option("--provider", "-p", default=None, help="Filter by provider")
def models_list(provider: str | None) -> None:
    """List catalog models."""
    if provider is not None and registry.get_by_id(provider) is None:
        click.echo(f"Error: Unknown provider: {provider}", err=True)
        raise SystemExit(1)

    header = f"{'Model ID':<28} {'Provider':<16} {'Context':<9} {'$/M in':<8} {'$/M out':<8}"
    click.echo(header)
    click.echo("-" * 75)

    count = 0
    for definition in registry.get_all():
        if provider and definition.id != provider:
            continue
        for model in definition.models:
            count += 1
            ctx = f"{model.context_window // 1000}K"
            click.echo(
                f"{model.id:<28} {definition.id:<16} {ctx:<9} "
                f"${model.cost_input_per_mtok:<7.2f} ${model.cost_output_per_mtok:<7.2f}"
            )

    click.echo(f"\n{count} models")


@models_cmd.command("info")
@click.argument("name")
def models_info(name: str) -> None:
    """Show details for a model, given as MODEL or PROVIDER/MODEL."""
    if "/" in name:
        provider_id, model_id = name.split("/", 1)
        try:
            model = registry.resolve_model(provider_id, model_id)
        except KeyError as e:
            click.echo(f"Error: {e.args[0]}", err=True)
            raise SystemExit(1)
    else:
        matches = [
            (d.id, m) for d in registry.get_all() for m in d.models if m.id == name
        ]
        if not matches:
            click.echo(f"Error: Unknown model: {name}", err=True)
            raise SystemExit(1)
        provider_id, model = matches[0]

    click.echo(f"Model:          {model.id}")
    click.echo(f"Display Name:   {model.name}")
    click.echo(f"Provider:       {provider_id}")
    if model.family:
        click.echo(f"Family:         {model.family}")
    click.echo(f"Context Window: {model.context_window:,} tokens")
    click.echo(f"Max Output:     {model.max_output:,} tokens")
    click.echo(f"Tools:          {'Yes' if model.supports_tools else 'No'}")
    click.echo(f"Vision:         {'Yes' if model.supports_vision else 'No'}")
    click.echo(f"Reasoning:      {'Yes' if model.supports_reasoning else 'No'}")
    click.echo(f"Input Cost:     ${model.cost_input_per_mtok:.2f}/M tokens")
    click.echo(f"Output Cost:    ${model.cost_output_per_mtok:.2f}/M tokens")


# ------------------------------------------------------------------
# sessions
# ------------------------------------------------------------------


@click.group()
def sessions_cmd() -> None:
    """Manage sessions."""


@sessions_cmd.command("list")
@click.option("--limit", "-n", default=20, help="Max sessions to show")
def sessions_list(limit: int) -> None:
    """List recent sessions."""
    sessions = JsonlMessageStore().list_sessions()[:limit]
    if not sessions:
        click.echo("No sessions found.")
        return

    click.echo(f"{'Session ID':<14} {'Messages':<9} {'Tokens in':<10} {'Tokens out':<11} {'Updated'}")
    click.echo("-" * 75)
    for s in sessions:
        updated = (s.updated_at or "")[:16].replace("T", " ")
        click.echo(
            f"{s.session_id:<14} {s.message_count:<9} "
            f"{s.input_tokens:<10} {s.output_tokens:<11} {updated}"
        )


@sessions_cmd.command("show")
@click.argument("session_id")
def sessions_show(session_id: str) -> None:
    """Print the stored turns of a session."""
    messages = JsonlMessageStore().get_messages(session_id)
    if not messages:
        click.echo(f"Error: No session {session_id}", err=True)
        raise SystemExit(1)
    for message in messages:
        if message.tool_calls:
            names = ", ".join(call.name for call in message.tool_calls)
            click.echo(f"[{message.role.value}] (tools: {names}) {message.content}".rstrip())
        else:
            click.echo(f"[{message.role.value}] {message.content}")


# ------------------------------------------------------------------
# config
# ------------------------------------------------------------------


@click.group()
def config_cmd() -> None:
    """Manage CodeMobile configuration."""


@config_cmd.command("list")
def config_list() -> None:
    """Show the effective settings and saved defaults."""
    click.echo("Defaults:")
    defaults = load_defaults()
    if defaults:
        for k, v in sorted(defaults.items()):
            click.echo(f"  {k}: {v}")
    else:
        click.echo("  (none saved)")

    click.echo("\nSettings:")
    settings = load_settings()
    for field_name in settings.__dataclass_fields__:
        click.echo(f"  {field_name}: {getattr(settings, field_name)}")

    click.echo("\nTOML config:")
    toml = {k: v for k, v in load_toml_config().items() if k != "settings"}
    if toml:
        for k, v in sorted(toml.items()):
            click.echo(f"  {k}: {v}")
    else:
        click.echo("  (no other keys)")


@config_cmd.command("set-default")
@click.option("--provider", "-p", default=None, help="Default provider id")
@click.option("--model", "-m", default=None, help="Default model id")
def config_set_default(provider: str | None, model: str | None) -> None:
    """Save the provider and/or model used by `chat` when none is given."""
    if provider is None and model is None:
        click.echo("Error: pass --provider and/or --model", err=True)
        raise SystemExit(1)
    if provider is not None and registry.get_by_id(provider) is None:
        click.echo(f"Error: Unknown provider: {provider}", err=True)
        raise SystemExit(1)
    path = save_defaults(provider, model)
    click.echo(f"Saved defaults to {path}")
