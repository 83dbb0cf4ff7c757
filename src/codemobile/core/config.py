"""Configuration loading (TOML, env vars, saved defaults)."""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from codemobile.types.config import Settings

logger = logging.getLogger(__name__)

# Load .env from current directory (and parents), won't override existing env vars
load_dotenv()

ENV_PREFIX = "CODEMOBILE_"


def config_home() -> Path:
    """Directory holding user-level config, credentials and sessions."""
    return Path.home() / ".codemobile"


def read_toml(path: Path) -> dict[str, Any]:
    """Parse *path*, returning {} when it is missing or malformed."""
    if not path.exists():
        return {}
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", path, exc)
        return {}


def load_toml_config(cwd: str | None = None) -> dict[str, Any]:
    """Load the first of ``<cwd>/.codemobile/config.toml`` or ``~/.codemobile/config.toml``."""
    candidates = []
    if cwd:
        candidates.append(Path(cwd) / ".codemobile" / "config.toml")
    candidates.append(Path.cwd() / ".codemobile" / "config.toml")
    candidates.append(config_home() / "config.toml")

    for path in candidates:
        if path.exists():
            return read_toml(path)
    return {}


def load_env_settings() -> dict[str, str]:
    """Collect ``CODEMOBILE_<FIELD>`` overrides from the environment."""
    overrides: dict[str, str] = {}
    for key, value in os.environ.items():
        if key.startswith(ENV_PREFIX):
            overrides[key[len(ENV_PREFIX) :].lower()] = value
    return overrides


def load_settings(cwd: str | None = None) -> Settings:
    """Build :class:`Settings` from defaults, the ``[settings]`` table, then env vars."""
    table = load_toml_config(cwd).get("settings", {})
    settings = Settings()
    for overrides in (table if isinstance(table, dict) else {}, load_env_settings()):
        try:
            settings = settings.with_overrides(overrides)
        except (TypeError, ValueError) as exc:
            logger.warning("Ignoring invalid settings override: %s", exc)
    return settings


def load_defaults() -> dict[str, str]:
    """Load saved defaults (provider, model) from ~/.codemobile/config.toml.

    Returns a dict with optional keys ``"provider"`` and ``"model"``.
    """
    data = read_toml(config_home() / "config.toml")
    return {k: v for k, v in data.get("defaults", {}).items() if isinstance(v, str)}


def save_defaults(provider: str | None = None, model: str | None = None) -> Path:
    """Persist provider and/or model as the user's defaults.

    Writes to the ``[defaults]`` section of ``~/.codemobile/config.toml``.
    Only non-*None* values are written; existing keys are preserved.

    Returns the config file path.
    """
    config_dir = config_home()
    config_dir.mkdir(parents=True, exist_ok=True)
    config_path = config_dir / "config.toml"

    data = read_toml(config_path)
    defaults = data.setdefault("defaults", {})
    if provider is not None:
        defaults["provider"] = provider
    if model is not None:
        defaults["model"] = model

    write_toml(config_path, data)
    return config_path


def write_toml(path: Path, data: dict[str, Any]) -> None:
    """Write a dict as TOML to *path* (minimal writer) with owner-only permissions."""
    lines: list[str] = []
    # Top-level simple keys first
    for k, v in data.items():
        if not isinstance(v, dict):
            lines.append(f"{_toml_key(k)} = {_toml_value(v)}")
    for k, v in data.items():
        if isinstance(v, dict):
            _write_toml_section(lines, [k], v)
    path.write_text("\n".join(lines).lstrip("\n") + "\n")
    try:
        path.chmod(0o600)
    except OSError as exc:
        logger.debug("Could not restrict permissions on %s: %s", path, exc)


def _write_toml_section(lines: list[str], prefix: list[str], d: dict[str, Any]) -> None:
    """Recursively write TOML sections."""
    simple: list[tuple[str, Any]] = []
    nested: list[tuple[str, dict[str, Any]]] = []
    for k, v in d.items():
        if isinstance(v, dict):
            nested.append((k, v))
        else:
            simple.append((k, v))
    if simple or not nested:
        lines.append(f"\n[{'.'.join(_toml_key(p) for p in prefix)}]")
        for k, v in simple:
            lines.append(f"{_toml_key(k)} = {_toml_value(v)}")
    for k, v in nested:
        _write_toml_section(lines, prefix + [k], v)


def _toml_key(key: str) -> str:
    if key and all(c.isalnum() or c in "-_" for c in key):
        return key
    return _toml_value(key)


def _toml_value(v: Any) -> str:
    """Format a Python value as a TOML literal."""
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, int):
        return str(v)
    if isinstance(v, float):
        return str(v)
    if isinstance(v, str):
        escaped = v.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
        return f'"{escaped}"'
    if isinstance(v, (list, tuple)):
        items = ", ".join(_toml_value(item) for item in v)
        return f"[{items}]"
    return repr(v)
