"""TOML-file credential store."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from codemobile.core.config import config_home, read_toml, write_toml
from codemobile.providers import registry

logger = logging.getLogger(__name__)


def _credentials_path() -> Path:
    return config_home() / "credentials.toml"


class TomlCredentialStore:
    """Stores secrets under ``[credentials.<config id>]`` in a 0600 TOML file.

    API keys fall back to the registry's ``env_keys`` for the provider when
    nothing is stored, so ``ANTHROPIC_API_KEY`` and friends work without a
    ``connect`` step.
    """

    def __init__(self, path: Path | None = None, environ: Mapping[str, str] | None = None) -> None:
        self.path = path or _credentials_path()
        self._environ = os.environ if environ is None else environ

    # ------------------------------------------------------------------
    # Getters
    # ------------------------------------------------------------------

    def get_api_key(self, config_id: str) -> str | None:
        stored = self._get(config_id, "api_key")
        if stored:
            return stored
        definition = registry.get_by_id(config_id)
        for env_key in definition.env_keys if definition else ():
            if value := self._environ.get(env_key):
                return value
        return None

    def get_access_token(self, config_id: str) -> str | None:
        return self._get(config_id, "access_token")

    def get_refresh_token(self, config_id: str) -> str | None:
        return self._get(config_id, "refresh_token")

    def get_token_expiry(self, config_id: str) -> int | None:
        value = self._get(config_id, "token_expiry")
        return int(value) if value is not None else None

    def get_account_id(self, config_id: str) -> str | None:
        return self._get(config_id, "account_id")

    def has_oauth(self, config_id: str) -> bool:
        return bool(self.get_access_token(config_id) or self.get_refresh_token(config_id))

    # ------------------------------------------------------------------
    # Setters
    # ------------------------------------------------------------------

    def save_api_key(self, config_id: str, value: str) -> None:
        self._set(config_id, "api_key", value)

    def save_access_token(self, config_id: str, value: str) -> None:
        self._set(config_id, "access_token", value)

    def save_refresh_token(self, config_id: str, value: str) -> None:
        self._set(config_id, "refresh_token", value)

    def save_token_expiry(self, config_id: str, value: int) -> None:
        self._set(config_id, "token_expiry", int(value))

    def save_account_id(self, config_id: str, value: str) -> None:
        self._set(config_id, "account_id", value)

    def delete(self, config_id: str) -> bool:
        """Forget every secret for *config_id*; True if anything was removed."""
        data = read_toml(self.path)
        removed = data.get("credentials", {}).pop(config_id, None) is not None
        if removed:
            write_toml(self.path, data)
        return removed

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get(self, config_id: str, key: str) -> Any:
        section = read_toml(self.path).get("credentials", {}).get(config_id, {})
        value = section.get(key) if isinstance(section, dict) else None
        return value if value not in ("", None) else None

    def _set(self, config_id: str, key: str, value: str | int) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = read_toml(self.path)
        data.setdefault("credentials", {}).setdefault(config_id, {})[key] = value
        write_toml(self.path, data)
        logger.debug("Saved %s for %s", key, config_id)
