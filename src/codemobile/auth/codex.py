"""OpenAI Codex headless device flow (ChatGPT Plus/Pro subscription).

Unlike the GitHub flow, a successful poll returns an authorization code and
PKCE verifier that must be exchanged for tokens, and the resulting refresh
token can later be traded for a new access token.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from codemobile.auth.device_flow import (
    DeviceFlow,
    DeviceFlowError,
    DeviceFlowSession,
    OAuthCredential,
    PollResult,
    PollStatus,
    json_payload,
)
from codemobile.auth.jwt import extract_account_id_from_tokens
from codemobile.types.config import Settings

logger = logging.getLogger(__name__)

CODEX_CLIENT_ID = "app_EMoamEEZ73f0CkXaXp7hrann"
CODEX_ISSUER = "https://auth.openai.com"
USER_AGENT = "CodeMobile/1.0"
DEFAULT_TOKEN_LIFETIME = 3600

_PENDING_STATUS_CODES = frozenset({403, 404})


def _now_ms() -> int:
    return int(time.time() * 1000)


class CodexDeviceFlow(DeviceFlow):
    """Device flow against auth.openai.com with a code-for-token exchange."""

    name = "openai-codex"

    def __init__(self, client_id: str = CODEX_CLIENT_ID, issuer: str = CODEX_ISSUER) -> None:
        self._client_id = client_id
        self._issuer = issuer.rstrip("/")
        self._headers = {"User-Agent": USER_AGENT}

    @property
    def token_url(self) -> str:
        return f"{self._issuer}/oauth/token"

    async def start(self, client: httpx.AsyncClient) -> DeviceFlowSession:
        resp = await client.post(
            f"{self._issuer}/api/accounts/deviceauth/usercode",
            json={"client_id": self._client_id},
            headers=self._headers,
        )
        if not resp.is_success:
            raise DeviceFlowError(f"HTTP {resp.status_code}")
        data = json_payload(resp)
        try:
            interval = int(data.get("interval") or 5)
        except (TypeError, ValueError):
            interval = 5
        try:
            return DeviceFlowSession(
                device_code=data["device_auth_id"],
                user_code=data["user_code"],
                verification_uri=f"{self._issuer}/codex/device",
                poll_interval=float(interval),
                expires_in=0.0,
            )
        except KeyError as exc:
            raise DeviceFlowError(f"missing field {exc}") from exc

    def poll_interval(self, session: DeviceFlowSession, settings: Settings) -> float:
        return max(session.poll_interval, 1.0) + settings.codex_poll_margin

    def lifetime(self, session: DeviceFlowSession, settings: Settings) -> float:
        return settings.codex_device_timeout

    async def poll(self, client: httpx.AsyncClient, session: DeviceFlowSession) -> PollResult:
        resp = await client.post(
            f"{self._issuer}/api/accounts/deviceauth/token",
            json={"device_auth_id": session.device_code, "user_code": session.user_code},
            headers=self._headers,
        )
        if resp.status_code in _PENDING_STATUS_CODES:
            return PollResult(PollStatus.PENDING)
        if not resp.is_success:
            return PollResult(PollStatus.ERROR, message=f"HTTP {resp.status_code}: {resp.text}")
        try:
            data = json_payload(resp)
        except DeviceFlowError as exc:
            logger.debug("Unreadable poll response: %s", exc)
            return PollResult(PollStatus.PENDING)
        if not data.get("authorization_code"):
            return PollResult(PollStatus.PENDING)
        return PollResult(PollStatus.SUCCESS, payload=data)

    async def complete(
        self,
        client: httpx.AsyncClient,
        session: DeviceFlowSession,
        payload: dict[str, Any],
    ) -> OAuthCredential:
        resp = await client.post(
            self.token_url,
            data={
                "grant_type": "authorization_code",
                "code": payload["authorization_code"],
                "redirect_uri": f"{self._issuer}/deviceauth/callback",
                "client_id": self._client_id,
                "code_verifier": payload["code_verifier"],
            },
        )
        if not resp.is_success:
            raise DeviceFlowError(f"HTTP {resp.status_code}")
        return self._credential_from(json_payload(resp))

    async def refresh(
        self,
        refresh_token: str,
        client: httpx.AsyncClient | None = None,
    ) -> OAuthCredential | None:
        """Trade *refresh_token* for new tokens; None on any failure."""
        try:
            if client is not None:
                resp = await self._post_refresh(client, refresh_token)
            else:
                async with httpx.AsyncClient(timeout=30.0) as c:
                    resp = await self._post_refresh(c, refresh_token)
        except httpx.HTTPError as exc:
            logger.warning("Codex token refresh failed: %s", exc)
            return None
        if not resp.is_success:
            logger.warning("Codex token refresh rejected: HTTP %d", resp.status_code)
            return None
        try:
            return self._credential_from(json_payload(resp), fallback_refresh=refresh_token)
        except (ValueError, DeviceFlowError) as exc:
            logger.warning("Codex token refresh returned bad payload: %s", exc)
            return None

    async def _post_refresh(self, client: httpx.AsyncClient, refresh_token: str) -> httpx.Response:
        return await client.post(
            self.token_url,
            data={
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": self._client_id,
            },
        )

    @staticmethod
    def _credential_from(
        data: dict[str, Any],
        fallback_refresh: str | None = None,
    ) -> OAuthCredential:
        access_token = data.get("access_token")
        if not access_token:
            raise DeviceFlowError("token response has no access_token")
        expires_in = int(data.get("expires_in") or DEFAULT_TOKEN_LIFETIME)
        return OAuthCredential(
            access_token=access_token,
            refresh_token=data.get("refresh_token") or fallback_refresh,
            expires_at=_now_ms() + expires_in * 1000,
            account_id=extract_account_id_from_tokens(data.get("id_token"), access_token),
        )
