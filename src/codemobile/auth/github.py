"""GitHub device flow used to sign in to GitHub Copilot."""

from __future__ import annotations

import logging

import httpx

from codemobile.auth.device_flow import (
    DeviceFlow,
    DeviceFlowError,
    DeviceFlowSession,
    PollResult,
    PollStatus,
    json_payload,
)

logger = logging.getLogger(__name__)

GITHUB_CLIENT_ID = "Ov23li8tweQw6odWQebz"
GITHUB_BASE_URL = "https://github.com"
DEVICE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"

_ERROR_STATUS = {
    "authorization_pending": PollStatus.PENDING,
    "slow_down": PollStatus.SLOW_DOWN,
    "expired_token": PollStatus.EXPIRED,
    "access_denied": PollStatus.DENIED,
}


class GitHubDeviceFlow(DeviceFlow):
    """RFC 8628 device flow against github.com."""

    name = "github"

    def __init__(
        self,
        client_id: str = GITHUB_CLIENT_ID,
        base_url: str = GITHUB_BASE_URL,
        scope: str = "read:user",
    ) -> None:
        self._client_id = client_id
        self._base_url = base_url.rstrip("/")
        self._scope = scope
        self._headers = {"Accept": "application/json"}

    async def start(self, client: httpx.AsyncClient) -> DeviceFlowSession:
        resp = await client.post(
            f"{self._base_url}/login/device/code",
            data={"client_id": self._client_id, "scope": self._scope},
            headers=self._headers,
        )
        if not resp.is_success:
            raise DeviceFlowError(f"HTTP {resp.status_code}")
        data = json_payload(resp)
        try:
            return DeviceFlowSession(
                device_code=data["device_code"],
                user_code=data["user_code"],
                verification_uri=data["verification_uri"],
                poll_interval=float(data.get("interval", 5)),
                expires_in=float(data.get("expires_in", 900)),
            )
        except KeyError as exc:
            raise DeviceFlowError(f"missing field {exc}") from exc

    async def poll(self, client: httpx.AsyncClient, session: DeviceFlowSession) -> PollResult:
        resp = await client.post(
            f"{self._base_url}/login/oauth/access_token",
            data={
                "client_id": self._client_id,
                "device_code": session.device_code,
                "grant_type": DEVICE_GRANT_TYPE,
            },
            headers=self._headers,
        )
        try:
            data = json_payload(resp)
        except DeviceFlowError as exc:
            logger.debug("Unreadable poll response: %s", exc)
            return PollResult(PollStatus.PENDING)

        if data.get("access_token"):
            return PollResult(PollStatus.SUCCESS, payload=data)

        error = data.get("error")
        if not error:
            return PollResult(PollStatus.PENDING)
        status = _ERROR_STATUS.get(error)
        if status is not None:
            return PollResult(status)
        return PollResult(PollStatus.ERROR, message=data.get("error_description") or error)
