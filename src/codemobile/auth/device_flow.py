"""Generic OAuth device-code flow.

A :class:`DeviceFlow` knows how to talk to one authorization server; the
:class:`DeviceFlowAuthenticator` drives it through the state machine::

    Init -> ShowCode -> Polling* -> Success | Error

and reports progress as :data:`AuthEvent` values instead of raising.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import httpx

from codemobile.types.config import Settings

logger = logging.getLogger(__name__)

EXPIRED_MESSAGE = "Code expired. Please try again."
DENIED_MESSAGE = "Access denied by user."


class DeviceFlowError(Exception):
    """Raised by flows when a step of the protocol fails."""


def json_payload(resp: httpx.Response) -> dict[str, Any]:
    """Decode a JSON object body, raising :class:`DeviceFlowError` otherwise."""
    try:
        data = resp.json()
    except ValueError as exc:
        raise DeviceFlowError(f"HTTP {resp.status_code}: response is not JSON") from exc
    if not isinstance(data, dict):
        raise DeviceFlowError(f"HTTP {resp.status_code}: expected a JSON object")
    return data


@dataclass(frozen=True, slots=True)
class DeviceFlowSession:
    """State of one authentication attempt."""

    device_code: str
    user_code: str
    verification_uri: str
    poll_interval: float
    expires_in: float


@dataclass(frozen=True, slots=True)
class OAuthCredential:
    """Tokens obtained from a successful flow or refresh."""

    access_token: str
    refresh_token: str | None = None
    expires_at: int = 0  # epoch milliseconds, 0 when unknown
    account_id: str | None = None


class PollStatus(Enum):
    PENDING = "pending"
    SLOW_DOWN = "slow_down"
    EXPIRED = "expired"
    DENIED = "denied"
    ERROR = "error"
    SUCCESS = "success"


@dataclass(frozen=True, slots=True)
class PollResult:
    status: PollStatus
    payload: dict[str, Any] = field(default_factory=dict)
    message: str | None = None


# ------------------------------------------------------------------
# Events
# ------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ShowCode:
    user_code: str
    verification_uri: str
    expires_in: float


@dataclass(frozen=True, slots=True)
class Polling:
    pass


@dataclass(frozen=True, slots=True)
class Success:
    credential: OAuthCredential


@dataclass(frozen=True, slots=True)
class AuthError:
    message: str


AuthEvent = ShowCode | Polling | Success | AuthError


class DeviceFlow(ABC):
    """Provider-specific endpoints and response interpretation."""

    name: str = "device flow"

    @abstractmethod
    async def start(self, client: httpx.AsyncClient) -> DeviceFlowSession:
        """Request a device/user code pair. Raises :class:`DeviceFlowError`."""

    @abstractmethod
    async def poll(self, client: httpx.AsyncClient, session: DeviceFlowSession) -> PollResult:
        """Issue exactly one poll request."""

    async def complete(
        self,
        client: httpx.AsyncClient,
        session: DeviceFlowSession,
        payload: dict[str, Any],
    ) -> OAuthCredential:
        """Turn a successful poll payload into a credential.

        Flows with a secondary token exchange override this.
        """
        return OAuthCredential(access_token=payload["access_token"])

    def poll_interval(self, session: DeviceFlowSession, settings: Settings) -> float:
        return max(session.poll_interval, settings.min_poll_interval)

    def lifetime(self, session: DeviceFlowSession, settings: Settings) -> float:
        return session.expires_in


class DeviceFlowAuthenticator:
    """Drives a :class:`DeviceFlow` with sleep-then-poll semantics.

    Parameters
    ----------
    flow:
        The provider-specific flow.
    settings:
        Supplies the poll interval floor and slow-down increment.
    client:
        Optional shared ``httpx.AsyncClient``; one is created per attempt
        otherwise.
    sleep:
        Awaitable sleep function, injectable for tests.
    """

    def __init__(
        self,
        flow: DeviceFlow,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._flow = flow
        self._settings = settings or Settings()
        self._client = client
        self._sleep = sleep

    async def authenticate(self, timeout: float | None = None) -> AsyncIterator[AuthEvent]:
        """Run one authentication attempt.

        Yields exactly one :class:`ShowCode` (unless starting fails), any
        number of :class:`Polling` heartbeats, and finally one
        :class:`Success` or :class:`AuthError`.  *timeout* bounds the total
        wall-clock wait in seconds.
        """
        if self._client is not None:
            async for event in self._run(self._client, timeout):
                yield event
            return
        async with httpx.AsyncClient(timeout=self._settings.request_timeout) as client:
            async for event in self._run(client, timeout):
                yield event

    async def _run(
        self,
        client: httpx.AsyncClient,
        timeout: float | None,
    ) -> AsyncIterator[AuthEvent]:
        started = time.monotonic()
        try:
            session = await self._flow.start(client)
        except (DeviceFlowError, httpx.HTTPError) as exc:
            logger.warning("%s: could not start: %s", self._flow.name, exc)
            yield AuthError(f"Could not start authentication: {exc}")
            return

        lifetime = self._flow.lifetime(session, self._settings)
        yield ShowCode(
            user_code=session.user_code,
            verification_uri=session.verification_uri,
            expires_in=lifetime,
        )

        interval = self._flow.poll_interval(session, self._settings)
        deadline = started + lifetime
        if timeout is not None:
            deadline = min(deadline, started + timeout)

        while time.monotonic() < deadline:
            await self._sleep(min(interval, max(0.0, deadline - time.monotonic())))
            yield Polling()

            try:
                result = await self._flow.poll(client, session)
            except (DeviceFlowError, httpx.HTTPError) as exc:
                logger.warning("%s: poll failed, retrying: %s", self._flow.name, exc)
                continue

            logger.debug("%s: poll -> %s", self._flow.name, result.status.value)
            if result.status is PollStatus.PENDING:
                continue
            if result.status is PollStatus.SLOW_DOWN:
                await self._sleep(self._settings.slow_down_increment)
                continue
            if result.status is PollStatus.EXPIRED:
                yield AuthError(EXPIRED_MESSAGE)
                return
            if result.status is PollStatus.DENIED:
                yield AuthError(DENIED_MESSAGE)
                return
            if result.status is PollStatus.ERROR:
                yield AuthError(result.message or "Authentication failed")
                return

            try:
                credential = await self._flow.complete(client, session, result.payload)
            except (DeviceFlowError, httpx.HTTPError, KeyError) as exc:
                logger.warning("%s: token exchange failed: %s", self._flow.name, exc)
                yield AuthError(f"Token exchange failed: {exc}")
                return
            yield Success(credential)
            return

        yield AuthError(EXPIRED_MESSAGE)
