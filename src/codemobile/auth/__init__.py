"""OAuth device flows and token helpers."""

from codemobile.auth.codex import CodexDeviceFlow
from codemobile.auth.device_flow import (
    AuthError,
    AuthEvent,
    DeviceFlow,
    DeviceFlowAuthenticator,
    DeviceFlowError,
    DeviceFlowSession,
    OAuthCredential,
    Polling,
    PollResult,
    PollStatus,
    ShowCode,
    Success,
)
from codemobile.auth.github import GitHubDeviceFlow
from codemobile.auth.jwt import extract_account_id, extract_account_id_from_tokens, parse_jwt_claims

__all__ = [
    "AuthError",
    "AuthEvent",
    "CodexDeviceFlow",
    "DeviceFlow",
    "DeviceFlowAuthenticator",
    "DeviceFlowError",
    "DeviceFlowSession",
    "GitHubDeviceFlow",
    "OAuthCredential",
    "PollResult",
    "PollStatus",
    "Polling",
    "ShowCode",
    "Success",
    "extract_account_id",
    "extract_account_id_from_tokens",
    "parse_jwt_claims",
]
