"""Unverified JWT claim parsing for account-id discovery.

Only the payload segment is decoded; signatures are not checked because the
token is used as an opaque bearer credential and the claims only pick which
account header to send.
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any

OPENAI_AUTH_CLAIM = "https://api.openai.com/auth"
ACCOUNT_ID_CLAIM = "chatgpt_account_id"


def parse_jwt_claims(token: str) -> dict[str, Any] | None:
    """Decode the middle segment of a three-part token into a dict."""
    parts = token.split(".")
    if len(parts) != 3:
        return None
    segment = parts[1]
    segment += "=" * (-len(segment) % 4)
    try:
        raw = base64.urlsafe_b64decode(segment.encode("ascii"))
        claims = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError):
        return None
    return claims if isinstance(claims, dict) else None


def extract_account_id(claims: dict[str, Any]) -> str | None:
    """Look up the account id: top-level claim, nested auth claim, first organization."""
    value = claims.get(ACCOUNT_ID_CLAIM)
    if isinstance(value, str) and value:
        return value

    nested = claims.get(OPENAI_AUTH_CLAIM)
    if isinstance(nested, dict):
        value = nested.get(ACCOUNT_ID_CLAIM)
        if value:
            return str(value)

    organizations = claims.get("organizations")
    if isinstance(organizations, list) and organizations:
        first = organizations[0]
        if isinstance(first, dict) and first.get("id"):
            return str(first["id"])
    return None


def extract_account_id_from_tokens(id_token: str | None, access_token: str | None) -> str | None:
    """Prefer the identity token, fall back to the access token."""
    for token in (id_token, access_token):
        if not token:
            continue
        claims = parse_jwt_claims(token)
        if claims is None:
            continue
        account_id = extract_account_id(claims)
        if account_id:
            return account_id
    return None
