"""
JWT verification for tokens issued by the external auth service.

Tokens carry the caller's identity as claims: ``sub`` (user id), ``name``,
``role`` (admin | manager | bot) and ``company_id`` (tenant scope).
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from shiftpay.core.config import settings

_ALGORITHM = settings.ALGORITHM
_SECRET = settings.SECRET_KEY

VALID_ROLES = {"admin", "manager", "bot"}


def create_access_token(
    subject: str | Any,
    *,
    name: str,
    role: str,
    company_id: int,
    expires_delta: timedelta | None = None,
) -> str:
    """Mint an access token. Used by local tooling and the test-suite."""
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=30))
    return jwt.encode(
        {
            "exp": expire,
            "sub": str(subject),
            "type": "access",
            "name": name,
            "role": role,
            "company_id": company_id,
        },
        _SECRET,
        algorithm=_ALGORITHM,
    )


def decode_access_token(token: str) -> dict | None:
    """Return payload dict if *access* token is valid, else ``None``."""
    try:
        payload = jwt.decode(token, _SECRET, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != "access":
        return None
    if payload.get("role") not in VALID_ROLES or payload.get("company_id") is None:
        return None
    return payload
