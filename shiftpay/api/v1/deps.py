"""
FastAPI dependencies — caller identity, role guards and database session.

Identity comes entirely from the bearer token issued by the external auth
service; there is no local user table.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from shiftpay.core.security import decode_access_token
from shiftpay.db.session import async_session_factory

bearer_scheme = HTTPBearer(auto_error=False)


class Actor(BaseModel):
    id: str
    name: str
    role: str
    company_id: int


# ── Database session ────────────────────────────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


# ── Auth dependencies ───────────────────────────────────────────────
async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Actor:
    """Decode the bearer JWT into the calling actor."""
    credentials_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None or not credentials.credentials:
        raise credentials_exc

    payload = decode_access_token(credentials.credentials)
    if payload is None or payload.get("sub") is None:
        raise credentials_exc

    try:
        return Actor(
            id=str(payload["sub"]),
            name=str(payload.get("name") or payload["sub"]),
            role=payload["role"],
            company_id=int(payload["company_id"]),
        )
    except (TypeError, ValueError):
        raise credentials_exc


async def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    """Admins and managers: edits, absences, approvals, balance resets."""
    if actor.role not in ("admin", "manager"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin or manager privileges required",
        )
    return actor


async def require_engine_caller(actor: Actor = Depends(get_current_actor)) -> Actor:
    """Anything allowed to report attendance facts, the bot included."""
    if actor.role not in ("admin", "manager", "bot"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to report attendance",
        )
    return actor
