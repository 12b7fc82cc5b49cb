"""
Async SQLAlchemy engine & session factory.

PostgreSQL (asyncpg) in production gets a sized connection pool; the
aiosqlite URL used for local runs and tests gets no pool tuning, and
``FOR UPDATE`` row locks quietly become no-ops there.
"""

from __future__ import annotations

import functools
import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from shiftpay.core.config import settings
from shiftpay.core.exceptions import ShiftpayError, StoreFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")


def build_engine_args(url: str) -> dict:
    args: dict = {
        "echo": settings.DB_ECHO,
        "pool_pre_ping": True,
    }
    if url.startswith("postgresql"):
        args.update(
            {
                "pool_size": settings.DB_POOL_SIZE,
                "max_overflow": settings.DB_MAX_OVERFLOW,
                "pool_recycle": 300,
            }
        )
    elif url.startswith("sqlite"):
        args["connect_args"] = {"check_same_thread": False}
    return args


engine = create_async_engine(
    settings.DATABASE_URL,
    **build_engine_args(settings.DATABASE_URL),
)

# Engine results are built before commit; nothing is read back afterwards.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


def unit_of_work(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
    """Commit on success; roll back and surface a StoreFailure otherwise."""

    @functools.wraps(fn)
    async def wrapper(db: AsyncSession, *args, **kwargs) -> T:
        try:
            result = await fn(db, *args, **kwargs)
            await db.commit()
        except ShiftpayError:
            await db.rollback()
            raise
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error("%s rolled back after store error: %s", fn.__name__, exc, exc_info=True)
            raise StoreFailure(f"Store failure during {fn.__name__}; nothing was saved") from exc
        return result

    return wrapper
