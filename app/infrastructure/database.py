"""Database configuration and session management.

Provides async SQLAlchemy engine, session factory, the unit-of-work
transaction scope and the transient-error retry used by read paths.
"""

import asyncio
import functools
from collections.abc import AsyncGenerator, AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, ParamSpec, TypeVar

import structlog
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from app.domain.exceptions import TransientError
from app.infrastructure.config import settings

logger = structlog.get_logger()

# Create async engine
engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
)

# Session factory
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

# Base class for models
Base = declarative_base()


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session.

    Yields:
        AsyncSession for database operations.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ============================================================================
# Unit of Work
# ============================================================================


class UnitOfWork:
    """Explicit transaction scope over a single session.

    Mutations that must be all-or-nothing (cascade delete, assignment
    replacement, taxonomy edits) run inside ``atomic()``. When the session
    already has a transaction in progress the scope becomes a SAVEPOINT,
    so callers can compose several atomic steps inside one outer
    transaction.

    Example usage:
        uow = UnitOfWork(session)
        async with uow.atomic():
            ids = await repo.collect_descendant_ids(group_id)
            await repo.delete_groups(ids)
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize unit of work.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[AsyncSession]:
        """Run the enclosed block in one transaction.

        Yields:
            The session bound to the transaction.
        """
        if self.session.in_transaction():
            async with self.session.begin_nested():
                yield self.session
        else:
            async with self.session.begin():
                yield self.session


# ============================================================================
# Transient Error Retry
# ============================================================================


P = ParamSpec("P")
R = TypeVar("R")


def is_transient(exc: BaseException) -> bool:
    """Check whether a database error is worth a single retry.

    Args:
        exc: Raised exception.

    Returns:
        True for connection loss, pool exhaustion and operational errors.
    """
    if isinstance(exc, (OperationalError, PoolTimeoutError)):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


def retry_transient(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
    """Retry a read-only service method once on a transient database error.

    The decorated method must belong to an object exposing ``session``.
    The session is rolled back before the retry. A second failure is
    raised as ``TransientError``.
    """

    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        owner = args[0]
        try:
            return await func(*args, **kwargs)
        except Exception as exc:
            if not is_transient(exc):
                raise
            logger.warning(
                "Transient database error, retrying once",
                operation=func.__name__,
                error=str(exc),
            )
            await owner.session.rollback()
            await asyncio.sleep(settings.transient_retry_backoff_seconds)

        try:
            return await func(*args, **kwargs)
        except Exception as exc:
            if not is_transient(exc):
                raise
            logger.error(
                "Transient database error persisted after retry",
                operation=func.__name__,
                error=str(exc),
            )
            raise TransientError(func.__name__, str(exc)) from exc

    return wrapper
