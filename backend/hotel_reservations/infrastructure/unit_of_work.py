from __future__ import annotations

import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..domain.errors import ConflictError
from ..domain.repositories import Repositories, UnitOfWork
from .repositories import SqlAlchemyCatalogReader, SqlAlchemyReservationStore

T = TypeVar("T")

logger = logging.getLogger(__name__)

# MySQL deadlock / lock wait timeout, PostgreSQL serialization failure / deadlock.
_MYSQL_RETRYABLE_CODES = {1205, 1213}
_PG_RETRYABLE_STATES = {"40001", "40P01"}


def is_serialization_failure(exc: DBAPIError) -> bool:
    orig = exc.orig
    if getattr(orig, "pgcode", None) in _PG_RETRYABLE_STATES or getattr(orig, "sqlstate", None) in _PG_RETRYABLE_STATES:
        return True
    args = getattr(orig, "args", ())
    return bool(args) and args[0] in _MYSQL_RETRYABLE_CODES


class SqlAlchemyUnitOfWork(UnitOfWork):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def run(self, work: Callable[[Repositories], Awaitable[T]]) -> T:
        async with self.session_factory() as session:
            repos = Repositories(
                catalog=SqlAlchemyCatalogReader(session),
                reservations=SqlAlchemyReservationStore(session),
            )
            try:
                async with session.begin():
                    return await work(repos)
            except IntegrityError as exc:
                logger.warning("transaction rejected by constraint: %s", exc.orig)
                raise ConflictError("reservation conflicts with existing data") from exc
            except DBAPIError as exc:
                if is_serialization_failure(exc):
                    logger.warning("transaction lost a concurrent write race: %s", exc.orig)
                    raise ConflictError("reservation was modified concurrently, retry the request") from exc
                raise
