from __future__ import annotations

from types import TracebackType

import structlog
from portal.domain.errors import StoreUnavailableError
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


class UnitOfWork:
    """Transaction boundary around an ``AsyncSession``.

    Everything done inside ``async with UnitOfWork(session)`` is committed
    together on a clean exit and rolled back together on any exception.
    Driver-level failures (lost connection, timeouts) surface as
    ``StoreUnavailableError``; integrity violations are left for the caller
    to interpret.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def __aenter__(self) -> UnitOfWork:
        logger.debug("uow_enter")
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc is None:
            try:
                await self.commit()
            except IntegrityError:
                await self.rollback()
                raise
            except DBAPIError as commit_exc:
                await self.rollback()
                await logger.aerror("uow_commit_failed", exc_info=True)
                raise StoreUnavailableError("Database unavailable") from commit_exc
            logger.debug("uow_exit")
            return

        await self.rollback()
        logger.debug("uow_exit", exc_type=exc_type.__name__ if exc_type else None)
        if isinstance(exc, DBAPIError) and not isinstance(exc, IntegrityError):
            await logger.aerror("uow_store_error", error=type(exc).__name__)
            raise StoreUnavailableError("Database unavailable") from exc

    async def commit(self) -> None:
        logger.debug("uow_commit")
        await self.session.commit()

    async def rollback(self) -> None:
        logger.debug("uow_rollback")
        await self.session.rollback()
