import logging
from types import TracebackType
from typing import Self

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from svn_buddy_updater.db import session as db_session

logger = logging.getLogger(__name__)


class SASessionUOW:
    """
    Unit Of Work around SQLAlchemy-session related items: repositories, ops

    This UOW can work in two modes:
    1. Standalone mode: creates its own session from session factory
       (the global one or a provided one)
    2. Dependency mode: accepts a session from FastAPI dependency injection

    Changes are committed only when the block was marked for commit and no
    exception was raised; otherwise the transaction is rolled back.

    Examples:
        async with SASessionUOW() as uow:
            repo = ReleaseRepository(session=uow.session)
            await repo.delete_by_stability(ReleaseStability.STABLE)
            await repo.create_many(releases)
            uow.mark_for_commit()
    """

    def __init__(
        self,
        session: AsyncSession | None = None,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        self.__need_to_commit: bool = False
        self.__owns_session: bool = False
        if session is None:
            session_factory = session_factory or db_session.get_session_factory()
            self.__session: AsyncSession = session_factory()
            self.__owns_session = True
        else:
            self.__session = session

    async def __aenter__(self) -> Self:
        """Enter transaction context and start transaction if needed."""
        logger.debug("[DB] Entering UOW transaction block")

        if self.__owns_session or not self.__session.in_transaction():
            await self.__session.begin()
            logger.debug("[DB] Started new transaction")

        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit transaction context: commit marked changes or roll everything back."""
        try:
            if exc_type is None:
                await self.__session.flush()

            if self.__need_to_commit and exc_type is None:
                await self.commit()
            else:
                await self.rollback()

        except Exception as exc:
            logger.error("[DB] Error during UOW cleanup: %r", exc)
            raise

        finally:
            if self.__owns_session:
                await self.__session.close()
                logger.debug("[DB] Session closed")

    @property
    def session(self) -> AsyncSession:
        """Provide the current session for repository operations."""
        return self.__session

    async def commit(self) -> None:
        """Explicitly commit the current transaction."""
        try:
            logger.debug("[DB] Committing transaction...")
            await self.session.commit()
            self.__need_to_commit = False
            logger.debug("[DB] Transaction committed successfully")
        except Exception as exc:
            logger.error("[DB] Failed to commit transaction", exc_info=exc)
            await self.rollback()
            raise exc

    async def rollback(self) -> None:
        """Explicitly rollback the current transaction."""
        try:
            logger.debug("[DB] Rolling back transaction...")
            await self.session.rollback()
            self.__need_to_commit = False
            logger.debug("[DB] Transaction rolled back successfully")
        except Exception as exc:
            logger.error("[DB] Failed to rollback transaction", exc_info=exc)
            raise exc

    @property
    def need_to_commit(self) -> bool:
        """Check if transaction needs to be committed."""
        return self.__need_to_commit

    @property
    def owns_session(self) -> bool:
        """Check if UOW owns the session (standalone mode)."""
        return self.__owns_session

    def mark_for_commit(self) -> None:
        """Convenience method to mark transaction for commit."""
        self.__need_to_commit = True
