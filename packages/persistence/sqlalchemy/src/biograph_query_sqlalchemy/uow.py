"""
Transaction scope for the write-side collaborators.
"""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING

from biograph_query.exceptions import CriteriaError

from .exceptions import SessionManagementError, TransactionError

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from sqlalchemy.ext.asyncio import AsyncSession

    AsyncSessionFactory = Callable[[], AsyncSession]

logger = logging.getLogger(__name__)


class TransactionScope:
    """
    One database transaction around a block of writes.

    Supports two usage patterns:

    1. **Caller-managed session**::

           async with TransactionScope(session=session) as scope:
               await AssociationWriter(scope.session).link_parents(...)

    2. **Self-managed session**::

           factory = async_sessionmaker(engine)
           async with TransactionScope(session_factory=factory) as scope:
               ...

       The scope creates the session and closes it on exit.

    The block commits when it completes. Any exception rolls the
    transaction back; criteria errors propagate unchanged, everything else
    surfaces as :class:`TransactionError` chained from the cause.
    """

    def __init__(
        self,
        session: AsyncSession | None = None,
        session_factory: AsyncSessionFactory | None = None,
    ) -> None:
        if session is not None and session_factory is not None:
            raise SessionManagementError(
                "Cannot provide both 'session' and 'session_factory'."
            )
        if session is None and session_factory is None:
            raise SessionManagementError(
                "Must provide either 'session' or 'session_factory'."
            )

        self._session: AsyncSession | None = session
        self._session_factory = session_factory
        self._owns_session = session is None

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            raise SessionManagementError(
                "Session not yet created. Ensure __aenter__ was called."
            )
        return self._session

    async def __aenter__(self) -> TransactionScope:
        try:
            if self._owns_session and self._session_factory:
                self._session = self._session_factory()
            if not self.session.in_transaction():
                await self.session.begin()
            return self
        except SessionManagementError:
            raise
        except Exception as e:  # noqa: BLE001
            raise SessionManagementError(
                f"Failed to open transaction scope: {e}"
            ) from e

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        try:
            if exc_val is None:
                await self.commit()
                return
            await self.rollback()
            if isinstance(exc_val, CriteriaError) or not isinstance(
                exc_val, Exception
            ):
                return
            logger.warning("Transaction rolled back: %s", exc_val)
            raise TransactionError(
                f"Transaction could not be completed: {exc_val}"
            ) from exc_val
        finally:
            if self._owns_session and self._session is not None:
                try:
                    await self._session.close()
                except Exception as e:  # noqa: BLE001
                    raise SessionManagementError(
                        f"Failed to close session: {e}"
                    ) from e

    async def commit(self) -> None:
        try:
            await self.session.commit()
        except Exception as e:  # noqa: BLE001
            with contextlib.suppress(Exception):
                await self.rollback()
            raise TransactionError(f"Failed to commit transaction: {e}") from e

    async def rollback(self) -> None:
        try:
            if self.session.in_transaction():
                await self.session.rollback()
        except Exception as e:  # noqa: BLE001
            raise TransactionError(f"Failed to rollback transaction: {e}") from e
