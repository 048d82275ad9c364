from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession


class BaseService:
    """
    Base class for services. Holds the session shared by the repositories a service composes.

    Services own the unit of work: they commit after a successful operation and roll
    back before translating database errors into engine errors.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
