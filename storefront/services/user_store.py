"""
Credential store — single-record reads and writes on ``users``.

Every write commits on its own; a failed commit is rolled back before the
driver error is re-raised to the caller.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.models.user import User


class UserStore:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _commit(self) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise

    async def find_by_email(self, email: str) -> User | None:
        result = await self.session.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def find_by_id(self, user_id: int) -> User | None:
        return await self.session.get(User, user_id)

    async def create(self, **fields: Any) -> User:
        """Insert a user. Raises ``IntegrityError`` if the email is taken."""
        user = User(**fields)
        self.session.add(user)
        await self._commit()
        await self.session.refresh(user)
        return user

    async def update(self, user: User, **fields: Any) -> User:
        for field, value in fields.items():
            setattr(user, field, value)
        await self._commit()
        return user

    async def delete(self, user_id: int) -> None:
        await self.session.execute(delete(User).where(User.id == user_id))
        await self._commit()
