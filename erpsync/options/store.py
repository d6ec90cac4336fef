"""
Key-value option storage and short-lived flag storage.

Both stores persist to the database through SQLAlchemy async sessions. Every
method opens its own session, so each write is atomic on its own and no
operation spans more than one key.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import database
from ..models import Option, Transient

SessionFactory = Callable[[], AsyncSession]


class _SessionMixin:
    def __init__(self, session_factory: Optional[SessionFactory] = None):
        self._session_factory = session_factory

    def _session(self) -> AsyncSession:
        if self._session_factory is not None:
            return self._session_factory()
        return database.get_async_session()


class OptionStore(_SessionMixin):
    """
    Persistent named options with JSON values.

    Values survive restarts and are read-mostly: writes happen on migration,
    settings changes and result snapshots.
    """

    async def get(self, name: str, default: Any = None) -> Any:
        """
        Get an option value.

        Args:
            name: Option name
            default: Returned when the option does not exist

        Returns:
            Stored value or ``default``
        """
        async with self._session() as session:
            result = await session.execute(select(Option).where(Option.name == name))
            row = result.scalar_one_or_none()
            if row is None:
                return default
            return row.value

    async def exists(self, name: str) -> bool:
        async with self._session() as session:
            result = await session.execute(
                select(Option.id).where(Option.name == name)
            )
            return result.scalar_one_or_none() is not None

    async def set(self, name: str, value: Any) -> None:
        """
        Create or overwrite an option.

        Args:
            name: Option name
            value: Any JSON-serializable value
        """
        async with self._session() as session:
            result = await session.execute(select(Option).where(Option.name == name))
            row = result.scalar_one_or_none()
            if row is None:
                session.add(Option(name=name, value=value))
            else:
                row.value = value
                row.updated_at = datetime.now(timezone.utc)
            await session.commit()

    async def delete(self, name: str) -> None:
        async with self._session() as session:
            await session.execute(delete(Option).where(Option.name == name))
            await session.commit()


class TransientStore(_SessionMixin):
    """
    Flags with an expiry.

    An expired flag reads as absent even before it is purged.
    """

    async def get(self, name: str) -> Any:
        """
        Get a live flag value.

        Returns:
            The stored value, or None when absent or expired
        """
        now = datetime.now(timezone.utc)
        async with self._session() as session:
            result = await session.execute(
                select(Transient).where(
                    Transient.name == name, Transient.expires_at > now
                )
            )
            row = result.scalar_one_or_none()
            return row.value if row is not None else None

    async def add(self, name: str, value: Any, ttl_seconds: int) -> bool:
        """
        Set a flag only if no live flag with the same name exists.

        An expired flag is purged first, so a crashed holder never blocks
        forever.

        Args:
            name: Flag name
            value: JSON-serializable value
            ttl_seconds: Lifetime of the flag

        Returns:
            True if the flag was written, False if a live flag already exists
        """
        now = datetime.now(timezone.utc)
        async with self._session() as session:
            await session.execute(
                delete(Transient).where(
                    Transient.name == name, Transient.expires_at <= now
                )
            )
            session.add(
                Transient(
                    name=name,
                    value=value,
                    expires_at=now + timedelta(seconds=ttl_seconds),
                )
            )
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                return False
            return True

    async def set(self, name: str, value: Any, ttl_seconds: int) -> None:
        """Create or overwrite a flag regardless of its current state."""
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds)
        async with self._session() as session:
            result = await session.execute(
                select(Transient).where(Transient.name == name)
            )
            row = result.scalar_one_or_none()
            if row is None:
                session.add(Transient(name=name, value=value, expires_at=expires_at))
            else:
                row.value = value
                row.expires_at = expires_at
            await session.commit()

    async def delete(self, name: str) -> None:
        """Remove a flag. Removing an absent flag is a no-op."""
        async with self._session() as session:
            await session.execute(delete(Transient).where(Transient.name == name))
            await session.commit()

    async def expires_at(self, name: str) -> Optional[datetime]:
        now = datetime.now(timezone.utc)
        async with self._session() as session:
            result = await session.execute(
                select(Transient.expires_at).where(
                    Transient.name == name, Transient.expires_at > now
                )
            )
            return result.scalar_one_or_none()
