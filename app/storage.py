"""Per-profile key/value storage used to park state across redirects."""

from __future__ import annotations

import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .db_models import StorageEntry

logger = logging.getLogger(__name__)


def preauth_key(receiver_id: str) -> str:
    """Return the storage key holding a receiver's pending authorization."""

    return f"preauth:{receiver_id}"


class ProfileStorage:
    """Key/value entries belonging to a single browser profile."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        profile_id: str,
    ) -> None:
        self._session_factory = session_factory
        self._profile_id = profile_id

    @property
    def profile_id(self) -> str:
        return self._profile_id

    async def get(self, key: str) -> str | None:
        async with self._session_factory() as session:
            entry = await self._load(session, key)
            return entry.value if entry is not None else None

    async def set(self, key: str, value: str) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                entry = await self._load(session, key)
                if entry is None:
                    session.add(
                        StorageEntry(profile_id=self._profile_id, key=key, value=value)
                    )
                else:
                    entry.value = value

    async def remove(self, key: str) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                await session.execute(
                    delete(StorageEntry).where(
                        StorageEntry.profile_id == self._profile_id,
                        StorageEntry.key == key,
                    )
                )

    async def claim(self, key: str) -> str | None:
        """Read and remove ``key`` in one transaction.

        Only one caller observes the value; later claims return ``None``.
        """

        async with self._session_factory() as session:
            async with session.begin():
                entry = await self._load(session, key)
                if entry is None:
                    return None
                value = entry.value
                result = await session.execute(
                    delete(StorageEntry).where(StorageEntry.id == entry.id)
                )
                if result.rowcount == 0:
                    logger.info("Storage key %s was claimed concurrently", key)
                    return None
                return value

    async def _load(self, session: AsyncSession, key: str) -> StorageEntry | None:
        result = await session.execute(
            select(StorageEntry).where(
                StorageEntry.profile_id == self._profile_id,
                StorageEntry.key == key,
            )
        )
        return result.scalar_one_or_none()
