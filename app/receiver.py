"""The SIMKL receiver and its persisted user configuration."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .db_models import ReceiverSettings
from .models import SIMKL_RECEIVER_ID, SimklUserSettings
from .utils import deep_merge

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ReceiverInfo:
    id: str
    name: str


class SimklReceiver:
    """Identity and configuration store of the SIMKL integration."""

    receiver_info = ReceiverInfo(id=SIMKL_RECEIVER_ID, name="SIMKL")

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        profile_id: str,
    ) -> None:
        self._session_factory = session_factory
        self._profile_id = profile_id

    async def get_user_config(self) -> SimklUserSettings:
        """Return the stored configuration, or an empty one."""

        async with self._session_factory() as session:
            record = await self._load(session)
            raw = dict(record.settings or {}) if record is not None else {}
        return SimklUserSettings.model_validate(raw)

    async def merge_user_config(self, update: Mapping[str, Any]) -> SimklUserSettings:
        """Merge ``update`` into the stored configuration and persist it."""

        async with self._session_factory() as session:
            async with session.begin():
                record = await self._load(session)
                current = dict(record.settings or {}) if record is not None else {}
                merged = deep_merge(current, update)
                validated = SimklUserSettings.model_validate(merged)
                payload = validated.model_dump(mode="json", exclude_none=True)
                if record is None:
                    session.add(
                        ReceiverSettings(
                            profile_id=self._profile_id,
                            receiver_id=self.receiver_info.id,
                            settings=payload,
                        )
                    )
                else:
                    record.settings = payload
        logger.info(
            "Updated %s settings for profile %s (keys: %s)",
            self.receiver_info.name,
            self._profile_id,
            ", ".join(sorted(update)) or "-",
        )
        return validated

    async def _load(self, session: AsyncSession) -> ReceiverSettings | None:
        result = await session.execute(
            select(ReceiverSettings).where(
                ReceiverSettings.profile_id == self._profile_id,
                ReceiverSettings.receiver_id == self.receiver_info.id,
            )
        )
        return result.scalar_one_or_none()
