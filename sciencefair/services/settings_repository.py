"""
sciencefair/services/settings_repository.py
Typed access to the durable key-value settings store.

Callers address role snapshots by (edition_id, level) and the completion
flag by edition_id; the key strings stored in the settings table are
built here and nowhere else.
"""
import json
import logging
from typing import Dict, List, Optional

from pydantic import BaseModel, ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sciencefair.exceptions import SnapshotCorruptError, StorageError
from sciencefair.orm.competition import CompetitionLevel
from sciencefair.orm.setting import Setting

logger = logging.getLogger(__name__)


class RoleSnapshotEntry(BaseModel):
    """One user's role state captured right before a publish."""
    roles: List[str]
    current_role: str
    coordinated_category: Optional[str] = None


def role_snapshot_key(edition_id: int, level) -> str:
    return f"role_snapshot_{edition_id}_{CompetitionLevel(level).value}"


def edition_completed_key(edition_id: int) -> str:
    return f"edition_completed_{edition_id}"


class SettingsRepository:
    """
    Generic string settings store backed by the settings table.

    Writes are flushed, not committed; the caller owns the transaction.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_setting(self, key: str) -> Optional[str]:
        try:
            result = await self.db.execute(select(Setting).where(Setting.key == key))
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read setting {key}: {e}")
        setting = result.scalar_one_or_none()
        return setting.value if setting else None

    async def set_setting(self, key: str, value: Optional[str]) -> None:
        """Store a value; None removes the key."""
        try:
            result = await self.db.execute(select(Setting).where(Setting.key == key))
            setting = result.scalar_one_or_none()
            if value is None:
                if setting is not None:
                    await self.db.delete(setting)
            else:
                if setting is None:
                    self.db.add(Setting(key=key, value=value))
                else:
                    setting.value = value
            await self.db.flush()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to write setting {key}: {e}")


class RoleSnapshotRepository:
    """Role snapshots keyed by (edition, level)."""

    def __init__(self, settings: SettingsRepository):
        self.settings = settings

    async def save(
        self,
        edition_id: int,
        level,
        snapshot: Dict[int, RoleSnapshotEntry]
    ) -> None:
        """
        Merge entries into the stored snapshot for the level.

        Publishes of one level happen area by area, so a user already
        captured by an earlier publish keeps that earlier entry.
        """
        try:
            merged = await self.load(edition_id, level) or {}
        except SnapshotCorruptError as e:
            logger.warning(f"Replacing unreadable role snapshot: {e}")
            merged = {}
        for user_id, entry in snapshot.items():
            merged.setdefault(user_id, entry)

        payload = {str(user_id): entry.model_dump() for user_id, entry in merged.items()}
        await self.settings.set_setting(
            role_snapshot_key(edition_id, level),
            json.dumps(payload, sort_keys=True)
        )
        logger.info(f"Saved role snapshot for {len(merged)} users (edition {edition_id}, {CompetitionLevel(level).value})")

    async def load(self, edition_id: int, level) -> Optional[Dict[int, RoleSnapshotEntry]]:
        """
        Return the stored snapshot, or None when there is none.

        Raises:
            SnapshotCorruptError: Stored value is not a valid snapshot
        """
        raw = await self.settings.get_setting(role_snapshot_key(edition_id, level))
        if not raw:
            return None
        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("snapshot is not an object")
            return {
                int(user_id): RoleSnapshotEntry.model_validate(entry)
                for user_id, entry in data.items()
            }
        except (ValueError, TypeError, ValidationError) as e:
            raise SnapshotCorruptError(f"Role snapshot for edition {edition_id} could not be parsed: {e}")

    async def delete(self, edition_id: int, level) -> None:
        await self.settings.set_setting(role_snapshot_key(edition_id, level), None)


class EditionStatusRepository:
    """Durable per-edition completion flag."""

    def __init__(self, settings: SettingsRepository):
        self.settings = settings

    async def mark_completed(self, edition_id: int) -> None:
        await self.settings.set_setting(edition_completed_key(edition_id), "true")

    async def clear_completed(self, edition_id: int) -> None:
        await self.settings.set_setting(edition_completed_key(edition_id), None)

    async def is_completed(self, edition_id: int) -> bool:
        return await self.settings.get_setting(edition_completed_key(edition_id)) == "true"
