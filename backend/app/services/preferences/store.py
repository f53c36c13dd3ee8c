from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.models.chat import AppUser
from app.schemas.chat import UserPreferences

logger = get_logger(__name__)


class PreferenceStore:
    """Saved preference baseline on ``app_user.preferences``; last writer wins."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def load(self, user_id: str) -> UserPreferences:
        user = await self.db.get(AppUser, user_id)
        if not user or not user.preferences:
            return UserPreferences()
        return UserPreferences.from_untrusted(user.preferences)

    async def save(self, user_id: str, prefs: UserPreferences) -> None:
        await self.db.execute(
            update(AppUser).where(AppUser.id == user_id).values(preferences=prefs.to_store())
        )
        await self.db.commit()
        logger.debug("Saved preferences for user %s: %s", user_id, sorted(prefs.to_store()))
