from typing import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import AsyncSessionLocal
from app.services.catalog.car_search import CatalogCarSearchService
from app.services.chat.service import ChatService
from app.services.dialogs.service import DialogService
from app.services.llm_service import LLMService
from app.services.moderation.service import ModerationService
from app.services.preferences.store import PreferenceStore


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for database session."""
    async with AsyncSessionLocal() as session:
        yield session


def build_chat_service(db: AsyncSession, llm: LLMService, moderation: ModerationService) -> ChatService:
    """Wire the per-connection collaborators around the process-wide LLM client and moderation state."""
    dialogs = DialogService(db)
    return ChatService(
        llm=llm,
        catalog=CatalogCarSearchService(db),
        moderation=moderation,
        dialogs=dialogs,
        preference_store=PreferenceStore(db),
        language_resolver=dialogs.get_user_language,
    )


async def get_catalog_service(db: AsyncSession = Depends(get_db)) -> CatalogCarSearchService:
    return CatalogCarSearchService(db)
