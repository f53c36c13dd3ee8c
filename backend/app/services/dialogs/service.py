from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.logging import get_logger
from app.models.chat import AppUser, Dialog, Message, MessageRole, ModerationStatus, ProviderLogKind, ProviderLog

logger = get_logger(__name__)

_AUDIT_CONTENT_CHARS = 500


class DialogService:
    """One dialog per user, its messages, and the provider audit log."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_or_create_user(self, user_id: str) -> AppUser:
        user = await self.db.get(AppUser, user_id)
        if user:
            return user
        user = AppUser(id=user_id, language=settings.DEFAULT_LANGUAGE)
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        return user

    async def get_user_language(self, user_id: str) -> str:
        user = await self.db.get(AppUser, user_id)
        return (user.language if user and user.language else settings.DEFAULT_LANGUAGE).upper()

    async def get_or_create_dialog(self, user_id: str) -> Dialog:
        result = await self.db.execute(select(Dialog).where(Dialog.user_id == user_id))
        dialog = result.scalar_one_or_none()
        if dialog:
            return dialog

        await self.get_or_create_user(user_id)
        dialog = Dialog(user_id=user_id)
        self.db.add(dialog)
        await self.db.commit()
        await self.db.refresh(dialog)
        logger.info("Created dialog %s for user %s", dialog.id, user_id)
        return dialog

    async def get_history(self, dialog_id: Any, limit: int) -> List[Message]:
        """Most recent ``limit`` visible user/assistant messages, oldest first."""
        stmt = (
            select(Message)
            .where(
                Message.dialog_id == dialog_id,
                Message.moderation_status == ModerationStatus.OK.value,
                Message.role.in_([MessageRole.USER.value, MessageRole.ASSISTANT.value]),
            )
            .order_by(Message.created_at.desc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(reversed(result.scalars().all()))

    async def create_message(
        self,
        *,
        dialog_id: Any,
        role: MessageRole,
        content: str,
        moderation_status: ModerationStatus = ModerationStatus.OK,
        blocked_reason: Optional[str] = None,
    ) -> Message:
        message = Message(
            dialog_id=dialog_id,
            role=role.value,
            content=content,
            moderation_status=moderation_status.value,
            blocked_reason=blocked_reason,
        )
        self.db.add(message)
        await self.db.commit()
        await self.db.refresh(message)
        return message

    async def log_provider_request(
        self,
        *,
        kind: ProviderLogKind,
        user_id: Optional[str],
        dialog_id: Any,
        request: Dict[str, Any],
        response: Dict[str, Any],
        status: str,
        latency_ms: Optional[int] = None,
    ) -> None:
        """Audit rows are best effort; a failed insert is logged, not raised."""
        entry = ProviderLog(
            kind=kind.value,
            user_id=user_id,
            dialog_id=dialog_id,
            request=_truncate_content(request),
            response=_truncate_content(response),
            status=status,
            latency_ms=latency_ms,
        )
        try:
            self.db.add(entry)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to write provider log ({kind.value}): {e}")


def _truncate_content(payload: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(payload or {})
    content = out.get("content")
    if isinstance(content, str) and len(content) > _AUDIT_CONTENT_CHARS:
        out["content"] = content[:_AUDIT_CONTENT_CHARS]
    return out
