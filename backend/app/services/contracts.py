from __future__ import annotations

from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Protocol, Sequence

from app.models.chat import Dialog, Message, MessageRole, ModerationStatus, ProviderLogKind
from app.schemas.chat import CarContextItem, CarModelGroup, UserPreferences
from app.schemas.moderation import ModerationResult
from app.services.catalog.car_search import CarSearchFilters


class CatalogSearch(Protocol):
    async def search_cars(
        self,
        filters: CarSearchFilters,
        limit: int = 50,
        offset: int = 0,
    ) -> List[CarModelGroup]:
        ...

    async def search_for_context(
        self,
        filters: CarSearchFilters,
        keywords: Optional[Sequence[str]] = None,
        limit: int = 10,
    ) -> List[CarContextItem]:
        ...

    def normalize_brand(self, name: str) -> str:
        ...


class ChatCompletionStreamer(Protocol):
    def stream_chat(
        self,
        messages: Sequence[Mapping[str, str]],
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        ...


class ModerationGateway(Protocol):
    async def check_user_input(self, user_id: str, content: str) -> ModerationResult:
        ...

    async def check_ai_response(self, content: str) -> ModerationResult:
        ...


class PreferenceRepository(Protocol):
    async def load(self, user_id: str) -> UserPreferences:
        ...

    async def save(self, user_id: str, prefs: UserPreferences) -> None:
        ...


class DialogRepository(Protocol):
    async def get_or_create_dialog(self, user_id: str) -> Dialog:
        ...

    async def get_history(self, dialog_id: Any, limit: int) -> List[Message]:
        ...

    async def create_message(
        self,
        *,
        dialog_id: Any,
        role: MessageRole,
        content: str,
        moderation_status: ModerationStatus = ModerationStatus.OK,
        blocked_reason: Optional[str] = None,
    ) -> Message:
        ...

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
        ...
