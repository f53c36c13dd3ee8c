from __future__ import annotations

import asyncio
import time
from contextlib import aclosing
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional, Union

from app.core.config import settings
from app.core.exceptions import AppError, BadRequestError, LLMServiceError
from app.core.logging import get_logger
from app.models.chat import MessageRole, ModerationStatus, ProviderLogKind
from app.prompts.system_prompts import fallback_message, get_system_prompt
from app.schemas.chat import AssistantDelta, AssistantDone, ChatError, UserPreferences
from app.schemas.moderation import ModerationResult
from app.services.contracts import (
    CatalogSearch,
    ChatCompletionStreamer,
    DialogRepository,
    ModerationGateway,
    PreferenceRepository,
)
from app.services.llm_service import LLMService
from app.services.chat.preference_parser import (
    PreferenceParser,
    merge_preferences,
    parse_preferences_block,
)
from app.services.chat.rag_context import RagContextBuilder, RagContextResult, render_context
from app.services.chat.stream_filter import StreamResponseFilter

logger = get_logger(__name__)

ChatEvent = Union[AssistantDelta, AssistantDone, ChatError]
LanguageResolver = Callable[[str], Awaitable[str]]


class ChatService:
    """One conversation turn: moderation -> preferences -> retrieval -> streamed answer.

    ``stream_turn`` yields zero or more ``AssistantDelta`` events and then
    exactly one terminal event, ``AssistantDone`` or ``ChatError``.
    """

    def __init__(
        self,
        llm: ChatCompletionStreamer,
        catalog: CatalogSearch,
        moderation: ModerationGateway,
        dialogs: DialogRepository,
        preference_store: PreferenceRepository,
        language_resolver: Optional[LanguageResolver] = None,
        *,
        history_limit: Optional[int] = None,
        max_message_length: Optional[int] = None,
        filter_factory: Callable[[], StreamResponseFilter] = StreamResponseFilter,
    ):
        self.llm = llm
        self.catalog = catalog
        self.moderation = moderation
        self.dialogs = dialogs
        self.preference_store = preference_store
        self.language_resolver = language_resolver
        self.history_limit = settings.CHAT_HISTORY_LIMIT if history_limit is None else history_limit
        self.max_message_length = (
            settings.MAX_MESSAGE_LENGTH if max_message_length is None else max_message_length
        )
        self.filter_factory = filter_factory
        self.rag = RagContextBuilder(catalog)

    async def stream_turn(
        self,
        user_id: str,
        text: str,
        language: Optional[str] = None,
    ) -> AsyncIterator[ChatEvent]:
        try:
            async with aclosing(self._run_turn(user_id, text, language)) as events:
                async for event in events:
                    yield event
        except asyncio.CancelledError:
            logger.info("Turn cancelled for user %s", user_id)
            raise
        except AppError as exc:
            logger.warning("Turn failed for user %s (%s): %s", user_id, exc.code, exc)
            yield ChatError(code=exc.code, message=str(exc) or exc.code)
        except Exception:
            logger.exception("Unexpected error while processing turn for user %s", user_id)
            yield ChatError(code="INTERNAL_ERROR", message="Internal server error")

    def _validate_text(self, text: Optional[str]) -> str:
        cleaned = (text or "").strip()
        if not cleaned:
            raise BadRequestError("Message text is required")
        if len(cleaned) > self.max_message_length:
            raise BadRequestError(f"Message exceeds maximum length of {self.max_message_length} characters")
        return cleaned

    async def _resolve_language(self, user_id: str, language: Optional[str]) -> str:
        if language:
            return language.upper()
        if self.language_resolver is not None:
            return (await self.language_resolver(user_id) or settings.DEFAULT_LANGUAGE).upper()
        return settings.DEFAULT_LANGUAGE.upper()

    async def _update_preferences(
        self,
        user_id: str,
        current: UserPreferences,
        incoming: UserPreferences,
    ) -> UserPreferences:
        merged = merge_preferences(current, incoming)
        if merged != current:
            await self.preference_store.save(user_id, merged)
        return merged

    async def _run_turn(
        self,
        user_id: str,
        text: Optional[str],
        language: Optional[str],
    ) -> AsyncIterator[ChatEvent]:
        text = self._validate_text(text)
        language = await self._resolve_language(user_id, language)

        dialog = await self.dialogs.get_or_create_dialog(user_id)
        history = await self.dialogs.get_history(dialog.id, self.history_limit)

        verdict = await self.moderation.check_user_input(user_id, text)
        if verdict.blocked:
            await self.dialogs.create_message(
                dialog_id=dialog.id,
                role=MessageRole.USER,
                content=text,
                moderation_status=ModerationStatus.BLOCKED,
                blocked_reason=verdict.reason,
            )
            await self._audit_moderation(user_id, dialog.id, "user_input", text, verdict)
            yield ChatError(code="MODERATION_BLOCKED", message=verdict.reason or "Message blocked by moderation")
            return

        await self.dialogs.create_message(dialog_id=dialog.id, role=MessageRole.USER, content=text)

        parsed = PreferenceParser.parse(text)
        keywords = PreferenceParser.extract_keywords(text)
        saved = await self.preference_store.load(user_id)
        preferences = await self._update_preferences(user_id, saved, parsed)

        rag = await self.rag.build(preferences, keywords)
        system_prompt = get_system_prompt(language, render_context(rag, language))
        messages = LLMService.build_messages(system_prompt, history, text, self.history_limit)

        stream_filter = self.filter_factory()
        started = time.perf_counter()
        try:
            async with aclosing(self.llm.stream_chat(messages)) as fragments:
                async for fragment in fragments:
                    visible = stream_filter.feed(fragment)
                    if visible:
                        yield AssistantDelta(text=visible)
                    if stream_filter.rejected:
                        break
        except LLMServiceError as exc:
            await self._audit_llm(user_id, dialog.id, messages, rag, stream_filter.full_text, "FAILED", started, str(exc))
            yield ChatError(code=exc.code, message="AI service error")
            return

        tail = stream_filter.flush()
        if tail:
            yield AssistantDelta(text=tail)

        if stream_filter.rejected:
            final_text = fallback_message(language)
            await self.dialogs.create_message(dialog_id=dialog.id, role=MessageRole.ASSISTANT, content=final_text)
            await self._audit_llm(user_id, dialog.id, messages, rag, stream_filter.full_text, "REJECTED", started)
            yield self._done(final_text, preferences, rag, rejected=True)
            return

        declared = parse_preferences_block(stream_filter.full_text)
        if not declared.is_empty():
            preferences = await self._update_preferences(user_id, preferences, declared)

        clean_text = stream_filter.emitted_text.strip()
        blocked = False
        post_verdict = await self.moderation.check_ai_response(clean_text) if clean_text else ModerationResult()
        if post_verdict.blocked:
            blocked = True
            await self.dialogs.create_message(
                dialog_id=dialog.id,
                role=MessageRole.ASSISTANT,
                content=clean_text,
                moderation_status=ModerationStatus.BLOCKED,
                blocked_reason=post_verdict.reason,
            )
            await self._audit_moderation(user_id, dialog.id, "ai_response", clean_text, post_verdict)
            final_text = fallback_message(language)
        else:
            final_text = clean_text or fallback_message(language)
        await self.dialogs.create_message(dialog_id=dialog.id, role=MessageRole.ASSISTANT, content=final_text)

        await self._audit_llm(user_id, dialog.id, messages, rag, stream_filter.full_text, "SUCCESS", started)
        yield self._done(final_text, preferences, rag, blocked=blocked)

    @staticmethod
    def _done(
        final_text: str,
        preferences: UserPreferences,
        rag: RagContextResult,
        *,
        rejected: bool = False,
        blocked: bool = False,
    ) -> AssistantDone:
        return AssistantDone(
            final_text=final_text,
            preferences=preferences,
            search_status=rag.status,
            search_results=list(rag.items),
            rejected=rejected,
            blocked=blocked,
        )

    async def _audit_llm(
        self,
        user_id: str,
        dialog_id: Any,
        messages: Any,
        rag: RagContextResult,
        full_text: str,
        status: str,
        started: float,
        error: Optional[str] = None,
    ) -> None:
        response: Dict[str, Any] = {"content": full_text}
        if error:
            response["error"] = error
        await self.dialogs.log_provider_request(
            kind=ProviderLogKind.LLM,
            user_id=user_id,
            dialog_id=dialog_id,
            request={
                "messages": len(messages),
                "search_status": rag.status.value,
                "search_results": len(rag.items),
            },
            response=response,
            status=status,
            latency_ms=int((time.perf_counter() - started) * 1000),
        )

    async def _audit_moderation(
        self,
        user_id: str,
        dialog_id: Any,
        kind: str,
        content: str,
        verdict: ModerationResult,
    ) -> None:
        await self.dialogs.log_provider_request(
            kind=ProviderLogKind.MODERATION,
            user_id=user_id,
            dialog_id=dialog_id,
            request={"kind": kind, "content": content},
            response={"status": verdict.status, "reason": verdict.reason, "blocked_words": verdict.blocked_words},
            status="FAILED" if verdict.blocked else "SUCCESS",
            latency_ms=0,
        )
