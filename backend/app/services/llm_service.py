from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Sequence

from openai import APIError, AsyncOpenAI

from app.core.config import settings
from app.core.exceptions import LLMServiceError
from app.core.logging import get_logger
from app.models.chat import MessageRole, ModerationStatus

logger = get_logger(__name__)

_ROLE_MAP = {
    MessageRole.USER.value: "user",
    MessageRole.ASSISTANT.value: "assistant",
}


def _enum_value(value: Any) -> str:
    return str(getattr(value, "value", value) or "")


class LLMService:
    """Streaming chat completions against an OpenAI-compatible endpoint (DeepSeek)."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model or settings.DEEPSEEK_MODEL
        self.client = client or AsyncOpenAI(
            api_key=api_key if api_key is not None else settings.DEEPSEEK_API_KEY,
            base_url=base_url or settings.DEEPSEEK_API_URL,
            timeout=timeout or settings.LLM_TIMEOUT_SECONDS,
        )

    async def aclose(self) -> None:
        await self.client.close()

    @staticmethod
    def build_messages(
        system_prompt: str,
        history: Sequence[Any],
        user_message: str,
        history_limit: Optional[int] = None,
    ) -> List[Dict[str, str]]:
        """System prompt, the last ``history_limit`` visible turns, then the new user message.

        Blocked messages and system rows never go back to the model.
        """
        limit = settings.CHAT_HISTORY_LIMIT if history_limit is None else history_limit
        turns: List[Dict[str, str]] = []
        for entry in history:
            role = _enum_value(getattr(entry, "role", ""))
            status = _enum_value(getattr(entry, "moderation_status", ModerationStatus.OK))
            content = getattr(entry, "content", None)
            if role not in _ROLE_MAP or status == ModerationStatus.BLOCKED.value or not content:
                continue
            turns.append({"role": _ROLE_MAP[role], "content": content})
        if limit >= 0:
            turns = turns[-limit:] if limit else []

        return [
            {"role": "system", "content": system_prompt},
            *turns,
            {"role": "user", "content": user_message},
        ]

    async def stream_chat(
        self,
        messages: Sequence[Mapping[str, str]],
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        """Yield content deltas as they arrive; closing the generator closes the upstream stream."""
        try:
            stream = await self.client.chat.completions.create(
                model=self.model,
                messages=list(messages),
                temperature=settings.LLM_TEMPERATURE if temperature is None else temperature,
                max_tokens=max_tokens or settings.LLM_MAX_TOKENS,
                stream=True,
            )
        except APIError as e:
            logger.error(f"Error opening chat stream: {e}")
            raise LLMServiceError(str(e)) from e

        try:
            async for chunk in stream:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield content
        except APIError as e:
            logger.error(f"Chat stream interrupted: {e}")
            raise LLMServiceError(str(e)) from e
        finally:
            await stream.close()
