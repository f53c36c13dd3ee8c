from __future__ import annotations

from contextlib import aclosing
from types import SimpleNamespace
from typing import List, Optional

import httpx
import pytest
from openai import APIConnectionError

from app.core.exceptions import LLMServiceError
from app.models.chat import MessageRole, ModerationStatus
from app.services.llm_service import LLMService


def _chunk(content: Optional[str]) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


def _connection_error() -> APIConnectionError:
    return APIConnectionError(request=httpx.Request("POST", "https://api.deepseek.com/v1/chat/completions"))


class _FakeStream:
    def __init__(self, chunks, error: Optional[Exception] = None):
        self._chunks = list(chunks)
        self._error = error
        self.closed = False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for chunk in self._chunks:
            yield chunk
        if self._error is not None:
            raise self._error

    async def close(self) -> None:
        self.closed = True


class _FakeCompletions:
    def __init__(self, stream: Optional[_FakeStream] = None, error: Optional[Exception] = None):
        self.stream = stream
        self.error = error
        self.calls: List[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.stream


def _service(completions: _FakeCompletions) -> LLMService:
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return LLMService(model="deepseek-chat", client=client)


@pytest.mark.asyncio
async def test_stream_chat_yields_non_empty_deltas() -> None:
    stream = _FakeStream([_chunk("Привет"), _chunk(None), SimpleNamespace(choices=[]), _chunk(", мир")])
    completions = _FakeCompletions(stream=stream)

    fragments = [fragment async for fragment in _service(completions).stream_chat([{"role": "user", "content": "hi"}])]

    assert fragments == ["Привет", ", мир"]
    assert stream.closed
    call = completions.calls[0]
    assert call["stream"] is True
    assert call["model"] == "deepseek-chat"
    assert call["messages"] == [{"role": "user", "content": "hi"}]


@pytest.mark.asyncio
async def test_stream_chat_wraps_open_errors() -> None:
    service = _service(_FakeCompletions(error=_connection_error()))

    with pytest.raises(LLMServiceError):
        async for _ in service.stream_chat([]):
            pass


@pytest.mark.asyncio
async def test_stream_chat_wraps_mid_stream_errors_and_closes_stream() -> None:
    stream = _FakeStream([_chunk("Часть")], error=_connection_error())
    service = _service(_FakeCompletions(stream=stream))
    received: List[str] = []

    with pytest.raises(LLMServiceError):
        async for fragment in service.stream_chat([]):
            received.append(fragment)

    assert received == ["Часть"]
    assert stream.closed


@pytest.mark.asyncio
async def test_closing_consumer_early_closes_upstream_stream() -> None:
    stream = _FakeStream([_chunk("a"), _chunk("b"), _chunk("c")])
    service = _service(_FakeCompletions(stream=stream))

    async with aclosing(service.stream_chat([])) as fragments:
        async for fragment in fragments:
            assert fragment == "a"
            break

    assert stream.closed


def test_build_messages_filters_blocked_and_system_rows() -> None:
    history = [
        SimpleNamespace(role=MessageRole.USER.value, content="Хочу BMW", moderation_status=ModerationStatus.OK.value),
        SimpleNamespace(role=MessageRole.ASSISTANT, content="Вот варианты", moderation_status=ModerationStatus.OK),
        SimpleNamespace(role=MessageRole.USER.value, content="ты идиот", moderation_status=ModerationStatus.BLOCKED.value),
        SimpleNamespace(role=MessageRole.SYSTEM.value, content="internal note", moderation_status="OK"),
    ]

    messages = LLMService.build_messages("SYSTEM", history, "А подешевле?")

    assert messages == [
        {"role": "system", "content": "SYSTEM"},
        {"role": "user", "content": "Хочу BMW"},
        {"role": "assistant", "content": "Вот варианты"},
        {"role": "user", "content": "А подешевле?"},
    ]


def test_build_messages_keeps_only_most_recent_turns() -> None:
    history = [
        SimpleNamespace(role="USER" if i % 2 == 0 else "ASSISTANT", content=f"m{i}", moderation_status="OK")
        for i in range(6)
    ]

    messages = LLMService.build_messages("S", history, "now", history_limit=2)
    assert [m["content"] for m in messages] == ["S", "m4", "m5", "now"]

    assert [m["content"] for m in LLMService.build_messages("S", history, "now", history_limit=0)] == ["S", "now"]
