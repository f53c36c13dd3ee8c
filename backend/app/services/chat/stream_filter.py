from __future__ import annotations

import enum
from typing import List, Optional, Sequence

from app.core.config import settings
from app.core.logging import get_logger
from app.services.chat.preference_parser import (
    PREFERENCES_CLOSE_TAG,
    PREFERENCES_OPEN_TAG,
    strip_preferences_block,
)

logger = get_logger(__name__)


class StreamState(str, enum.Enum):
    STREAMING = "streaming"
    INSIDE_HIDDEN_BLOCK = "inside_hidden_block"
    REJECTED = "rejected"
    FINISHED = "finished"


class StreamResponseFilter:
    """Forward model prose while hiding the preferences block and watching for refusals.

    ``feed`` returns the text that is safe to show for each incoming
    fragment; ``flush`` releases whatever is still held back once the
    upstream stream ends. In ``STREAMING`` only a short tail is held back,
    long enough that an opening tag or a refusal phrase can never be split
    across two emissions. Inside the hidden block nothing is emitted and only
    enough characters are kept to recognise a closing tag split across
    fragments.

    A refusal phrase anywhere in the raw stream moves the filter into the
    terminal ``REJECTED`` state: held text is dropped and every later call
    returns an empty string.
    """

    def __init__(
        self,
        rejection_phrases: Optional[Sequence[str]] = None,
        holdback_chars: Optional[int] = None,
        open_tag: str = PREFERENCES_OPEN_TAG,
        close_tag: str = PREFERENCES_CLOSE_TAG,
    ):
        if not open_tag or not close_tag:
            raise ValueError("open_tag and close_tag must be non-empty")
        phrases = settings.STREAM_REJECTION_PHRASES if rejection_phrases is None else rejection_phrases
        self._phrases = tuple(p.lower() for p in phrases if p)
        longest = max((len(p) for p in self._phrases), default=0)
        holdback = settings.STREAM_HOLDBACK_CHARS if holdback_chars is None else holdback_chars

        self.open_tag = open_tag
        self.close_tag = close_tag
        self.holdback = max(holdback, len(open_tag) - 1, longest)
        self._watch_size = max(longest - 1, 0)

        self._state = StreamState.STREAMING
        self._rejected = False
        self._buffer = ""
        self._raw_tail = ""
        self._raw: List[str] = []
        self._emitted: List[str] = []

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def rejected(self) -> bool:
        return self._rejected

    @property
    def full_text(self) -> str:
        return "".join(self._raw)

    @property
    def emitted_text(self) -> str:
        return "".join(self._emitted)

    def feed(self, fragment: str) -> str:
        if not fragment or self._state in (StreamState.REJECTED, StreamState.FINISHED):
            return ""

        self._raw.append(fragment)
        if self._contains_rejection(fragment):
            logger.warning("Upstream refusal detected in stream; suppressing the rest of the response")
            self._state = StreamState.REJECTED
            self._rejected = True
            self._buffer = ""
            self._raw_tail = ""
            return ""

        self._buffer += fragment
        return self._record(self._drain())

    def flush(self) -> str:
        if self._state == StreamState.FINISHED:
            return ""

        out = ""
        if self._state == StreamState.STREAMING:
            out = strip_preferences_block(self._buffer)
        elif self._state == StreamState.INSIDE_HIDDEN_BLOCK:
            logger.warning("Stream ended inside an unterminated preferences block; hidden text dropped")

        self._buffer = ""
        self._state = StreamState.FINISHED
        return self._record(out)

    def _record(self, text: str) -> str:
        if text:
            self._emitted.append(text)
        return text

    def _contains_rejection(self, fragment: str) -> bool:
        if not self._phrases:
            return False
        window = self._raw_tail + fragment
        self._raw_tail = window[-self._watch_size:] if self._watch_size else ""
        lowered = window.lower()
        return any(phrase in lowered for phrase in self._phrases)

    def _drain(self) -> str:
        out: List[str] = []
        while True:
            if self._state == StreamState.STREAMING:
                idx = self._buffer.find(self.open_tag)
                if idx >= 0:
                    out.append(self._buffer[:idx])
                    self._buffer = self._buffer[idx + len(self.open_tag):]
                    self._state = StreamState.INSIDE_HIDDEN_BLOCK
                    continue
                safe = len(self._buffer) - self.holdback
                if safe > 0:
                    out.append(self._buffer[:safe])
                    self._buffer = self._buffer[safe:]
                break

            idx = self._buffer.find(self.close_tag)
            if idx >= 0:
                self._buffer = self._buffer[idx + len(self.close_tag):]
                self._state = StreamState.STREAMING
                continue
            keep = len(self.close_tag) - 1
            if len(self._buffer) > keep:
                self._buffer = self._buffer[len(self._buffer) - keep:]
            break
        return "".join(out)
