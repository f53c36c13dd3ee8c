from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Tuple

from app.services.chat.morphology import generate_word_forms, tokenize

BANNED_WORDS: Tuple[str, ...] = (
    # Explicit content
    "порнография",
    "наркотики",
    "porn",
    "drugs",
    # Insults
    "идиот",
    "дебил",
    "урод",
    "idiot",
    "moron",
    "stupid",
    # Spam and scams
    "казино",
    "ставки на спорт",
    "быстрый заработок",
    "casino",
    "free money",
    # Illegal activities
    "угон",
    "перебить вин",
    "скрутить пробег",
    "stolen car",
    # Prompt injection
    "ignore previous instructions",
    "ignore all previous instructions",
    "forget all instructions",
    "system prompt",
    "забудь все инструкции",
    "игнорируй предыдущие инструкции",
    "системный промпт",
)

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class BannedWordCheck:
    has_banned: bool
    found: Tuple[str, ...] = ()


class BannedWordMatcher:
    """Single words match any inflected form as a whole token; phrases match as substrings."""

    def __init__(self, words: Iterable[str] = BANNED_WORDS):
        self._single: Dict[str, FrozenSet[str]] = {}
        self._phrases: List[str] = []
        for word in words:
            normalized = _WHITESPACE_RE.sub(" ", word.lower()).strip()
            if not normalized:
                continue
            if " " in normalized:
                self._phrases.append(normalized)
            else:
                self._single[word] = generate_word_forms(normalized)

    def check(self, text: str) -> BannedWordCheck:
        if not text:
            return BannedWordCheck(has_banned=False)
        tokens = set(tokenize(text))
        normalized = " ".join(tokenize(text))
        found = [word for word, forms in self._single.items() if tokens & forms]
        found.extend(phrase for phrase in self._phrases if phrase in normalized)
        return BannedWordCheck(has_banned=bool(found), found=tuple(found))


_default_matcher = BannedWordMatcher()


def contains_banned_words(text: str) -> BannedWordCheck:
    return _default_matcher.check(text)
