from __future__ import annotations

import re
from dataclasses import dataclass
from typing import FrozenSet, List, Sequence, Tuple

_SEPARATOR_RE = re.compile(r"[^а-яёa-z0-9]+")
_LATIN_RE = re.compile(r"^[a-z0-9]+$", re.IGNORECASE)
_CYRILLIC_RE = re.compile(r"[а-яё]", re.IGNORECASE)

CYRILLIC_VOWELS = "аеёиоуыэюя"
ABBREVIATION_MAX_LEN = 3

# Case endings per declension class: accusative, locative/dative, instrumental, genitive.
_HARD_FEMININE_ENDINGS = ("у", "е", "ой", "ы")
_SOFT_FEMININE_ENDINGS = ("ю", "е", "ей", "и")
# Genitive, dative, locative, instrumental, plural, genitive plural.
_MASCULINE_ENDINGS = ("а", "у", "е", "ом", "ы", "ов")


def tokenize(text: str) -> List[str]:
    """Lower-case the text and split it on anything that is not a letter or digit."""
    if not text:
        return []
    return [token for token in _SEPARATOR_RE.split(text.lower()) if token]


def generate_word_forms(word: str) -> FrozenSet[str]:
    """Return the surface forms a root can take in running Russian text.

    Latin tokens, vowel-ending indeclinables (``купе``, ``рено``) and short
    consonant abbreviations (``бмв``, ``ваз``) only match themselves.
    """
    word = (word or "").lower()
    if not word:
        return frozenset()
    if _LATIN_RE.match(word):
        return frozenset({word})

    last = word[-1]
    stem = word[:-1]
    if last == "а":
        return frozenset({word, *(stem + ending for ending in _HARD_FEMININE_ENDINGS)})
    if last == "я":
        return frozenset({word, *(stem + ending for ending in _SOFT_FEMININE_ENDINGS)})
    if last in CYRILLIC_VOWELS:
        return frozenset({word})
    if _CYRILLIC_RE.search(word) and len(word) > ABBREVIATION_MAX_LEN:
        return frozenset({word, *(word + ending for ending in _MASCULINE_ENDINGS)})
    return frozenset({word})


@dataclass(frozen=True)
class MultiWordPattern:
    word_sets: Tuple[FrozenSet[str], ...]
    value: str

    @property
    def length(self) -> int:
        return len(self.word_sets)


def split_phrase(phrase: str) -> List[str]:
    return [part for part in re.split(r"[\s\-]+", phrase.lower()) if part]


def matches_sequence(tokens: Sequence[str], pattern: MultiWordPattern) -> bool:
    """True when some window of consecutive tokens fits the pattern position by position."""
    size = pattern.length
    if size == 0 or len(tokens) < size:
        return False
    for start in range(len(tokens) - size + 1):
        if all(tokens[start + offset] in forms for offset, forms in enumerate(pattern.word_sets)):
            return True
    return False
