from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple, Union

from app.core.config import settings
from app.core.logging import get_logger
from app.schemas.chat import UserPreferences
from app.services.catalog.vocabulary import (
    BODY_TYPE_KEYWORDS,
    BRAND_ALIASES,
    KPP_KEYWORDS,
    LATIN_BRANDS,
    STOP_WORDS,
    sorted_by_length,
)
from app.services.chat.morphology import (
    MultiWordPattern,
    generate_word_forms,
    matches_sequence,
    split_phrase,
    tokenize,
)

logger = get_logger(__name__)

PREFERENCES_OPEN_TAG = "[PREFERENCES]"
PREFERENCES_CLOSE_TAG = "[/PREFERENCES]"
PREFERENCES_BLOCK_RE = re.compile(
    re.escape(PREFERENCES_OPEN_TAG) + r"(.*?)" + re.escape(PREFERENCES_CLOSE_TAG),
    re.DOTALL,
)

_YEAR_RE = re.compile(r"(?<!\d)(\d{4})(?!\d)")
_YEAR_FROM_CUE_RE = re.compile(r"(?:^|[^а-яёa-z])(?:от|с|после|новее|начиная|from|since|after)$")
_YEAR_TO_CUE_RE = re.compile(r"(?:^|[^а-яёa-z])(?:до|раньше|старше|until|before|older than)$")

_BUDGET_MILLIONS_RE = re.compile(r"(\d+(?:[.,]\d+)?)\s*млн", re.IGNORECASE)
# Plain digits, or digit groups separated by spaces: "1 500 000".
_AMOUNT = r"(?<!\d)(\d{1,3}(?:[ \u00a0]\d{3})+(?!\d)|\d+)"
_BUDGET_THOUSANDS_RE = re.compile(_AMOUNT + r"\s*(?:тыс|тысяч)", re.IGNORECASE)
_BUDGET_EXPLICIT_RE = re.compile(r"бюджет[:\s]*" + _AMOUNT, re.IGNORECASE)
_BUDGET_UP_TO_RE = re.compile(r"до\s*" + _AMOUNT + r"\s*(?:руб|₽)?", re.IGNORECASE)
_BUDGET_UP_TO_MIN_DIGITS = 6

PreferencesLike = Union[UserPreferences, Mapping[str, Any], None]


@dataclass(frozen=True)
class PreferenceLookups:
    """Form tables derived once from the static vocabularies."""

    cyrillic_brand_patterns: Tuple[MultiWordPattern, ...]
    cyrillic_brand_forms: Mapping[str, str]
    latin_brand_patterns: Tuple[MultiWordPattern, ...]
    latin_brand_forms: Mapping[str, str]
    body_type_forms: Mapping[str, str]
    kpp_forms: Mapping[str, str]
    known_forms: FrozenSet[str]


def _register_forms(table: Dict[str, str], roots: Mapping[str, str]) -> None:
    # Longest roots register first so the more specific concept owns a shared form.
    for root in sorted_by_length(list(roots)):
        for form in generate_word_forms(root):
            table.setdefault(form, roots[root])


def build_lookups() -> PreferenceLookups:
    cyrillic_multi = {alias: brand for alias, brand in BRAND_ALIASES.items() if len(split_phrase(alias)) > 1}
    cyrillic_single = {alias: brand for alias, brand in BRAND_ALIASES.items() if len(split_phrase(alias)) == 1}

    cyrillic_patterns = tuple(
        MultiWordPattern(
            word_sets=tuple(generate_word_forms(part) for part in split_phrase(alias)),
            value=cyrillic_multi[alias],
        )
        for alias in sorted_by_length(list(cyrillic_multi))
    )
    cyrillic_forms: Dict[str, str] = {}
    _register_forms(cyrillic_forms, cyrillic_single)

    latin_patterns = tuple(
        MultiWordPattern(
            word_sets=tuple(frozenset({part}) for part in split_phrase(brand)),
            value=brand,
        )
        for brand in sorted_by_length([b for b in LATIN_BRANDS if len(split_phrase(b)) > 1])
    )
    latin_forms: Dict[str, str] = {}
    for brand in LATIN_BRANDS:
        parts = split_phrase(brand)
        if len(parts) == 1:
            latin_forms.setdefault(parts[0], brand)

    body_forms: Dict[str, str] = {}
    _register_forms(body_forms, BODY_TYPE_KEYWORDS)
    kpp_forms: Dict[str, str] = {}
    _register_forms(kpp_forms, KPP_KEYWORDS)

    known = set(cyrillic_forms) | set(latin_forms) | set(body_forms) | set(kpp_forms)
    for pattern in cyrillic_patterns + latin_patterns:
        for forms in pattern.word_sets:
            known.update(forms)

    return PreferenceLookups(
        cyrillic_brand_patterns=cyrillic_patterns,
        cyrillic_brand_forms=cyrillic_forms,
        latin_brand_patterns=latin_patterns,
        latin_brand_forms=latin_forms,
        body_type_forms=body_forms,
        kpp_forms=kpp_forms,
        known_forms=frozenset(known),
    )


LOOKUPS = build_lookups()


def _first_token_match(tokens: List[str], table: Mapping[str, str]) -> Optional[str]:
    for token in tokens:
        value = table.get(token)
        if value is not None:
            return value
    return None


def _year_in_range(year: int) -> bool:
    return settings.PREFERENCE_YEAR_MIN <= year <= settings.PREFERENCE_YEAR_MAX


def _amount(group: str) -> int:
    return int(re.sub(r"\s", "", group))


def _find_budget(message: str) -> Optional[Tuple[int, Tuple[int, int]]]:
    """Budget in roubles and the span of the text it was read from."""
    amount: Optional[float] = None
    match = _BUDGET_MILLIONS_RE.search(message)
    if match:
        amount = float(match.group(1).replace(",", ".")) * 1_000_000
    else:
        match = _BUDGET_THOUSANDS_RE.search(message)
        if match:
            amount = _amount(match.group(1)) * 1_000
        else:
            match = _BUDGET_EXPLICIT_RE.search(message)
            if match is None:
                match = next(
                    (
                        m
                        for m in _BUDGET_UP_TO_RE.finditer(message)
                        if len(re.sub(r"\s", "", m.group(1))) >= _BUDGET_UP_TO_MIN_DIGITS
                    ),
                    None,
                )
            if match:
                amount = _amount(match.group(1))
    if amount is None or match is None:
        return None
    budget = int(round(amount))
    if budget <= 0:
        return None
    return budget, match.span(1)


class PreferenceParser:
    """Rule-based extraction of preference slots from one chat message."""

    @staticmethod
    def parse(message: str) -> UserPreferences:
        if not message:
            return UserPreferences()

        tokens = tokenize(message)
        slots: Dict[str, Any] = {}

        brand = PreferenceParser.extract_brand(tokens)
        if brand:
            slots["marka"] = brand

        body_type = _first_token_match(tokens, LOOKUPS.body_type_forms)
        if body_type:
            slots["bodyType"] = body_type

        budget_match = _find_budget(message)
        year_text = message
        if budget_match is not None:
            # Digits that belong to the amount are not years.
            start, end = budget_match[1]
            year_text = message[:start] + " " * (end - start) + message[end:]
        slots.update(PreferenceParser.extract_years(year_text))

        kpp = _first_token_match(tokens, LOOKUPS.kpp_forms)
        if kpp:
            slots["kpp"] = kpp

        if budget_match is not None:
            slots["budget"] = budget_match[0]

        return UserPreferences.from_untrusted(slots)

    @staticmethod
    def extract_brand(tokens: List[str]) -> Optional[str]:
        for pattern in LOOKUPS.cyrillic_brand_patterns:
            if matches_sequence(tokens, pattern):
                return pattern.value
        brand = _first_token_match(tokens, LOOKUPS.cyrillic_brand_forms)
        if brand:
            return brand
        for pattern in LOOKUPS.latin_brand_patterns:
            if matches_sequence(tokens, pattern):
                return pattern.value
        return _first_token_match(tokens, LOOKUPS.latin_brand_forms)

    @staticmethod
    def extract_years(message: str) -> Dict[str, int]:
        matches = [m for m in _YEAR_RE.finditer(message) if _year_in_range(int(m.group(1)))]
        if not matches:
            return {}
        if len(matches) >= 2:
            years = [int(m.group(1)) for m in matches]
            return {"yearFrom": min(years), "yearTo": max(years)}

        match = matches[0]
        year = int(match.group(1))
        preceding = message[: match.start()].lower().rstrip()
        if _YEAR_TO_CUE_RE.search(preceding):
            return {"yearTo": year}
        return {"yearFrom": year}

    @staticmethod
    def extract_budget(message: str) -> Optional[int]:
        found = _find_budget(message)
        return found[0] if found is not None else None

    @staticmethod
    def extract_keywords(message: str, max_keywords: Optional[int] = None) -> List[str]:
        limit = settings.KEYWORDS_MAX if max_keywords is None else max_keywords
        keywords: List[str] = []
        for token in tokenize(message):
            if len(keywords) >= limit:
                break
            if len(token) < 4 or token.isdigit():
                continue
            if token in LOOKUPS.known_forms or token in STOP_WORDS:
                continue
            if token not in keywords:
                keywords.append(token)
        return keywords


def _coerce(prefs: PreferencesLike) -> UserPreferences:
    if prefs is None:
        return UserPreferences()
    if isinstance(prefs, UserPreferences):
        return prefs
    return UserPreferences.from_untrusted(prefs)


def merge_preferences(old: PreferencesLike, new: PreferencesLike) -> UserPreferences:
    """Newest non-empty value per slot wins; blanks never erase saved values."""
    merged = _coerce(old).to_store()
    merged.update(_coerce(new).to_store())
    return UserPreferences.model_validate(merged)


def parse_preferences_block(text: str) -> UserPreferences:
    """Read the slots the model declared in its hidden block, if any."""
    if not text:
        return UserPreferences()
    match = PREFERENCES_BLOCK_RE.search(text)
    if not match:
        return UserPreferences()
    try:
        payload = json.loads(match.group(1).strip())
    except json.JSONDecodeError as exc:
        logger.warning("Malformed preferences block ignored: %s", exc)
        return UserPreferences()
    if not isinstance(payload, dict):
        logger.warning("Preferences block is not a JSON object (got %s)", type(payload).__name__)
        return UserPreferences()
    return UserPreferences.from_untrusted(payload)


def strip_preferences_block(text: str) -> str:
    if not text:
        return ""
    return PREFERENCES_BLOCK_RE.sub("", text)
