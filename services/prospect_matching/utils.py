"""Utility helpers for prospect-to-customer matching."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable, List, Optional, Pattern, Set

from .taxonomy import WHOLE_WORD_TERMS


NON_WORD_PATTERN = re.compile(r"[^\w\s]")
WHITESPACE_PATTERN = re.compile(r"\s+")
AMOUNT_PATTERN = re.compile(
    r"€?\s*(\d+(?:[.,]\d+)*)\s*(miljard|billion|mln|miljoen|million|thousand|duizend|bn|mn|k|m|b)?\b",
    re.IGNORECASE,
)

UNIT_MULTIPLIERS = {
    "k": 1_000,
    "thousand": 1_000,
    "duizend": 1_000,
    "m": 1_000_000,
    "mn": 1_000_000,
    "mln": 1_000_000,
    "million": 1_000_000,
    "miljoen": 1_000_000,
    "b": 1_000_000_000,
    "bn": 1_000_000_000,
    "billion": 1_000_000_000,
    "miljard": 1_000_000_000,
}

MIN_TOKEN_LENGTH = 3


def normalize(text: Optional[str]) -> str:
    """Lower-case, turn punctuation into spaces and collapse whitespace."""

    if not text:
        return ""
    stripped = NON_WORD_PATTERN.sub(" ", str(text).lower())
    return WHITESPACE_PATTERN.sub(" ", stripped).strip()


def tokenize(text: Optional[str]) -> Set[str]:
    """Words of at least three characters from the normalised text."""

    return {word for word in normalize(text).split(" ") if len(word) >= MIN_TOKEN_LENGTH}


@lru_cache(maxsize=64)
def _whole_word_pattern(term: str) -> Pattern[str]:
    return re.compile(r"(?<!\w)" + re.escape(term) + r"(?!\w)")


def contains_term(text: str, term: str) -> bool:
    """True when ``term`` occurs in ``text``.

    Plain substring match, so compounds such as "zeetransport" contain
    "transport". Short abbreviations like "it" must stand alone, otherwise they
    would fire inside "kernactiviteit".
    """

    if not text or not term:
        return False
    if term in WHOLE_WORD_TERMS:
        return _whole_word_pattern(term).search(text) is not None
    return term in text


def contains_any(text: str, terms: Iterable[str]) -> bool:
    return any(contains_term(text, term) for term in terms)


def find_terms(text: str, terms: Iterable[str]) -> List[str]:
    """Terms found as whole words in ``text``, in order of first appearance, deduplicated."""

    found = []
    for term in terms:
        match = re.search(r"(?<!\w)" + re.escape(term) + r"(?!\w)", text)
        if match:
            found.append((match.start(), term))
    seen: Set[str] = set()
    ordered: List[str] = []
    for _, term in sorted(found):
        if term not in seen:
            seen.add(term)
            ordered.append(term)
    return ordered


def parse_amount(value: Optional[str | float | int]) -> Optional[float]:
    """Parse currency-like expressions ("€250k", "1.5 mln", "75000") into a number."""

    if value is None:
        return None

    if isinstance(value, (int, float)):
        return float(value)

    match = AMOUNT_PATTERN.search(str(value))
    if not match:
        return None

    number_text = match.group(1)
    unit = match.group(2).lower() if match.group(2) else None

    # "1.250.000" / "1,250,000" are grouped thousands; "1,5" / "2.5" are decimals.
    groups = re.split(r"[.,]", number_text)
    if len(groups) > 1 and all(len(group) == 3 for group in groups[1:]):
        number = float("".join(groups))
    elif len(groups) <= 2:
        number = float(number_text.replace(",", "."))
    else:
        return None

    if unit and unit in UNIT_MULTIPLIERS:
        number *= UNIT_MULTIPLIERS[unit]

    return number


def clamp(value: float, lower: float = 0.0, upper: float = 1.0) -> float:
    return max(lower, min(upper, value))


def percent_label(score: float) -> str:
    return f"{round(score * 100)}%"
