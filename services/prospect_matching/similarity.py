"""Field similarity and deal-size proximity scoring."""

from __future__ import annotations

import logging
from typing import Optional, Tuple

from .taxonomy import (
    DEAL_SIZE_AMOUNT_BOUNDS,
    DEAL_SIZE_TIERS,
    INCOMPATIBLE_PAIRS,
    NOT_AVAILABLE_SENTINELS,
    SEMANTIC_GROUPS,
)
from .utils import clamp, contains_any, contains_term, normalize, parse_amount, tokenize


logger = logging.getLogger(__name__)

EXACT_MATCH_SCORE = 1.0
SUBSTRING_SCORE = 0.85
SEMANTIC_GROUP_SCORE = 0.7
INCOMPATIBLE_SCORE = 0.1
JACCARD_SCALE = 0.5

NEUTRAL_DEAL_SIZE_SCORE = 0.5
DEAL_SIZE_DISTANCE_SCORES = {0: 1.0, 1: 0.7, 2: 0.4}
DEAL_SIZE_FAR_SCORE = 0.2


def _is_incompatible(first: str, second: str) -> bool:
    for left, right in INCOMPATIBLE_PAIRS:
        if contains_term(first, left) and contains_term(second, right):
            return True
        if contains_term(first, right) and contains_term(second, left):
            return True
    return False


def semantic_group_score(first: str, second: str) -> Tuple[float, bool]:
    """Compare two normalised texts against the topic clusters.

    Returns ``(score, incompatible)``. Groups are visited in table order and the
    first group hit on both sides ends the walk with 0.7. A one-sided hit on
    texts that form an incompatible pair ends it with ``incompatible=True``.
    """

    for group in SEMANTIC_GROUPS:
        in_first = contains_any(first, group.terms)
        in_second = contains_any(second, group.terms)
        if in_first and in_second:
            return SEMANTIC_GROUP_SCORE, False
        if (in_first or in_second) and _is_incompatible(first, second):
            return INCOMPATIBLE_SCORE, True
    return 0.0, False


def calculate_similarity(first: Optional[str], second: Optional[str], field_hint: Optional[str] = None) -> float:
    """Similarity in [0, 1] between two free-text field values."""

    if not first or not second:
        return 0.0

    left = normalize(first)
    right = normalize(second)
    if not left or not right:
        return 0.0

    if left == right:
        return EXACT_MATCH_SCORE

    if left in right or right in left:
        return SUBSTRING_SCORE

    group_score, incompatible = semantic_group_score(left, right)
    if incompatible:
        logger.debug("Incompatible %s pair: %r vs %r", field_hint or "field", left, right)
        return INCOMPATIBLE_SCORE

    left_tokens = tokenize(left)
    right_tokens = tokenize(right)
    if not left_tokens or not right_tokens:
        return group_score

    jaccard = len(left_tokens & right_tokens) / len(left_tokens | right_tokens)
    score = min(1.0, max(jaccard * JACCARD_SCALE, group_score))
    logger.debug(
        "Similarity %s: %r vs %r -> %.2f (jaccard %.2f, group %.2f)",
        field_hint or "field",
        left,
        right,
        score,
        jaccard,
        group_score,
    )
    return score


def is_not_available(value: Optional[str]) -> bool:
    if value is None:
        return True
    text = str(value).strip().lower()
    return not text or text in NOT_AVAILABLE_SENTINELS


def deal_size_tier(value: Optional[str]) -> Optional[int]:
    """Map a deal-size expression to an ordinal tier 1-4, or ``None``."""

    if is_not_available(value):
        return None

    text = str(value).lower()
    for label, tier in DEAL_SIZE_TIERS:
        if label in text:
            return tier

    amount = parse_amount(text)
    if amount is None:
        return None

    amount = abs(amount)
    for upper_bound, tier in DEAL_SIZE_AMOUNT_BOUNDS:
        if amount < upper_bound:
            return tier
    return 4


def deal_size_score(input_size: Optional[str], customer_size: Optional[str]) -> float:
    """Score deal-size proximity; missing or unreadable sizes are neutral (0.5)."""

    input_tier = deal_size_tier(input_size)
    customer_tier = deal_size_tier(customer_size)
    if input_tier is None or customer_tier is None:
        return NEUTRAL_DEAL_SIZE_SCORE

    distance = abs(input_tier - customer_tier)
    return clamp(DEAL_SIZE_DISTANCE_SCORES.get(distance, DEAL_SIZE_FAR_SCORE))
