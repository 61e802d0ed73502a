"""External relevance judge capability and response normalisation.

A judge receives one of three request kinds with a structured payload and returns
a JSON-like ``dict`` or ``None``. Judges are unreliable by contract: the
normalisers below turn anything unusable into ``None`` so callers only ever see a
well-formed result or nothing.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Protocol

from .utils import clamp


DEFAULT_AI_CONFIDENCE = 0.8
STRENGTH_LABELS = ("high", "medium", "low")


class JudgeKind(str, Enum):
    PROFILE_ANALYSIS = "profile-analysis"
    CANDIDATE_RELEVANCE = "candidate-relevance"
    ALTERNATIVE_TERMS = "alternative-terms"


class Judge(Protocol):
    async def judge(
        self, kind: JudgeKind, payload: Mapping[str, Any], timeout: float
    ) -> Optional[Dict[str, Any]]:
        ...


def coerce_score(value: Any) -> Optional[float]:
    """Read a 0-1 score.

    Whole numbers and percent strings in (1, 100] are read as percentages;
    anything else outside [0, 1] is clamped.
    """

    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    is_percent = text.endswith("%")
    try:
        score = float(text.rstrip("%").strip())
    except ValueError:
        return None
    if score != score:  # NaN
        return None
    if 1.0 < score <= 100.0 and (is_percent or score.is_integer()):
        score = score / 100.0
    return clamp(score)


def _string_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, (list, tuple)):
        return []
    return [str(item).strip() for item in value if item is not None and str(item).strip()]


def _first(result: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if result.get(key) is not None:
            return result[key]
    return None


def normalize_profile_analysis(result: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(result, dict) or not result:
        return None

    analysis = dict(result)
    confidence = coerce_score(analysis.get("confidence"))
    analysis["confidence"] = DEFAULT_AI_CONFIDENCE if confidence is None else confidence
    for key in ("key_strengths", "industry_keywords"):
        if key in analysis:
            analysis[key] = _string_list(analysis[key])
    return analysis


def normalize_relevance(result: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(result, dict):
        return None

    relevance = coerce_score(_first(result, "relevance_score", "overall_similarity", "relevance"))
    if relevance is None:
        return None

    strength = str(_first(result, "strength", "strategic_fit") or "").strip().lower()
    return {
        "relevance_score": relevance,
        "peer_recognition": coerce_score(result.get("peer_recognition")),
        "business_relevance": coerce_score(result.get("business_relevance")),
        "use_case_relevance": coerce_score(result.get("use_case_relevance")),
        "strength": strength if strength in STRENGTH_LABELS or strength == "strong" else "",
        "talking_points": _string_list(_first(result, "talking_points", "key_reasons")),
        "risk_factors": _string_list(result.get("risk_factors")),
        "sales_angle": str(_first(result, "sales_angle", "sales_insight") or "").strip(),
    }


def normalize_alternative_terms(result: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(result, dict):
        return None

    terms = {
        "alternative_sectors": _string_list(result.get("alternative_sectors")),
        "alternative_activities": _string_list(result.get("alternative_activities")),
        "related_keywords": _string_list(result.get("related_keywords")),
        "expanded_description": str(_first(result, "expanded_description", "expanded_search") or "").strip(),
    }
    if not any(terms.values()):
        return None
    return terms


NORMALIZERS = {
    JudgeKind.PROFILE_ANALYSIS: normalize_profile_analysis,
    JudgeKind.CANDIDATE_RELEVANCE: normalize_relevance,
    JudgeKind.ALTERNATIVE_TERMS: normalize_alternative_terms,
}
