"""Scoring engine combining field similarities and bonus rules into a match score."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .explanations import generate_explanation
from .profile_builder import DEFAULT_FIELDS, CustomerFields, InputProfile
from .similarity import calculate_similarity, deal_size_score
from .utils import clamp, percent_label


logger = logging.getLogger(__name__)

DEFAULT_WEIGHTS = {
    "sector": 0.35,
    "core_activity": 0.30,
    "service_model": 0.10,
    "products": 0.10,
    "sales_model": 0.08,
    "customer_profile": 0.05,
    "deal_size": 0.02,
}

DEALER_BONUS = 0.15
TENDER_BONUS = 0.12
ENGINEER_BONUS = 0.10

MIN_THRESHOLD = 0.3
TOP_N = 5
MIN_RESULTS = 3
LOW_QUALITY_BAR = 0.5


@dataclass(frozen=True)
class FieldScores:
    sector: float = 0.0
    core_activity: float = 0.0
    products: float = 0.0
    sales_model: float = 0.0
    service_model: float = 0.0
    customer_profile: float = 0.0
    deal_size: float = 0.0

    def as_dict(self) -> Dict[str, float]:
        return {
            "sector": self.sector,
            "core_activity": self.core_activity,
            "products": self.products,
            "sales_model": self.sales_model,
            "service_model": self.service_model,
            "customer_profile": self.customer_profile,
            "deal_size": self.deal_size,
        }

    def weighted_sum(self, weights: Mapping[str, float]) -> float:
        return sum(value * weights.get(key, 0.0) for key, value in self.as_dict().items())


@dataclass(frozen=True)
class MatchCandidate:
    customer: Mapping[str, str]
    company: str
    scores: FieldScores
    bonuses: Tuple[str, ...]
    bonus_score: float
    total_score: float
    local_score: float
    explanation: str = ""
    below_threshold: bool = False
    ai_score: Optional[float] = None
    ai_insight: Optional[Dict[str, Any]] = None

    def to_dict(self, rank: Optional[int] = None, fields: CustomerFields = DEFAULT_FIELDS) -> Dict[str, object]:
        insight = self.ai_insight or {}
        payload: Dict[str, object] = {
            "company": self.company,
            "score": percent_label(self.total_score),
            "total_score": round(self.total_score, 4),
            "local_score": round(self.local_score, 4),
            "ai_score": self.ai_score,
            "sector": fields.value(self.customer, "sector"),
            "core_activity": fields.value(self.customer, "core_activity"),
            "sales_model": fields.value(self.customer, "sales_model"),
            "service_model": fields.value(self.customer, "service_model"),
            "deal_size": fields.value(self.customer, "deal_size"),
            "ai_strength": insight.get("strength", ""),
            "sales_angle": insight.get("sales_angle", ""),
            "explanation": self.explanation,
            "below_threshold": self.below_threshold,
            "breakdown": self.scores.as_dict(),
        }
        if rank is not None:
            payload = {"rank": rank, **payload}
        return payload


class ProspectMatchScorer:
    """Score customer records against an extracted prospect profile."""

    def __init__(
        self,
        profile: InputProfile,
        fields: CustomerFields = DEFAULT_FIELDS,
        weights: Optional[Dict[str, float]] = None,
    ):
        self.profile = profile
        self.fields = fields
        self.weights = weights or DEFAULT_WEIGHTS

    def score_customer(self, customer: Mapping[str, str]) -> MatchCandidate:
        def value(attribute: str) -> str:
            return self.fields.value(customer, attribute)

        scores = FieldScores(
            sector=calculate_similarity(self.profile.sector, value("sector"), "sector"),
            core_activity=calculate_similarity(self.profile.core_activity, value("core_activity"), "core_activity"),
            products=calculate_similarity(self.profile.products, value("products"), "products"),
            sales_model=calculate_similarity(self.profile.sales_model, value("sales_model"), "sales_model"),
            service_model=calculate_similarity(self.profile.service_model, value("service_model"), "service_model"),
            customer_profile=calculate_similarity(
                self.profile.customer_profile, value("customer_profile"), "customer_profile"
            ),
            deal_size=deal_size_score(self.profile.deal_size, value("deal_size")),
        )

        bonuses, bonus_score = self._score_bonuses(customer)
        total = clamp(scores.weighted_sum(self.weights) + bonus_score)

        return MatchCandidate(
            customer=customer,
            company=value("company"),
            scores=scores,
            bonuses=bonuses,
            bonus_score=bonus_score,
            total_score=total,
            local_score=total,
            explanation=generate_explanation(scores, customer, self.profile, bonuses=bonuses, fields=self.fields),
        )

    def rank(self, customers: Iterable[Mapping[str, str]]) -> List[MatchCandidate]:
        """Top candidates above the threshold, backfilled with flagged low scorers."""

        scored = sorted(
            (self.score_customer(customer) for customer in customers),
            key=lambda candidate: candidate.total_score,
            reverse=True,
        )

        top = [candidate for candidate in scored if candidate.total_score >= MIN_THRESHOLD][:TOP_N]
        if len(top) < MIN_RESULTS:
            remainder = [candidate for candidate in scored if candidate.total_score < MIN_THRESHOLD]
            top.extend(self._flag_below_threshold(candidate) for candidate in remainder[: MIN_RESULTS - len(top)])

        if top:
            logger.info(
                "Ranked %d of %d customers: %s",
                len(top),
                len(scored),
                ", ".join(f"{candidate.company} ({percent_label(candidate.total_score)})" for candidate in top),
            )
        return top

    # --- helpers ---------------------------------------------------------------------

    def _score_bonuses(self, customer: Mapping[str, str]) -> Tuple[Tuple[str, ...], float]:
        sales_model = self.fields.value(customer, "sales_model").lower()
        core_process = self.fields.value(customer, "core_process").lower()

        bonuses: List[str] = []
        bonus_score = 0.0
        if self.profile.dealer_driven and "dealer" in sales_model:
            bonuses.append("dealer")
            bonus_score += DEALER_BONUS
        if self.profile.tender_involved and "tender" in core_process:
            bonuses.append("tender")
            bonus_score += TENDER_BONUS
        if self.profile.engineer_to_order and "engineer" in core_process:
            bonuses.append("engineer_to_order")
            bonus_score += ENGINEER_BONUS
        return tuple(bonuses), bonus_score

    def _flag_below_threshold(self, candidate: MatchCandidate) -> MatchCandidate:
        return replace(
            candidate,
            below_threshold=True,
            explanation=generate_explanation(
                candidate.scores,
                candidate.customer,
                self.profile,
                bonuses=candidate.bonuses,
                below_threshold=True,
                fields=self.fields,
            ),
        )


def is_low_quality(candidates: List[MatchCandidate]) -> bool:
    """True when the best local result is below the quality bar."""

    return bool(candidates) and candidates[0].total_score < LOW_QUALITY_BAR
