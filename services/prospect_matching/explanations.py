"""Human readable justification strings for ranked matches."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence

from .profile_builder import DEFAULT_FIELDS, CustomerFields, InputProfile

if TYPE_CHECKING:
    from .scoring_engine import FieldScores


SEPARATOR = " • "
LOW_SCORE_PREFIX = "⚠️ Low match score - "
HIGH_FIT_LABELS = {"high", "strong"}

BONUS_CLAUSES = {
    "dealer": "🤝 Dealer network match",
    "tender": "📋 Tender process experience",
    "engineer_to_order": "🛠️ Engineer-to-order experience",
}

MISMATCH_THRESHOLD = 0.3
ALIGNMENT_THRESHOLD = 0.6
SALES_MODEL_THRESHOLD = 0.8


def _insight_clauses(ai_insight: Mapping[str, Any]) -> List[str]:
    clauses: List[str] = []
    strength = str(ai_insight.get("strength") or "").strip().lower()
    if strength in HIGH_FIT_LABELS:
        clauses.append(f"🌟 {strength.upper()} Strategic Fit")

    talking_points = ai_insight.get("talking_points") or []
    if talking_points:
        clauses.append(str(talking_points[0]))
    return clauses


def generate_explanation(
    scores: "FieldScores",
    customer: Mapping[str, str],
    profile: InputProfile,
    ai_insight: Optional[Dict[str, Any]] = None,
    bonuses: Sequence[str] = (),
    below_threshold: bool = False,
    fields: CustomerFields = DEFAULT_FIELDS,
) -> str:
    clauses: List[str] = []
    if ai_insight:
        clauses.extend(_insight_clauses(ai_insight))

    customer_sector = fields.value(customer, "sector")
    if scores.sector < MISMATCH_THRESHOLD:
        clauses.append(f"Sector mismatch - {profile.sector or 'your industry'} vs {customer_sector}")
    elif scores.sector > ALIGNMENT_THRESHOLD:
        clauses.append(f"Strong sector alignment in {customer_sector}")

    if scores.core_activity > ALIGNMENT_THRESHOLD:
        clauses.append(f"Core activity alignment: {fields.value(customer, 'core_activity')}")
    elif scores.core_activity < MISMATCH_THRESHOLD:
        clauses.append("Different core activities")

    if scores.sales_model > SALES_MODEL_THRESHOLD:
        clauses.append(f"Matching sales model: {fields.value(customer, 'sales_model')}")

    clauses.extend(BONUS_CLAUSES[name] for name in bonuses if name in BONUS_CLAUSES)

    if not clauses:
        if scores.sector < MISMATCH_THRESHOLD and scores.core_activity < MISMATCH_THRESHOLD:
            clauses.append("Minimal overlap in sector and activities")
        else:
            clauses.append("Limited business alignment")

    explanation = SEPARATOR.join(clauses)
    return LOW_SCORE_PREFIX + explanation if below_threshold else explanation
