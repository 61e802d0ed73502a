"""Prospect-to-customer matching engine."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Deque, Dict, Iterable, List, Mapping, Optional

from dotenv import load_dotenv

from services.prospect_matching import (
    CustomerFields,
    InputProfile,
    Judge,
    MatchCandidate,
    RefinementLoop,
    SearchState,
    StatusEvent,
)
from services.prospect_matching.ai_matcher import OpenAIJudge
from services.prospect_matching.judge import DEFAULT_AI_CONFIDENCE
from services.prospect_matching.profile_builder import DEFAULT_FIELDS
from status_manager import StatusBroadcaster, broadcaster as default_broadcaster

load_dotenv()

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 20
HISTORY_SCORE_THRESHOLD = 0.7
EXPORT_COLUMNS = (
    "rank",
    "company",
    "score",
    "sector",
    "core_activity",
    "sales_model",
    "service_model",
    "deal_size",
    "ai_strength",
    "sales_angle",
    "explanation",
)


@dataclass
class MatchOutcome:
    matches: List[MatchCandidate]
    profile: InputProfile
    events: List[StatusEvent] = field(default_factory=list)
    iterations: int = 0
    low_quality_warning: bool = False
    timed_out: bool = False
    errored: bool = False
    no_match_reason: Optional[str] = None
    ai_analysis: Optional[Dict[str, Any]] = None
    ai_confidence: Optional[float] = None

    @classmethod
    def from_state(cls, state: SearchState, events: Iterable[StatusEvent]) -> "MatchOutcome":
        confidence = None
        if state.analysis is not None:
            confidence = state.analysis.get("confidence", DEFAULT_AI_CONFIDENCE)
        return cls(
            matches=list(state.candidates),
            profile=state.profile,
            events=list(events),
            iterations=state.iteration,
            low_quality_warning=state.low_quality,
            timed_out=state.timed_out,
            errored=state.errored,
            no_match_reason=state.no_match_reason,
            ai_analysis=state.analysis,
            ai_confidence=confidence,
        )

    @property
    def final_status(self) -> Optional[StatusEvent]:
        return self.events[-1] if self.events else None

    @property
    def no_qualifying_matches(self) -> bool:
        """Every returned match is a flagged below-threshold backfill."""
        return bool(self.matches) and all(match.below_threshold for match in self.matches)

    def to_dict(self, fields: CustomerFields = DEFAULT_FIELDS) -> Dict[str, object]:
        final_status = self.final_status
        return {
            "matches": [match.to_dict(rank=index, fields=fields) for index, match in enumerate(self.matches, start=1)],
            "matched_customers": len(self.matches),
            "profile": self.profile.to_dict(),
            "iterations": self.iterations,
            "low_quality_warning": self.low_quality_warning,
            "timed_out": self.timed_out,
            "errored": self.errored,
            "no_match_reason": self.no_match_reason,
            "no_qualifying_matches": self.no_qualifying_matches,
            "ai_analysis": self.ai_analysis,
            "ai_confidence": self.ai_confidence,
            "status": final_status.to_dict() if final_status else None,
        }


class ProspectMatcher:
    """Primary orchestration class for prospect matching runs."""

    def __init__(
        self,
        judge: Optional[Judge] = None,
        fields: CustomerFields = DEFAULT_FIELDS,
        broadcaster: Optional[StatusBroadcaster] = None,
        **loop_options: Any,
    ):
        self.judge = judge
        self.fields = fields
        self.broadcaster = broadcaster or default_broadcaster
        self.loop_options = loop_options
        self.match_history: Deque[Dict[str, Any]] = deque(maxlen=HISTORY_LIMIT)

    async def find_matches_async(
        self,
        description: str,
        customers: Iterable[Mapping[str, str]],
        use_ai: bool = True,
        search_id: Optional[str] = None,
    ) -> MatchOutcome:
        records = self._usable_records(customers)
        judge = self._get_judge() if use_ai else None
        on_status = self.broadcaster.listener_for(search_id) if search_id else None

        loop = RefinementLoop(
            records,
            judge,
            use_ai=use_ai,
            on_status=on_status,
            fields=self.fields,
            **self.loop_options,
        )
        state = await loop.run(description)
        self._record_history(state)
        return MatchOutcome.from_state(state, loop.events)

    def find_matches(
        self,
        description: str,
        customers: Iterable[Mapping[str, str]],
        use_ai: bool = True,
        search_id: Optional[str] = None,
    ) -> MatchOutcome:
        """Blocking wrapper around :meth:`find_matches_async`."""

        return asyncio.run(self.find_matches_async(description, customers, use_ai=use_ai, search_id=search_id))

    def _get_judge(self) -> Optional[Judge]:
        if self.judge is None:
            try:
                self.judge = OpenAIJudge()
            except ValueError as exc:
                logger.error("Failed to initialize AI judge: %s", exc)
                return None
        return self.judge

    def _usable_records(self, customers: Iterable[Mapping[str, str]]) -> List[Mapping[str, str]]:
        records = []
        skipped = 0
        for customer in customers:
            if self.fields.value(customer, "company"):
                records.append(customer)
            else:
                skipped += 1
        if skipped:
            logger.warning("Skipped %d customer records without a company name", skipped)
        return records

    def _record_history(self, state: SearchState) -> None:
        if state.errored or not state.candidates:
            return
        best = state.candidates[0].total_score
        if best > HISTORY_SCORE_THRESHOLD:
            self.match_history.append({
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "pattern": f"iterations:{state.iteration}",
                "score": best,
            })


def filter_customers(
    customers: Iterable[Mapping[str, str]],
    term: Optional[str],
    fields: CustomerFields = DEFAULT_FIELDS,
) -> List[Mapping[str, str]]:
    """Customers whose company, sector or core activity contains ``term`` (case-insensitive)."""

    records = list(customers)
    needle = (term or "").strip().lower()
    if not needle:
        return records
    return [
        customer
        for customer in records
        if any(needle in fields.value(customer, attribute).lower() for attribute in ("company", "sector", "core_activity"))
    ]


def build_export_rows(
    matches: Iterable[MatchCandidate],
    fields: CustomerFields = DEFAULT_FIELDS,
) -> List[Dict[str, object]]:
    rows = []
    for index, match in enumerate(matches, start=1):
        payload = match.to_dict(rank=index, fields=fields)
        rows.append({column: payload.get(column, "") for column in EXPORT_COLUMNS})
    return rows


prospect_matcher = ProspectMatcher()
