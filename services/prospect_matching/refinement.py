"""Iterative AI-assisted refinement of a ranked prospect match list.

The loop runs as a single coroutine under one global deadline::

    basic -> ai-analysis -> ai-validation -> (improving -> ai-validation)* -> complete

with side exits to ``fallback`` (judge unavailable), ``timeout`` and ``error``.
Every completed stage is checkpointed as an immutable :class:`SearchState`, so a
deadline or an unexpected failure still finalises with the best results so far.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import os
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from dotenv import load_dotenv

from .explanations import generate_explanation
from .judge import NORMALIZERS, Judge, JudgeKind
from .profile_builder import DEFAULT_FIELDS, CustomerFields, InputProfile, extract_profile
from .scoring_engine import MIN_RESULTS, MatchCandidate, ProspectMatchScorer, is_low_quality
from .utils import clamp, percent_label

load_dotenv()

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 3
AI_QUALITY_FLOOR = 0.4
STAGGER_DELAY = 0.1
SEARCH_TIMEOUT = float(os.getenv("PROSPECT_SEARCH_TIMEOUT", "60"))
ANALYSIS_TIMEOUT = float(os.getenv("PROSPECT_ANALYSIS_TIMEOUT", "15"))
JUDGE_TIMEOUT = float(os.getenv("PROSPECT_JUDGE_TIMEOUT", "10"))
AI_BLEND_WEIGHT = float(os.getenv("PROSPECT_AI_BLEND_WEIGHT", "0.6"))

NO_MATCHES_MESSAGE = "No suitable matches found"
EMPTY_DESCRIPTION = "empty-description"
EMPTY_CANDIDATE_POOL = "empty-candidate-pool"


class SearchStage(str, Enum):
    BASIC = "basic"
    AI_ANALYSIS = "ai-analysis"
    FALLBACK = "fallback"
    AI_VALIDATION = "ai-validation"
    IMPROVING = "improving"
    TIMEOUT = "timeout"
    ERROR = "error"
    COMPLETE = "complete"


STAGE_POSITIONS = {
    SearchStage.BASIC: 1,
    SearchStage.AI_ANALYSIS: 2,
    SearchStage.FALLBACK: 2,
    SearchStage.AI_VALIDATION: 3,
    SearchStage.IMPROVING: 4,
    SearchStage.TIMEOUT: 4,
    SearchStage.ERROR: 4,
    SearchStage.COMPLETE: 4,
}
IMPROVING_STAGES = {
    SearchStage.AI_ANALYSIS,
    SearchStage.FALLBACK,
    SearchStage.AI_VALIDATION,
    SearchStage.IMPROVING,
}


@dataclass(frozen=True)
class StatusEvent:
    stage: SearchStage
    message: str
    progress: float
    iteration: int = 0
    low_quality_warning: bool = False
    is_improving: bool = False
    current_stage: int = 1
    total_stages: int = 1

    def to_dict(self) -> Dict[str, object]:
        return {
            "stage": self.stage.value,
            "message": self.message,
            "progress": self.progress,
            "iteration": self.iteration,
            "low_quality_warning": self.low_quality_warning,
            "is_improving": self.is_improving,
            "current_stage": self.current_stage,
            "total_stages": self.total_stages,
        }


@dataclass(frozen=True)
class SearchState:
    original_description: str
    description: str
    profile: InputProfile
    candidates: Tuple[MatchCandidate, ...] = ()
    iteration: int = 0
    stage: SearchStage = SearchStage.BASIC
    message: str = ""
    in_progress: bool = True
    low_quality: bool = False
    analysis: Optional[Dict[str, Any]] = None
    timed_out: bool = False
    errored: bool = False
    no_match_reason: Optional[str] = None


StatusCallback = Callable[[StatusEvent], Union[None, Awaitable[None]]]


def build_improved_description(original: str, terms: Mapping[str, Any]) -> str:
    """Original description followed by the judge's alternative terms."""

    return (
        f"{original}\n\n"
        f"Alternative sectors: {', '.join(terms.get('alternative_sectors') or [])}\n"
        f"Related activities: {', '.join(terms.get('alternative_activities') or [])}\n"
        f"Keywords: {', '.join(terms.get('related_keywords') or [])}\n"
        f"{terms.get('expanded_description') or ''}"
    ).rstrip()


class RefinementLoop:
    """Run one prospect search against a fixed customer pool."""

    def __init__(
        self,
        customers: Iterable[Mapping[str, str]],
        judge: Optional[Judge] = None,
        *,
        use_ai: bool = True,
        max_iterations: int = MAX_ITERATIONS,
        search_timeout: Optional[float] = SEARCH_TIMEOUT,
        analysis_timeout: float = ANALYSIS_TIMEOUT,
        judge_timeout: float = JUDGE_TIMEOUT,
        blend_weight: float = AI_BLEND_WEIGHT,
        stagger_delay: float = STAGGER_DELAY,
        on_status: Optional[StatusCallback] = None,
        fields: CustomerFields = DEFAULT_FIELDS,
    ):
        if not 0.0 <= blend_weight <= 1.0:
            raise ValueError(f"blend_weight must be within [0, 1], got {blend_weight}")
        if max_iterations < 1:
            raise ValueError(f"max_iterations must be at least 1, got {max_iterations}")

        self.customers = list(customers)
        self.judge = judge
        self.use_ai = use_ai
        self.max_iterations = max_iterations
        self.search_timeout = search_timeout
        self.analysis_timeout = analysis_timeout
        self.judge_timeout = judge_timeout
        self.blend_weight = blend_weight
        self.stagger_delay = stagger_delay
        self.on_status = on_status
        self.fields = fields

        self.events: List[StatusEvent] = []
        self._latest: Optional[SearchState] = None

    async def run(self, description: str) -> SearchState:
        """Run the search to completion. Never raises for judge, timeout or scoring failures."""

        self.events = []
        self._latest = None
        description = description or ""

        if not description.strip():
            state = SearchState(
                original_description=description,
                description=description,
                profile=InputProfile(),
                no_match_reason=EMPTY_DESCRIPTION,
            )
            return await self._finish(state)

        try:
            state = await asyncio.wait_for(self._search(description), timeout=self.search_timeout)
        except asyncio.TimeoutError:
            logger.warning("Global AI timeout reached after %ss, completing with current results", self.search_timeout)
            state = replace(self._best_state(description), timed_out=True)
            state = await self._emit(
                state, SearchStage.TIMEOUT, "AI processing timed out - showing available results", self._last_progress()
            )
        except Exception:
            logger.exception("Prospect search failed")
            state = replace(self._best_state(description), errored=True)
            state = await self._emit(
                state,
                SearchStage.ERROR,
                "Search encountered an error but completed with available results",
                self._last_progress(),
            )

        return await self._finish(state)

    # --- search stages ---------------------------------------------------------------

    async def _search(self, description: str) -> SearchState:
        profile = extract_profile(description)
        state = self._checkpoint(SearchState(
            original_description=description,
            description=description,
            profile=profile,
        ))
        state = await self._emit(state, SearchStage.BASIC, "Running initial search...", 0.0)

        candidates = self._rank(profile)
        # rank() backfills, so only an empty pool yields no candidates
        if not candidates:
            logger.warning("No matches found for prospect: candidate pool is empty")
            return self._checkpoint(replace(state, no_match_reason=EMPTY_CANDIDATE_POOL))

        low_quality = is_low_quality(candidates)
        if low_quality:
            logger.warning(
                "All matches have low scores; best match is only %s",
                percent_label(candidates[0].total_score),
            )
        state = self._checkpoint(replace(state, candidates=candidates, low_quality=low_quality))
        state = await self._emit(state, SearchStage.BASIC, "Running initial search...", 0.3)

        if not self.use_ai:
            return state

        state = await self._emit(state, SearchStage.AI_ANALYSIS, "AI analyzing your company description...", 0.3)
        analysis = await self._call_judge(
            JudgeKind.PROFILE_ANALYSIS, {"description": description}, self.analysis_timeout
        )
        if analysis is None:
            logger.warning("AI analysis failed, continuing with traditional matching only")
            state = await self._emit(
                state, SearchStage.FALLBACK, "AI analysis unavailable, using traditional matching...", 0.4
            )
        state = self._checkpoint(replace(state, analysis=analysis))

        while state.iteration < self.max_iterations:
            iteration = state.iteration + 1
            state = self._checkpoint(replace(state, iteration=iteration))
            suffix = " - improving results" if iteration > 1 else ""
            state = await self._emit(
                state,
                SearchStage.AI_VALIDATION,
                f"AI validating matches (iteration {iteration}{suffix})...",
                0.5 + 0.1 * (iteration - 1),
            )

            prospect = state.analysis if state.analysis is not None else state.profile.to_dict()
            judged, successes = await self._judge_candidates(state.candidates, prospect, state.profile)
            state = self._checkpoint(replace(state, candidates=judged))
            logger.info("AI scoring completed: %d/%d successful", successes, len(judged))

            if successes < MIN_RESULTS:
                logger.info("Not enough AI scores to judge match quality")
                break

            top_scores = [candidate.ai_score or 0.0 for candidate in judged[:MIN_RESULTS]]
            if not any(score < AI_QUALITY_FLOOR for score in top_scores):
                break
            if iteration >= self.max_iterations:
                break

            state = await self._emit(
                state,
                SearchStage.IMPROVING,
                "AI detected suboptimal matches, enhancing search criteria...",
                0.7 + 0.1 * (iteration - 1),
            )
            terms = await self._call_judge(
                JudgeKind.ALTERNATIVE_TERMS,
                {
                    "description": state.original_description,
                    "poor_matches": [
                        {"company": candidate.company, "sector": self.fields.value(candidate.customer, "sector")}
                        for candidate in judged[:MIN_RESULTS]
                    ],
                },
                self.judge_timeout,
            )
            if terms is None:
                logger.warning("Failed to generate improved search terms, ending iteration")
                break

            working = build_improved_description(state.original_description, terms)
            improved_profile = extract_profile(working)
            candidates = self._rank(improved_profile)
            state = self._checkpoint(replace(
                state,
                description=working,
                profile=improved_profile,
                candidates=candidates,
                low_quality=is_low_quality(candidates),
            ))

        return state

    def _rank(self, profile: InputProfile) -> Tuple[MatchCandidate, ...]:
        return tuple(ProspectMatchScorer(profile, fields=self.fields).rank(self.customers))

    async def _judge_candidates(
        self,
        candidates: Tuple[MatchCandidate, ...],
        prospect: Mapping[str, Any],
        profile: InputProfile,
    ) -> Tuple[Tuple[MatchCandidate, ...], int]:
        results = await asyncio.gather(
            *(
                self._judge_candidate(index, candidate, prospect, profile)
                for index, candidate in enumerate(candidates)
            ),
            return_exceptions=True,
        )

        judged: List[MatchCandidate] = []
        successes = 0
        for candidate, result in zip(candidates, results):
            if isinstance(result, BaseException):
                logger.warning("Error in AI scoring for %s: %s", candidate.company, result)
                judged.append(candidate)
                continue
            if result is not candidate:
                successes += 1
            judged.append(result)

        judged.sort(key=lambda candidate: candidate.total_score, reverse=True)
        return tuple(judged), successes

    async def _judge_candidate(
        self,
        index: int,
        candidate: MatchCandidate,
        prospect: Mapping[str, Any],
        profile: InputProfile,
    ) -> MatchCandidate:
        if index and self.stagger_delay:
            await asyncio.sleep(index * self.stagger_delay)

        insight = await self._call_judge(
            JudgeKind.CANDIDATE_RELEVANCE,
            {"prospect": dict(prospect), "customer": self._customer_payload(candidate)},
            self.judge_timeout,
        )
        if insight is None:
            logger.warning("AI scoring failed for %s, keeping traditional score", candidate.company)
            return candidate

        ai_score = insight["relevance_score"]
        blended = clamp(self.blend_weight * ai_score + (1.0 - self.blend_weight) * candidate.total_score)
        return replace(
            candidate,
            ai_score=ai_score,
            ai_insight=insight,
            total_score=blended,
            explanation=generate_explanation(
                candidate.scores,
                candidate.customer,
                profile,
                ai_insight=insight,
                bonuses=candidate.bonuses,
                below_threshold=candidate.below_threshold,
                fields=self.fields,
            ),
        )

    def _customer_payload(self, candidate: MatchCandidate) -> Dict[str, str]:
        return {
            attribute: self.fields.value(candidate.customer, attribute)
            for attribute in ("company", "sector", "core_activity", "products", "sales_model", "service_model")
        }

    async def _call_judge(
        self, kind: JudgeKind, payload: Mapping[str, Any], timeout: float
    ) -> Optional[Dict[str, Any]]:
        """Ask the judge; every failure mode degrades to ``None``."""

        if self.judge is None:
            return None
        try:
            raw = await asyncio.wait_for(self.judge.judge(kind, payload, timeout), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("AI judge %s timed out after %ss", kind.value, timeout)
            return None
        except Exception as exc:
            logger.warning("AI judge %s failed: %s", kind.value, exc)
            return None

        result = NORMALIZERS[kind](raw)
        if result is None and raw is not None:
            logger.warning("AI judge %s returned a malformed response", kind.value)
        return result

    # --- state & status --------------------------------------------------------------

    def _checkpoint(self, state: SearchState) -> SearchState:
        self._latest = state
        return state

    def _best_state(self, description: str) -> SearchState:
        if self._latest is not None:
            return self._latest
        return SearchState(original_description=description, description=description, profile=InputProfile())

    async def _finish(self, state: SearchState) -> SearchState:
        message = self._final_message(state)
        state = await self._emit(replace(state, in_progress=False), SearchStage.COMPLETE, message, 1.0)
        self._latest = state
        logger.info(
            "Prospect search complete: %s (%d matches, %d iterations)",
            message,
            len(state.candidates),
            state.iteration,
        )
        return state

    def _final_message(self, state: SearchState) -> str:
        if state.no_match_reason:
            return NO_MATCHES_MESSAGE
        if state.errored:
            return "Search completed with errors"
        if state.timed_out:
            return "Search completed (AI timeout)"
        if self.use_ai and state.iteration > 0 and any(c.ai_score is not None for c in state.candidates):
            plural = "s" if state.iteration > 1 else ""
            return f"Search optimized via {state.iteration} iteration{plural}"
        return "Search complete"

    async def _emit(
        self, state: SearchState, stage: SearchStage, message: str, progress: float
    ) -> SearchState:
        """Record and publish a status event; returns the state tagged with the stage."""

        total_stages = 4 if self.use_ai else 1
        event = StatusEvent(
            stage=stage,
            message=message,
            progress=round(progress, 2),
            iteration=state.iteration,
            low_quality_warning=state.low_quality,
            is_improving=stage in IMPROVING_STAGES,
            current_stage=min(STAGE_POSITIONS[stage], total_stages),
            total_stages=total_stages,
        )
        self.events.append(event)
        state = replace(state, stage=stage, message=message)
        if stage != SearchStage.COMPLETE:
            self._latest = state

        if self.on_status is not None:
            try:
                result = self.on_status(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Status callback failed for stage %s", stage.value)
        return state

    def _last_progress(self) -> float:
        return self.events[-1].progress if self.events else 0.0
