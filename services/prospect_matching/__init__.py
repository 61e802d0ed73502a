"""Prospect-to-customer matching services package."""

from .profile_builder import CustomerFields, InputProfile, ProspectProfileBuilder, extract_profile
from .scoring_engine import FieldScores, MatchCandidate, ProspectMatchScorer
from .judge import Judge, JudgeKind
from .refinement import RefinementLoop, SearchStage, SearchState, StatusEvent

__all__ = [
    "CustomerFields",
    "InputProfile",
    "ProspectProfileBuilder",
    "extract_profile",
    "FieldScores",
    "MatchCandidate",
    "ProspectMatchScorer",
    "Judge",
    "JudgeKind",
    "RefinementLoop",
    "SearchStage",
    "SearchState",
    "StatusEvent",
]
