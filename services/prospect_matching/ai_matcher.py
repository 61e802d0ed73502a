"""LLM-backed judge for prospect analysis and customer relevance."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv

from core.openai_wrapper import OpenAIServiceError, OpenAIWrapper
from .judge import NORMALIZERS, JudgeKind

load_dotenv()

logger = logging.getLogger(__name__)

AI_MATCH_MODEL = os.getenv("PROSPECT_AI_MODEL", "gpt-4o-mini")

SYSTEM_PROMPT = "You are a concise B2B sales analyst helping business development reps find reference customers."

PROFILE_ANALYSIS_TEMPLATE = """Analyze this company description for reference-customer matching. Extract its key business characteristics.

{description}

Return ONLY valid JSON in the following structure:
{{
  "sector": "primary industry",
  "core_activity": "core business activity",
  "products": "main products/services",
  "sales_model": "sales approach",
  "service_model": "service delivery",
  "customer_profile": "target customers",
  "dealer_driven": true/false,
  "tender_involved": true/false,
  "engineer_to_order": true/false,
  "configure_to_order": true/false,
  "deal_size": "deal size range",
  "business_complexity": "low/medium/high",
  "key_strengths": ["strength1", "strength2", "strength3"],
  "industry_keywords": ["keyword1", "keyword2", "keyword3"],
  "competitive_position": "market position",
  "confidence": 0.0-1.0
}}
"""

RELEVANCE_TEMPLATE = """Judge how useful this existing customer is as a reference when approaching the prospect.

PROSPECT JSON:
{prospect_json}

CUSTOMER JSON:
{customer_json}

Return ONLY valid JSON in the following structure:
{{
  "relevance_score": 0.0-1.0,
  "peer_recognition": 0.0-1.0,
  "business_relevance": 0.0-1.0,
  "use_case_relevance": 0.0-1.0,
  "strength": "high/medium/low",
  "talking_points": ["point1", "point2"],
  "risk_factors": ["risk1"],
  "sales_angle": "one line the rep can open with"
}}

Scoring guidance:
- >=0.8: The prospect would immediately recognise the customer as a peer.
- 0.5-0.79: Related business with a credible shared use case.
- <0.4: Different market; weak reference.
"""

ALTERNATIVE_TERMS_TEMPLATE = """The following company description yielded poor reference-customer matches:

{description}

Poor matches were:
{poor_matches}

Generate alternative search terms that might find better matches. Focus on:
1. Alternative industry sectors this company might match with
2. Different ways to describe their core activities
3. Related business models or service approaches

Return ONLY valid JSON in the following structure:
{{
  "alternative_sectors": ["sector1", "sector2"],
  "alternative_activities": ["activity1", "activity2"],
  "related_keywords": ["keyword1", "keyword2", "keyword3"],
  "expanded_description": "broader description for matching"
}}
"""


class OpenAIJudge:
    """Judge implementation that asks an OpenAI chat model for JSON verdicts."""

    def __init__(self, wrapper: Optional[OpenAIWrapper] = None, model: Optional[str] = None) -> None:
        if wrapper is None:
            api_key = os.getenv("OPENAI_API_KEY")
            if not api_key:
                raise ValueError("OPENAI_API_KEY not configured for AI prospect matching")
            wrapper = OpenAIWrapper(api_key=api_key)
        self.wrapper = wrapper
        self.model = model or AI_MATCH_MODEL

    def build_prompt(self, kind: JudgeKind, payload: Mapping[str, Any]) -> str:
        if kind == JudgeKind.PROFILE_ANALYSIS:
            return PROFILE_ANALYSIS_TEMPLATE.format(description=payload.get("description", ""))

        if kind == JudgeKind.CANDIDATE_RELEVANCE:
            return RELEVANCE_TEMPLATE.format(
                prospect_json=json.dumps(payload.get("prospect", {}), ensure_ascii=False, indent=2),
                customer_json=json.dumps(payload.get("customer", {}), ensure_ascii=False, indent=2),
            )

        if kind == JudgeKind.ALTERNATIVE_TERMS:
            poor_matches = "\n".join(
                f"- {match.get('company', '')} ({match.get('sector', '')})"
                for match in payload.get("poor_matches", [])
            )
            return ALTERNATIVE_TERMS_TEMPLATE.format(
                description=payload.get("description", ""),
                poor_matches=poor_matches or "- none",
            )

        raise ValueError(f"Unsupported judge request kind: {kind}")

    async def judge(
        self, kind: JudgeKind, payload: Mapping[str, Any], timeout: float
    ) -> Optional[Dict[str, Any]]:
        prompt = self.build_prompt(kind, payload)
        try:
            parsed = await self.wrapper.json_completion(
                [
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                model=self.model,
                temperature=0.2,
                max_completion_tokens=800,
                timeout=timeout,
            )
        except (OpenAIServiceError, asyncio.TimeoutError) as exc:
            logger.warning("AI judge %s request failed: %s", kind.value, exc)
            return None

        result = NORMALIZERS[kind](parsed)
        if result is None:
            logger.warning("AI judge %s returned an unusable response: %s", kind.value, parsed)
        return result
