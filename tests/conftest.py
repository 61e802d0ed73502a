"""Shared fixtures for prospect matching tests."""

import asyncio

import pytest

from services.prospect_matching.judge import JudgeKind


E2E_DESCRIPTION = "Sector: Transport, Kernactiviteit: maritieme logistiek, Verkoopmodel: dealer"


class FakeJudge:
    """In-memory judge returning canned responses per request kind."""

    def __init__(self, analysis=None, relevance=None, terms=None, delay=0.0, failing_companies=()):
        self.analysis = analysis
        self.relevance = relevance
        self.terms = terms
        self.delay = delay
        self.failing_companies = set(failing_companies)
        self.calls = []

    async def judge(self, kind, payload, timeout):
        self.calls.append((kind, payload))
        if self.delay:
            await asyncio.sleep(self.delay)

        if kind == JudgeKind.PROFILE_ANALYSIS:
            return self.analysis
        if kind == JudgeKind.ALTERNATIVE_TERMS:
            return self.terms

        company = payload["customer"]["company"]
        if company in self.failing_companies:
            raise RuntimeError(f"judge unavailable for {company}")
        if callable(self.relevance):
            return self.relevance(company)
        return self.relevance

    def calls_of(self, kind):
        return [payload for call_kind, payload in self.calls if call_kind == kind]


class NullJudge:
    """Judge that never answers."""

    def __init__(self):
        self.calls = 0

    async def judge(self, kind, payload, timeout):
        self.calls += 1
        return None


@pytest.fixture
def e2e_description():
    return E2E_DESCRIPTION


@pytest.fixture
def fake_judge():
    """Factory for configurable in-memory judges."""
    return FakeJudge


@pytest.fixture
def null_judge():
    return NullJudge()


@pytest.fixture
def e2e_customer():
    return {
        "Bedrijf": "Noordzee Shipping BV",
        "Sector": "Transport",
        "Kernactiviteit": "maritieme dienstverlening",
        "Verkoopmodel": "dealer netwerk",
    }


@pytest.fixture
def customer_pool(e2e_customer):
    return [
        e2e_customer,
        {
            "Bedrijf": "Rijnmond Logistics",
            "Sector": "Logistiek",
            "Kernactiviteit": "containervervoer en opslag",
            "Producten/Diensten": "warehousing, freight forwarding",
            "Verkoopmodel": "direct",
            "Servicemodel": "field service",
            "Klantprofiel": "Nederlandse bedrijven",
            "Dealsize": "mkb",
            "Kernproces": "tender",
        },
        {
            "Bedrijf": "Havenkranen Holland",
            "Sector": "Transport",
            "Kernactiviteit": "kraanverhuur in de haven",
            "Verkoopmodel": "dealer",
            "Dealsize": "groot",
        },
        {
            "Bedrijf": "Bytes Software",
            "Sector": "Software",
            "Kernactiviteit": "SaaS platform ontwikkeling",
            "Verkoopmodel": "direct",
            "Dealsize": "klein",
        },
        {
            "Bedrijf": "Zorg Groep Zuid",
            "Sector": "Healthcare",
            "Kernactiviteit": "medische apparatuur",
            "Verkoopmodel": "direct",
        },
    ]


@pytest.fixture
def unrelated_pool():
    return [
        {"Bedrijf": f"Bakkerij {index}", "Sector": "Voeding", "Kernactiviteit": "brood bakken"}
        for index in range(5)
    ]


@pytest.fixture
def high_relevance():
    return {
        "relevance_score": 0.9,
        "peer_recognition": 0.8,
        "business_relevance": 0.9,
        "use_case_relevance": 0.85,
        "strength": "high",
        "talking_points": ["Both operate North Sea shipping routes"],
        "risk_factors": [],
        "sales_angle": "Ask how they scaled their dealer network",
    }


@pytest.fixture
def low_relevance():
    return {
        "relevance_score": 0.2,
        "strength": "low",
        "talking_points": ["Different market"],
        "sales_angle": "",
    }


@pytest.fixture
def alternative_terms():
    return {
        "alternative_sectors": ["logistiek", "scheepvaart"],
        "alternative_activities": ["short sea shipping"],
        "related_keywords": ["haven", "cargo"],
        "expanded_description": "Maritiem transportbedrijf met focus op havenlogistiek",
    }
