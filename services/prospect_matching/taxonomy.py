"""Static vocabularies used by similarity scoring and profile extraction.

Every table here is plain data so it can be extended without touching the
scoring code. Terms are matched as substrings of normalised text so Dutch
compounds ("zeetransport", "groothandel") still hit; the short abbreviations in
``WHOLE_WORD_TERMS`` only match as whole words (see ``utils.contains_term``).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, Tuple


WHOLE_WORD_TERMS: FrozenSet[str] = frozenset({"it", "ai", "eto", "cto"})


@dataclass(frozen=True)
class SemanticGroup:
    name: str
    terms: Tuple[str, ...]


SEMANTIC_GROUPS: Tuple[SemanticGroup, ...] = (
    SemanticGroup("transport", (
        "transport", "logistiek", "logistics", "shipping", "maritiem", "maritime",
        "cargo", "freight", "scheepvaart",
    )),
    SemanticGroup("trade", (
        "handel", "trading", "trade", "handelsbemiddeling", "broker", "intermediary",
    )),
    SemanticGroup("software", (
        "software", "it", "technology", "tech", "digital", "automation", "saas", "platform",
    )),
    SemanticGroup("manufacturing", (
        "manufacturing", "production", "productie", "fabricage", "industrie", "industrial",
    )),
    SemanticGroup("construction", (
        "bouw", "construction", "building", "contractors", "aannemers",
    )),
    SemanticGroup("services", (
        "diensten", "services", "dienstverlening", "consultancy", "advies",
    )),
    SemanticGroup("retail", (
        "retail", "detailhandel", "wholesale", "groothandel", "distribution",
    )),
    SemanticGroup("finance", (
        "finance", "financial", "banking", "insurance", "verzekering", "fintech",
    )),
    SemanticGroup("healthcare", (
        "healthcare", "medical", "medisch", "zorg", "gezondheid", "pharma",
    )),
    SemanticGroup("energy", (
        "energy", "energie", "utilities", "power", "sustainable", "duurzaam", "renewable",
    )),
)

# Term pairs that mark two texts as belonging to unrelated markets. Checked in
# both directions.
INCOMPATIBLE_PAIRS: Tuple[Tuple[str, str], ...] = (
    ("transport", "handel"),
    ("software", "manufacturing"),
    ("retail", "finance"),
    ("construction", "healthcare"),
)

# Table order matters: the first sector with a hit wins.
SECTOR_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "transport": (
        "transport", "logistiek", "logistics", "shipping", "maritiem", "maritime", "cargo",
        "freight", "scheepvaart", "short sea", "deep sea",
    ),
    "handel": (
        "handel", "trading", "trade", "handelsbemiddeling", "broker", "groothandel",
        "wholesale", "retail",
    ),
    "software": (
        "software", "it", "technology", "tech", "digital", "automation", "saas", "platform",
        "applicatie",
    ),
    "manufacturing": (
        "manufacturing", "production", "productie", "fabricage", "industrie", "industrial",
        "fabriek",
    ),
    "construction": (
        "bouw", "construction", "building", "contractors", "aannemers", "infrastructuur",
    ),
    "services": (
        "diensten", "services", "dienstverlening", "consultancy", "advies", "consulting",
    ),
    "finance": (
        "finance", "financial", "banking", "insurance", "verzekering", "fintech", "bank",
    ),
    "healthcare": (
        "healthcare", "medical", "medisch", "zorg", "gezondheid", "pharma", "farmaceutisch",
    ),
}

DOMAIN_KEYWORDS: Tuple[str, ...] = (
    "b2b", "b2c", "dealer", "tender", "aanbesteding", "maatwerk", "eto", "cto",
    "field service", "maintenance", "manufacturing", "automotive", "healthcare", "fintech",
    "iot", "ai", "automation", "digital", "maritiem", "maritime", "transport", "logistiek",
    "logistics", "shipping", "cargo", "freight", "international", "internationaal",
    "scheepvaart", "short sea", "deep sea",
)

# Qualitative deal-size labels, checked in order; the first substring hit wins.
DEAL_SIZE_TIERS: Tuple[Tuple[str, int], ...] = (
    ("klein", 1),
    ("small", 1),
    ("mkb", 2),
    ("sme", 2),
    ("middel", 2),
    ("medium", 2),
    ("groot", 3),
    ("large", 3),
    ("enterprise", 4),
    ("multinational", 4),
    ("nederlandse bedrijven", 2),
    ("dutch companies", 2),
)

# Upper bounds (exclusive) of the amount buckets; anything larger is tier 4.
DEAL_SIZE_AMOUNT_BOUNDS: Tuple[Tuple[float, int], ...] = (
    (50_000, 1),
    (500_000, 2),
    (5_000_000, 3),
)

NOT_AVAILABLE_SENTINELS = frozenset({
    "niet beschikbaar",
    "not available",
    "n/a",
    "na",
    "onbekend",
    "unknown",
})
