"""Build structured prospect profiles from free-text company descriptions."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

from .taxonomy import DOMAIN_KEYWORDS, SECTOR_KEYWORDS
from .utils import contains_any, find_terms


DEFAULT_CORE_ACTIVITY = "internationale maritieme dienstverlening"

# "Sector: Transport, Kernactiviteit: logistiek" holds two labelled fields on one line.
LABEL_SEGMENT_SPLIT = re.compile(r"[,;|]\s*(?=[\w /&-]{2,40}:)")
ETO_PATTERN = re.compile(r"engineer[\s-]to[\s-]order|\beto\b")
CTO_PATTERN = re.compile(r"configure[\s-]to[\s-]order|\bcto\b")

CORE_ACTIVITY_LABELS = ("kernactiviteit", "core activity", "activiteit")
SECTOR_LABELS = ("sector", "industrie", "industry")
SERVICE_MODEL_LABELS = ("servicemodel", "service model")
PRODUCT_LABELS = ("producten", "diensten", "products", "services")
SALES_LABELS = ("verkoop", "sales")
CUSTOMER_LABELS = ("klanten", "customers", "doelgroep", "klantprofiel")
DEAL_SIZE_PATTERN = re.compile(r"\bdeal(?:s|size)?\b|omvang|grootte")
DEALER_TERMS = ("dealer", "indirect", "partner")
TENDER_TERMS = ("tender", "aanbesteding")


@dataclass(frozen=True)
class CustomerFields:
    """Column names of a customer record."""

    company: str = "Bedrijf"
    sector: str = "Sector"
    core_activity: str = "Kernactiviteit"
    products: str = "Producten/Diensten"
    sales_model: str = "Verkoopmodel"
    service_model: str = "Servicemodel"
    customer_profile: str = "Klantprofiel"
    deal_size: str = "Dealsize"
    core_process: str = "Kernproces"

    @property
    def required(self) -> Tuple[str, str, str]:
        return (self.company, self.sector, self.core_activity)

    def value(self, customer: Mapping[str, str], attribute: str) -> str:
        raw = customer.get(getattr(self, attribute))
        return str(raw).strip() if raw is not None else ""


DEFAULT_FIELDS = CustomerFields()


@dataclass(frozen=True)
class InputProfile:
    sector: str = ""
    core_activity: str = ""
    products: str = ""
    sales_model: str = ""
    service_model: str = ""
    customer_profile: str = ""
    deal_size: str = ""
    dealer_driven: bool = False
    tender_involved: bool = False
    engineer_to_order: bool = False
    configure_to_order: bool = False
    keywords: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, object]:
        return {
            "sector": self.sector,
            "core_activity": self.core_activity,
            "products": self.products,
            "sales_model": self.sales_model,
            "service_model": self.service_model,
            "customer_profile": self.customer_profile,
            "deal_size": self.deal_size,
            "dealer_driven": self.dealer_driven,
            "tender_involved": self.tender_involved,
            "engineer_to_order": self.engineer_to_order,
            "configure_to_order": self.configure_to_order,
            "keywords": list(self.keywords),
        }


def _label_matches(label: str, candidates: Tuple[str, ...]) -> bool:
    return any(candidate in label for candidate in candidates)


class ProspectProfileBuilder:
    """Extract an :class:`InputProfile` from a prospect description."""

    def __init__(self, description: Optional[str]):
        self.description = description or ""
        self.text = self.description.lower()

    def build(self) -> InputProfile:
        values: Dict[str, str] = {}
        products: List[str] = []
        dealer_driven = False

        for segment in self._segments():
            label, has_colon, remainder = segment.partition(":")
            label = label.strip().lower()
            value = remainder.strip()

            if not has_colon:
                dealer_driven = self._ingest_unlabelled(segment, values) or dealer_driven
                continue

            if _label_matches(label, CORE_ACTIVITY_LABELS):
                values["core_activity"] = value
            elif _label_matches(label, SECTOR_LABELS):
                values["sector_label"] = value
            elif _label_matches(label, SERVICE_MODEL_LABELS):
                values["service_model"] = value
            elif _label_matches(label, PRODUCT_LABELS):
                if value:
                    products.append(value)
            elif _label_matches(label, SALES_LABELS):
                values["sales_model"] = self._sales_model(segment, value)
                dealer_driven = dealer_driven or contains_any(segment.lower(), DEALER_TERMS)
            elif _label_matches(label, CUSTOMER_LABELS):
                values["customer_profile"] = value
            elif DEAL_SIZE_PATTERN.search(label):
                values["deal_size"] = value

        core_activity = values.get("core_activity", "")
        if not core_activity and "internationale" in self.text and "maritieme" in self.text:
            core_activity = DEFAULT_CORE_ACTIVITY

        return InputProfile(
            sector=(self._scan_sector() or values.get("sector_label", "")).strip(),
            core_activity=core_activity.strip(),
            products=" ".join(products).strip(),
            sales_model=values.get("sales_model", "").strip(),
            service_model=values.get("service_model", "").strip(),
            customer_profile=values.get("customer_profile", "").strip(),
            deal_size=values.get("deal_size", "").strip(),
            dealer_driven=dealer_driven,
            tender_involved=contains_any(self.text, TENDER_TERMS),
            engineer_to_order=ETO_PATTERN.search(self.text) is not None,
            configure_to_order=CTO_PATTERN.search(self.text) is not None,
            keywords=tuple(find_terms(self.text, DOMAIN_KEYWORDS)),
        )

    def _segments(self) -> List[str]:
        segments: List[str] = []
        for line in self.description.splitlines():
            line = line.strip()
            if line:
                segments.extend(part.strip() for part in LABEL_SEGMENT_SPLIT.split(line) if part.strip())
        return segments

    def _scan_sector(self) -> str:
        for sector, keywords in SECTOR_KEYWORDS.items():
            if contains_any(self.text, keywords):
                return sector
        return ""

    def _ingest_unlabelled(self, segment: str, values: Dict[str, str]) -> bool:
        """Unlabelled lines can still describe sales or deal size. Returns the dealer flag."""

        lower = segment.lower()
        if _label_matches(lower, SALES_LABELS):
            values["sales_model"] = self._sales_model(segment, segment)
            return contains_any(lower, DEALER_TERMS)
        if DEAL_SIZE_PATTERN.search(lower):
            values["deal_size"] = segment
        return False

    @staticmethod
    def _sales_model(segment: str, value: str) -> str:
        lower = segment.lower()
        if "b2c" in lower:
            return "B2C"
        if "b2b" in lower:
            return "B2B"
        return value


def extract_profile(description: Optional[str]) -> InputProfile:
    return ProspectProfileBuilder(description).build()
