# config/tables.py
"""
Weight and rule tables for calibration and business-rule validation.

The tables are frozen dataclasses over read-only mappings. The pipeline receives
them as constructor arguments so tests (or a different customs regime) can swap
in other values without touching the algorithms.
"""
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Tuple

from model.registry import DocumentType, KnowledgeSource


def _ro(d: dict) -> Mapping:
    return MappingProxyType(dict(d))


@dataclass(frozen=True)
class CalibrationTables:
    source_weights: Mapping[str, float] = field(
        default_factory=lambda: _ro(
            {
                KnowledgeSource.omd: 1.0,
                KnowledgeSource.maroc: 0.95,
                KnowledgeSource.lois: 0.85,
                KnowledgeSource.finance: 0.80,
                KnowledgeSource.dum: 0.75,
            }
        )
    )
    unknown_source_weight: float = 0.5

    document_weights: Mapping[str, float] = field(
        default_factory=lambda: _ro(
            {
                DocumentType.tech_sheet: 1.0,
                DocumentType.dum: 0.95,
                DocumentType.certificate: 0.90,
                DocumentType.invoice: 0.85,
                DocumentType.packing_list: 0.70,
                DocumentType.photo_label: 0.75,
                DocumentType.photo_plate: 0.65,
                DocumentType.photo_product: 0.60,
                DocumentType.admin_ingestion: 0.50,
                DocumentType.other: 0.40,
            }
        )
    )
    unknown_document_weight: float = 0.5

    # qualityScore = sum(weight * factor)
    factor_weights: Mapping[str, float] = field(
        default_factory=lambda: _ro(
            {
                "evidence_quality": 0.35,
                "source_agreement": 0.25,
                "document_quality": 0.25,
                "candidate_clarity": 0.15,
            }
        )
    )

    # (upper bound exclusive, multiplier); anything above the last bound uses boost
    quality_bands: Tuple[Tuple[float, float], ...] = (
        (0.30, 0.60),
        (0.50, 0.80),
        (0.70, 0.95),
        (0.85, 1.00),
    )
    boost_multiplier: float = 1.05
    boost_cap: float = 0.98

    def source_weight(self, source: str) -> float:
        return self.source_weights.get(source, self.unknown_source_weight)

    def document_weight(self, doc_type: str) -> float:
        return self.document_weights.get(doc_type, self.unknown_document_weight)


@dataclass(frozen=True)
class CountryRestriction:
    countries: Tuple[str, ...]
    chapters: Tuple[str, ...]  # "*" means every chapter
    message: str


@dataclass(frozen=True)
class BusinessRuleTables:
    country_restrictions: Tuple[CountryRestriction, ...] = (
        CountryRestriction(
            ("IL", "ISR", "ISRAEL"), ("*",), "Trade restrictions with Israel"
        ),
        CountryRestriction(
            ("KP", "PRK", "NORTH KOREA", "COREE DU NORD"),
            ("*",),
            "Full embargo on North Korea",
        ),
        CountryRestriction(
            ("IR", "IRN", "IRAN"),
            ("27", "84", "85", "87", "88", "89", "93"),
            "Sector restrictions on Iran (oil, machinery, weapons)",
        ),
        CountryRestriction(
            ("RU", "RUS", "RUSSIA", "RUSSIE"),
            ("27", "71", "84", "85", "87", "88", "89"),
            "Sector sanctions on Russia",
        ),
    )

    textile_chapters: Tuple[str, ...] = ("61", "62", "63")
    composition_keywords: Tuple[str, ...] = (
        "coton", "cotton", "polyester", "nylon", "soie", "silk", "laine", "wool",
        "lin", "linen", "viscose", "acrylique", "acrylic", "elasthanne", "spandex",
        "lycra", "modal", "tencel", "chanvre", "hemp", "jute", "ramie",
    )
    knit_keywords: Tuple[str, ...] = (
        "tricoté", "tricot", "knit", "knitted", "maille", "jersey", "rib",
    )
    woven_keywords: Tuple[str, ...] = (
        "tissé", "tissu", "woven", "chaîne", "trame", "popeline", "sergé", "satin",
    )

    sensitive_chapters: Mapping[str, str] = field(
        default_factory=lambda: _ro(
            {
                "93": "Arms and ammunition - licence required",
                "97": "Works of art - check authenticity",
                "30": "Pharmaceutical products - marketing authorisation required",
                "29": "Organic chemicals - REACH regulation applies",
                "28": "Inorganic chemicals - potential precursors",
            }
        )
    )

    min_confidence: float = 0.50
    min_evidence: int = 2
    composition_penalty: float = 0.85
    evidence_penalty: float = 0.90
    penalty_floor: float = 0.40


DEFAULT_CALIBRATION = CalibrationTables()
DEFAULT_RULES = BusinessRuleTables()
