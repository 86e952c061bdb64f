# core/business_rules.py
import re
from typing import List, Optional, Sequence

from config.tables import DEFAULT_RULES, BusinessRuleTables
from core.entities import ValidationResult, level_for
from model.attempt import AttemptStatus, ConfidenceLevel, Evidence, Severity, Violation
from util import constants
from util.functions import contains_keyword, fold
import logging

logger = logging.getLogger(__name__)

_PERCENTAGE = re.compile(r"\d+\s*%")


def _country_key(country: str) -> str:
    return " ".join(fold(country).upper().split())


def _restriction_violations(
    chapter: str, origin_country: str, tables: BusinessRuleTables
) -> List[Violation]:
    country = _country_key(origin_country)
    out: List[Violation] = []
    for r in tables.country_restrictions:
        if country not in {_country_key(c) for c in r.countries}:
            continue
        if "*" in r.chapters or chapter in r.chapters:
            out.append(
                Violation(
                    rule="COUNTRY_RESTRICTION",
                    severity=Severity.warning,
                    message=r.message,
                    suggestion="Check the import licences required for this origin",
                )
            )
    return out


def _has_composition(
    product_text: str, material_composition: Sequence[str], tables: BusinessRuleTables
) -> bool:
    if any(m.strip() for m in material_composition):
        return True
    if contains_keyword(product_text, tables.composition_keywords):
        return True
    return bool(_PERCENTAGE.search(product_text))


def _construction_violations(chapter: str, product_text: str, tables: BusinessRuleTables) -> List[Violation]:
    knit = contains_keyword(product_text, tables.knit_keywords)
    woven = contains_keyword(product_text, tables.woven_keywords)
    out: List[Violation] = []
    if chapter == "61" and woven:
        out.append(
            Violation(
                rule="TEXTILE_CONSTRUCTION_MISMATCH",
                severity=Severity.error,
                message=f"Woven product ({', '.join(woven)}) classified in chapter 61 (knitted)",
                suggestion="Chapter 62 usually covers woven articles",
            )
        )
    if chapter == "62" and knit:
        out.append(
            Violation(
                rule="TEXTILE_CONSTRUCTION_MISMATCH",
                severity=Severity.error,
                message=f"Knitted product ({', '.join(knit)}) classified in chapter 62 (woven)",
                suggestion="Chapter 61 usually covers knitted or crocheted articles",
            )
        )
    if not knit and not woven:
        kind = "knitted" if chapter == "61" else "woven"
        out.append(
            Violation(
                rule="TEXTILE_CONSTRUCTION_UNCLEAR",
                severity=Severity.info,
                message=f"Chapter {chapter} ({kind}) but the construction is not stated",
                suggestion="Confirm whether the product is knitted (ch.61) or woven (ch.62)",
            )
        )
    return out


def validate_with_business_rules(
    status: AttemptStatus,
    code: Optional[str],
    confidence: Optional[float],
    level: Optional[ConfidenceLevel],
    evidence: Sequence[Evidence],
    *,
    origin_country: str,
    product_text: str,
    material_composition: Sequence[str] = (),
    tables: BusinessRuleTables = DEFAULT_RULES,
) -> ValidationResult:
    """
    Evaluate every domain rule against a result. Violations are advisory: the
    caller keeps the attempt status, only confidence and level may move.
    """
    if status not in (AttemptStatus.DONE, AttemptStatus.LOW_CONFIDENCE) or not code:
        return ValidationResult(valid=True, violations=[], confidence=confidence, level=level)

    chapter = code[:2]
    violations: List[Violation] = []
    adjusted = confidence

    violations.extend(_restriction_violations(chapter, origin_country, tables))

    if chapter in tables.textile_chapters:
        if not _has_composition(product_text, material_composition, tables):
            violations.append(
                Violation(
                    rule="TEXTILE_COMPOSITION_MISSING",
                    severity=Severity.warning,
                    message="Textile product without a stated material composition",
                    suggestion="State the composition (e.g. 100% cotton, 65% polyester 35% cotton)",
                )
            )
            if adjusted is not None:
                adjusted = max(tables.penalty_floor, adjusted * tables.composition_penalty)
        if chapter in ("61", "62"):
            violations.extend(_construction_violations(chapter, product_text, tables))

    if confidence is not None and confidence < tables.min_confidence:
        violations.append(
            Violation(
                rule="LOW_CONFIDENCE",
                severity=Severity.warning,
                message=f"Confidence too low ({round(confidence * 100)}% < {round(tables.min_confidence * 100)}%)",
                suggestion="Attach more documents to improve accuracy",
            )
        )

    if len(evidence) < tables.min_evidence:
        violations.append(
            Violation(
                rule="INSUFFICIENT_EVIDENCE",
                severity=Severity.warning,
                message=f"Only {len(evidence)} piece(s) of documentary evidence",
                suggestion="The classification lacks independent sources",
            )
        )
        if adjusted is not None:
            adjusted = max(tables.penalty_floor, adjusted * tables.evidence_penalty)

    if evidence and len({e.source for e in evidence}) == 1:
        violations.append(
            Violation(
                rule="SINGLE_SOURCE_TYPE",
                severity=Severity.info,
                message="Classification rests on a single source type",
                suggestion="Cross-check with explanatory notes, national rules and precedents",
            )
        )

    sensitive = tables.sensitive_chapters.get(chapter)
    if sensitive:
        violations.append(
            Violation(
                rule="SENSITIVE_CHAPTER",
                severity=Severity.warning,
                message=sensitive,
                suggestion="Check the specific authorisations required",
            )
        )

    if adjusted is not None and adjusted != confidence:
        level = level_for(
            adjusted,
            constants.CALIBRATED_HIGH_THRESHOLD,
            constants.CALIBRATED_MEDIUM_THRESHOLD,
        )

    valid = not any(v.severity == Severity.error for v in violations)
    logger.info(
        "rules.result code=%s valid=%s violations=%d", code, valid, len(violations)
    )
    return ValidationResult(valid=valid, violations=violations, confidence=adjusted, level=level)
