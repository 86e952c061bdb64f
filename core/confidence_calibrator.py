# core/confidence_calibrator.py
"""
Confidence calibration: rescales the model's self-reported confidence with
independent signals (what was cited, from where, on which documents, and how
clear-cut the candidate choice was).

Every function here is pure. Weight tables come in as arguments.
"""
from typing import Dict, Sequence

from config.tables import DEFAULT_CALIBRATION, CalibrationTables
from core.entities import CalibrationResult, level_for
from model.attempt import Evidence
from model.registry import DocumentType
from util import constants


def evidence_quality(
    evidence: Sequence[Evidence], tables: CalibrationTables = DEFAULT_CALIBRATION
) -> float:
    if not evidence:
        return 0.0
    n = len(evidence)
    count_score = min(1.0, n / 10)
    diversity = min(1.0, len({e.source for e in evidence}) / 4)
    mean_weight = sum(tables.source_weight(e.source) for e in evidence) / n
    excerpt_score = min(1.0, (sum(len(e.excerpt) for e in evidence) / n) / 300)
    score = 0.25 * count_score + 0.30 * diversity + 0.30 * mean_weight + 0.15 * excerpt_score
    return round(score, 2)


def source_agreement(evidence: Sequence[Evidence]) -> float:
    if not evidence:
        return 0.0
    if len(evidence) == 1:
        return 0.5
    distinct = len({e.source for e in evidence})
    if distinct >= 3:
        return 0.9
    if distinct == 2:
        return 0.7
    return 0.5


def document_quality(
    document_types: Sequence[str], tables: CalibrationTables = DEFAULT_CALIBRATION
) -> float:
    if not document_types:
        return 0.1
    mean_weight = sum(tables.document_weight(t) for t in document_types) / len(document_types)
    diversity_bonus = min(0.2, 0.05 * len(set(document_types)))
    critical_bonus = (0.10 if DocumentType.tech_sheet in document_types else 0.0) + (
        0.05 if DocumentType.certificate in document_types else 0.0
    )
    return round(min(1.0, mean_weight + diversity_bonus + critical_bonus), 2)


def candidate_clarity(alternatives_count: int, top_score: float) -> float:
    score = 0.5 + {0: 0.3, 1: 0.2, 2: 0.1}.get(alternatives_count, 0.0)
    if top_score >= 0.8:
        score += 0.2
    elif top_score >= 0.6:
        score += 0.1
    return min(1.0, round(score, 2))


def quality_multiplier(
    quality_score: float, raw: float, tables: CalibrationTables = DEFAULT_CALIBRATION
) -> tuple[float, str]:
    reasons = (
        "evidence quality insufficient",
        "limited evidence, confidence reduced",
        "acceptable evidence quality",
        "good evidence quality",
    )
    for (bound, mult), reason in zip(tables.quality_bands, reasons):
        if quality_score < bound:
            return raw * mult, reason
    return min(tables.boost_cap, raw * tables.boost_multiplier), "excellent evidence quality"


def calibrate_confidence(
    raw_confidence: float,
    evidence: Sequence[Evidence],
    document_types: Sequence[str],
    alternatives_count: int,
    top_score: float,
    tables: CalibrationTables = DEFAULT_CALIBRATION,
) -> CalibrationResult:
    """
    `raw_confidence` is in [0,1]. Returns the calibrated value with its level
    (0.80/0.65 cutoffs), the factor breakdown and a readable reason.
    """
    factors: Dict[str, float] = {
        "evidence_quality": evidence_quality(evidence, tables),
        "source_agreement": source_agreement(evidence),
        "document_quality": document_quality(document_types, tables),
        "candidate_clarity": candidate_clarity(alternatives_count, top_score),
    }
    quality = sum(tables.factor_weights[k] * v for k, v in factors.items())

    calibrated, why = quality_multiplier(quality, raw_confidence, tables)
    calibrated = max(0.0, min(1.0, calibrated))
    level = level_for(
        calibrated,
        constants.CALIBRATED_HIGH_THRESHOLD,
        constants.CALIBRATED_MEDIUM_THRESHOLD,
    )
    breakdown = ", ".join(f"{k}={v:.2f}" for k, v in factors.items())
    return CalibrationResult(
        original_confidence=raw_confidence,
        calibrated_confidence=calibrated,
        level=level,
        quality_score=round(quality, 4),
        factors=factors,
        reason=f"{why} (quality={quality:.2f}; {breakdown})",
    )
