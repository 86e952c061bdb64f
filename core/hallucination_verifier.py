# core/hallucination_verifier.py
"""
Registry membership check for a model recommendation.

Order of fallbacks: exact code, then the first candidate sharing the 6-digit
international prefix, then the first alternative that is itself a candidate.
Anything else is a hallucination and loses its code and confidence.
"""
from typing import List, Optional, Sequence, Tuple

from core.entities import ModelOutput, VerificationResult, level_for
from model.attempt import AttemptStatus, Evidence, VerificationOutcome
from model.registry import KnowledgeChunk, Precedent
from util import constants
from util.functions import clip_words, normalize_code
import logging

logger = logging.getLogger(__name__)

CORRECTION_FACTOR = 0.8
CORRECTION_FLOOR = 0.5


def _corrected(
    output: ModelOutput, confidence: Optional[float], code: str, reason: str
) -> VerificationResult:
    conf = max(CORRECTION_FLOOR, (confidence or 0.0) * CORRECTION_FACTOR)
    just = output.justification or ""
    return VerificationResult(
        outcome=VerificationOutcome.corrected,
        reason=reason,
        status=output.status,
        code=code,
        confidence=conf,
        level=level_for(
            conf, constants.MODEL_HIGH_THRESHOLD, constants.MODEL_MEDIUM_THRESHOLD
        ),
        justification=f"{constants.CORRECTION_MARKER} {just}".strip(),
        original_code=output.recommended_code,
    )


def verify_recommendation(
    output: ModelOutput,
    confidence: Optional[float],
    candidate_codes: Sequence[str],
) -> VerificationResult:
    """
    `confidence` is the already-normalized [0,1] value. The result always carries
    an outcome and a reason, whichever branch was taken.
    """
    candidates = [normalize_code(c) for c in candidate_codes]
    recommended = normalize_code(output.recommended_code)

    if not recommended:
        return VerificationResult(
            outcome=VerificationOutcome.skipped,
            reason="no recommended code to verify",
            status=output.status,
            code=None,
            confidence=confidence,
            level=None
            if confidence is None
            else level_for(
                confidence, constants.MODEL_HIGH_THRESHOLD, constants.MODEL_MEDIUM_THRESHOLD
            ),
            justification=output.justification,
        )

    if recommended in candidates:
        return VerificationResult(
            outcome=VerificationOutcome.passed,
            reason="recommended code is in the candidate set",
            status=output.status,
            code=recommended,
            confidence=confidence,
            level=None
            if confidence is None
            else level_for(
                confidence, constants.MODEL_HIGH_THRESHOLD, constants.MODEL_MEDIUM_THRESHOLD
            ),
            justification=output.justification,
            original_code=output.recommended_code,
        )

    prefix = recommended[:6]
    for code in candidates:
        if code[:6] == prefix:
            logger.warning(
                "verify.corrected.prefix original=%s final=%s", recommended, code
            )
            return _corrected(
                output,
                confidence,
                code,
                f"{recommended} not in candidates; replaced by {code} (same 6-digit heading)",
            )

    for alt in output.alternatives:
        alt_code = normalize_code(alt.code)
        if alt_code in candidates:
            logger.warning(
                "verify.corrected.alternative original=%s final=%s", recommended, alt_code
            )
            return _corrected(
                output,
                confidence,
                alt_code,
                f"{recommended} not in candidates; replaced by alternative {alt_code}",
            )

    logger.warning(
        "verify.unrecoverable code=%s candidates=%d", recommended, len(candidates)
    )
    return VerificationResult(
        outcome=VerificationOutcome.unrecoverable,
        reason=f"{recommended} not in candidates and no fallback found",
        status=AttemptStatus.HALLUCINATION_DETECTED,
        code=None,
        confidence=None,
        level=None,
        justification=output.justification,
        original_code=output.recommended_code,
    )


def ground_evidence(
    evidence: Sequence[Evidence],
    knowledge: Sequence[KnowledgeChunk],
    precedents: Sequence[Precedent],
) -> Tuple[List[Evidence], int]:
    """
    Keep only citations that point at something we actually retrieved.

    A citation matches a knowledge chunk by (docId, ref), or by docId alone when
    the chunk is the only one from that document; precedents match by docId.
    Kept items take their source and excerpt from the retrieved text.
    Returns (grounded, dropped_count).
    """
    by_key = {(ch.docId, ch.ref): ch for ch in knowledge}
    by_doc: dict = {}
    for ch in knowledge:
        by_doc.setdefault(ch.docId, []).append(ch)
    prec_by_doc = {p.docId: p for p in precedents if p.docId}

    grounded: List[Evidence] = []
    seen = set()
    for ev in evidence:
        chunk = by_key.get((ev.docId, ev.ref))
        if chunk is None and len(by_doc.get(ev.docId, [])) == 1:
            chunk = by_doc[ev.docId][0]
        if chunk is not None:
            item = Evidence(
                source=chunk.source,
                docId=chunk.docId,
                ref=chunk.ref,
                excerpt=ev.excerpt if ev.excerpt and ev.excerpt in chunk.text else chunk.text,
            )
        elif ev.docId in prec_by_doc:
            p = prec_by_doc[ev.docId]
            item = Evidence(
                source="dum",
                docId=ev.docId,
                ref=ev.ref or p.code,
                excerpt=clip_words(p.description, max_words=80),
            )
        else:
            continue
        key = (item.docId, item.ref)
        if key in seen:
            continue
        seen.add(key)
        grounded.append(item)

    dropped = len(evidence) - len(grounded)
    if dropped:
        logger.info("verify.evidence.dropped count=%d kept=%d", dropped, len(grounded))
    return grounded, dropped
