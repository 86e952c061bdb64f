import pytest

from core.entities import ModelOutput
from core.hallucination_verifier import ground_evidence, verify_recommendation
from model.attempt import (
    Alternative,
    AttemptStatus,
    ConfidenceLevel,
    Evidence,
    VerificationOutcome,
)
from model.registry import KnowledgeChunk, Precedent
from util.constants import CORRECTION_MARKER


def _out(code, alternatives=(), justification="Portable ADP machine."):
    return ModelOutput(
        status=AttemptStatus.DONE,
        recommended_code=code,
        confidence=90,
        justification=justification,
        alternatives=list(alternatives),
    )


def test_exact_match_passes_unchanged():
    v = verify_recommendation(_out("8471.30.00.00"), 0.9, ["8471300000"])
    assert v.outcome == VerificationOutcome.passed
    assert v.code == "8471300000"
    assert v.confidence == 0.9
    assert v.level == ConfidenceLevel.high
    assert v.status == AttemptStatus.DONE


def test_out_of_registry_code_is_corrected_by_heading():
    v = verify_recommendation(_out("8471300099"), 0.9, ["8471300000"])
    assert v.outcome == VerificationOutcome.corrected
    assert v.code == "8471300000"
    assert v.original_code == "8471300099"
    assert v.confidence <= 0.8 * 0.9 + 1e-9
    assert v.confidence == pytest.approx(0.72)
    assert v.level == ConfidenceLevel.medium
    assert v.justification.startswith(CORRECTION_MARKER)
    assert v.status == AttemptStatus.DONE


def test_correction_respects_floor():
    v = verify_recommendation(_out("8471300099"), 0.4, ["8471300000"])
    assert v.confidence == pytest.approx(0.5)
    assert v.level == ConfidenceLevel.low


def test_first_matching_alternative_is_used():
    out = _out(
        "9999999999",
        alternatives=[
            Alternative(code="1111111111"),
            Alternative(code="8471.41.00.00"),
            Alternative(code="8471300000"),
        ],
    )
    v = verify_recommendation(out, 0.8, ["8471300000", "8471410000"])
    assert v.outcome == VerificationOutcome.corrected
    assert v.code == "8471410000"
    assert "alternative" in v.reason


def test_heading_match_wins_over_alternatives():
    out = _out("8471419999", alternatives=[Alternative(code="8471300000")])
    v = verify_recommendation(out, 0.8, ["8471300000", "8471410000"])
    assert v.code == "8471410000"


def test_unrecoverable_nulls_code_and_confidence():
    v = verify_recommendation(_out("0101210000"), 0.95, ["8471300000"])
    assert v.outcome == VerificationOutcome.unrecoverable
    assert v.status == AttemptStatus.HALLUCINATION_DETECTED
    assert v.code is None
    assert v.confidence is None
    assert v.level is None
    assert v.reason


def test_missing_code_is_skipped():
    v = verify_recommendation(_out(None), None, ["8471300000"])
    assert v.outcome == VerificationOutcome.skipped
    assert v.code is None


def test_ground_evidence_drops_uncited_sources():
    chunks = [
        KnowledgeChunk(id="k1", source="omd", docId="omd-84", ref="note 1", text="Full text of note 1"),
        KnowledgeChunk(id="k2", source="maroc", docId="ma-1", ref="art. 3", text="Article 3 text"),
    ]
    precedents = [Precedent(code="8471300000", description="Laptop 14 inch", reliability=0.9, docId="dum-7")]
    cited = [
        Evidence(source="omd", docId="omd-84", ref="note 1", excerpt="note 1"),
        Evidence(source="omd", docId="invented", ref="x", excerpt="made up"),
        Evidence(source="lois", docId="ma-1", ref="wrong ref", excerpt=""),
        Evidence(source="dum", docId="dum-7", ref="", excerpt=""),
        Evidence(source="omd", docId="omd-84", ref="note 1", excerpt="duplicate"),
    ]
    grounded, dropped = ground_evidence(cited, chunks, precedents)

    assert [(e.docId, e.ref) for e in grounded] == [
        ("omd-84", "note 1"),
        ("ma-1", "art. 3"),
        ("dum-7", "8471300000"),
    ]
    assert dropped == 2
    # source comes from what was retrieved, not from the citation
    assert grounded[1].source == "maroc"
    assert grounded[1].excerpt == "Article 3 text"
    assert grounded[2].source == "dum"
