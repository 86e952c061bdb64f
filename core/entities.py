# core/entities.py
from dataclasses import dataclass, field
from typing import Dict, List, Optional
import numpy as np

from model.attempt import (
    Alternative,
    AttemptStatus,
    ConfidenceLevel,
    Evidence,
    NextQuestion,
    VerificationOutcome,
    Violation,
)
from model.registry import KnowledgeChunk, Precedent, RegistryEntry


@dataclass
class EmbeddingIndex:
    """
    L2-normalized embedding matrix for cosine similarity search.
    """

    embeddings: np.ndarray  # (n, d) float32


@dataclass
class ModelOutput:
    """What the classifier said, before any normalisation or checking."""

    status: AttemptStatus
    recommended_code: Optional[str] = None
    confidence: Optional[float] = None  # 0-100 or 0-1, as returned
    justification: Optional[str] = None
    alternatives: List[Alternative] = field(default_factory=list)
    evidence: List[Evidence] = field(default_factory=list)
    next_question: Optional[NextQuestion] = None


@dataclass
class RetrievalBundle:
    candidates: List[RegistryEntry]
    knowledge: List[KnowledgeChunk]
    precedents: List[Precedent]

    def candidate_codes(self) -> List[str]:
        return [c.code10 for c in self.candidates]


@dataclass
class PromptPair:
    system: str
    user: str


@dataclass
class VerificationResult:
    outcome: VerificationOutcome
    reason: str
    status: AttemptStatus
    code: Optional[str]
    confidence: Optional[float]
    level: Optional[ConfidenceLevel]
    justification: Optional[str]
    original_code: Optional[str] = None


@dataclass
class CalibrationResult:
    original_confidence: float
    calibrated_confidence: float
    level: ConfidenceLevel
    quality_score: float
    factors: Dict[str, float]
    reason: str

    @property
    def needs_more_info(self) -> bool:
        return (
            self.calibrated_confidence < 0.50
            or self.factors["evidence_quality"] < 0.3
            or self.factors["document_quality"] < 0.2
        )


@dataclass
class ValidationResult:
    valid: bool
    violations: List[Violation]
    confidence: Optional[float]
    level: Optional[ConfidenceLevel]


def level_for(value: float, high: float, medium: float) -> ConfidenceLevel:
    if value >= high:
        return ConfidenceLevel.high
    if value >= medium:
        return ConfidenceLevel.medium
    return ConfidenceLevel.low
