# model/attempt.py
from datetime import datetime
from enum import Enum
from pydantic import BaseModel, Field, computed_field, field_validator

from model.case import utcnow
from util.types import QuestionType


class AttemptStatus(str, Enum):
    NEED_INFO = "NEED_INFO"
    DONE = "DONE"
    LOW_CONFIDENCE = "LOW_CONFIDENCE"
    ERROR = "ERROR"
    HALLUCINATION_DETECTED = "HALLUCINATION_DETECTED"


class ConfidenceLevel(str, Enum):
    high = "high"
    medium = "medium"
    low = "low"


class Severity(str, Enum):
    error = "error"
    warning = "warning"
    info = "info"


class VerificationOutcome(str, Enum):
    passed = "passed"
    corrected = "corrected"
    unrecoverable = "unrecoverable"
    skipped = "skipped"


class Evidence(BaseModel):
    source: str
    docId: str
    ref: str
    excerpt: str = ""

    # Keep stored excerpts bounded even when a caller forgets to trim.
    @field_validator("excerpt")
    @classmethod
    def _cap_excerpt(cls, v: str) -> str:
        return v if len(v) <= 1200 else v[:1200] + " …"


class Alternative(BaseModel):
    code: str
    reason: str = ""
    confidence: float | None = None


class QuestionOption(BaseModel):
    value: str
    label: str


class NextQuestion(BaseModel):
    id: str
    label: str
    type: QuestionType = "text"
    options: list[QuestionOption] = Field(default_factory=list)
    required: bool = True


class Violation(BaseModel):
    rule: str
    severity: Severity
    message: str
    suggestion: str | None = None


class Verification(BaseModel):
    outcome: VerificationOutcome
    reason: str
    originalCode: str | None = None
    finalCode: str | None = None
    droppedEvidence: int = 0


class CalibrationReport(BaseModel):
    originalConfidence: float
    calibratedConfidence: float
    level: ConfidenceLevel
    qualityScore: float
    factors: dict[str, float]
    reason: str
    needsMoreInfo: bool


class ValidationReport(BaseModel):
    valid: bool
    violations: list[Violation] = Field(default_factory=list)


class ClassificationAttempt(BaseModel):
    id: str
    caseId: str
    round: int = 1
    status: AttemptStatus
    recommendedCode: str | None = None
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    confidenceLevel: ConfidenceLevel | None = None
    justification: str | None = None
    alternatives: list[Alternative] = Field(default_factory=list)
    evidence: list[Evidence] = Field(default_factory=list)
    nextQuestion: NextQuestion | None = None
    answers: dict[str, str] = Field(default_factory=dict)
    candidateCodes: list[str] = Field(default_factory=list)
    verification: Verification | None = None
    calibration: CalibrationReport | None = None
    validation: ValidationReport | None = None
    errorMessage: str | None = None
    durationMs: int = 0
    createdAt: datetime = Field(default_factory=utcnow)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def actionable(self) -> bool:
        """A result a reviewer can act on: a verified code backed by evidence."""
        return (
            self.status in (AttemptStatus.DONE, AttemptStatus.LOW_CONFIDENCE)
            and bool(self.recommendedCode)
            and bool(self.evidence)
        )
