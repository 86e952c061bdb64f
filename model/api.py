# model/api.py
from pydantic import BaseModel, Field
from model.attempt import ClassificationAttempt
from model.case import ProductCase, TradeDirection
from model.registry import DocumentRef


class CreateCaseRequest(BaseModel):
    ownerId: str = Field(min_length=1)
    direction: TradeDirection
    originCountry: str = Field(min_length=2)
    productName: str = Field(min_length=1)
    productDescription: str | None = None


class ClassificationContext(BaseModel):
    """Extra product facts gathered upstream (document extraction, the user)."""

    productDescription: str | None = None
    materialComposition: list[str] = Field(default_factory=list)
    usage: str | None = None


class ClassifyRequest(BaseModel):
    documentRefs: list[DocumentRef] = Field(default_factory=list)
    answers: dict[str, str] = Field(default_factory=dict)
    context: ClassificationContext = Field(default_factory=ClassificationContext)


class AnswerRequest(BaseModel):
    questionId: str = Field(min_length=1)
    answer: str = Field(min_length=1)
    documentRefs: list[DocumentRef] = Field(default_factory=list)
    context: ClassificationContext = Field(default_factory=ClassificationContext)


class CaseResponse(BaseModel):
    case: ProductCase
    latestAttempt: ClassificationAttempt | None = None


class AttemptsResponse(BaseModel):
    caseId: str
    attempts: list[ClassificationAttempt]
