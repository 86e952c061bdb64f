# controller/case_controller.py
from fastapi import APIRouter, Depends, status
from fastapi_limiter.depends import RateLimiter
from config.settings import settings
from controller.controller_dependencies import get_classification_service
from model.api import (
    AnswerRequest,
    AttemptsResponse,
    CaseResponse,
    ClassifyRequest,
    CreateCaseRequest,
)
from model.attempt import ClassificationAttempt
from model.case import ProductCase
from service.classification_service import ClassificationService
from util.constants import InternalURIs

case_router = APIRouter(
    dependencies=[
        Depends(
            RateLimiter(
                times=settings.RATE_LIMIT_TIMES, seconds=settings.RATE_LIMIT_SECONDS
            )
        )
    ]
)


@case_router.post(
    InternalURIs.CASES,
    response_model=ProductCase,
    status_code=status.HTTP_201_CREATED,
)
async def create_case(
    payload: CreateCaseRequest,
    service: ClassificationService = Depends(get_classification_service),
) -> ProductCase:
    return await service.create_case(payload)


@case_router.get(InternalURIs.CASE, response_model=CaseResponse)
async def get_case(
    caseId: str,
    service: ClassificationService = Depends(get_classification_service),
) -> CaseResponse:
    return await service.get_case(caseId)


@case_router.get(InternalURIs.CASE_ATTEMPTS, response_model=AttemptsResponse)
async def list_attempts(
    caseId: str,
    service: ClassificationService = Depends(get_classification_service),
) -> AttemptsResponse:
    return await service.list_attempts(caseId)


@case_router.post(InternalURIs.CLASSIFY, response_model=ClassificationAttempt)
async def classify(
    caseId: str,
    payload: ClassifyRequest,
    service: ClassificationService = Depends(get_classification_service),
) -> ClassificationAttempt:
    return await service.classify(caseId, payload)


@case_router.post(InternalURIs.ANSWER, response_model=ClassificationAttempt)
async def answer(
    caseId: str,
    payload: AnswerRequest,
    service: ClassificationService = Depends(get_classification_service),
) -> ClassificationAttempt:
    return await service.answer(caseId, payload)


@case_router.post(InternalURIs.VALIDATE, response_model=ProductCase)
async def validate(
    caseId: str,
    service: ClassificationService = Depends(get_classification_service),
) -> ProductCase:
    return await service.validate(caseId)
