# service/classification_service.py
import logging
from typing import Mapping, Sequence
from core.classification_pipeline import ClassificationOrchestrator, derive_case_status
from model.api import (
    AnswerRequest,
    AttemptsResponse,
    CaseResponse,
    ClassificationContext,
    ClassifyRequest,
    CreateCaseRequest,
)
from model.attempt import ClassificationAttempt
from model.case import CaseStatus, ProductCase
from model.registry import DocumentRef
from repository.attempt_repository import AttemptRepository
from repository.case_repository import CaseRepository
from repository.lock_repository import CaseLockRepository
from util.enums import ErrorMessage
from util.errors import AppError, CaseNotFoundError, CaseTransitionError

logger = logging.getLogger(__name__)


class ClassificationService:
    def __init__(
        self,
        cases: CaseRepository,
        attempts: AttemptRepository,
        locks: CaseLockRepository,
        orchestrator: ClassificationOrchestrator,
    ) -> None:
        self._cases = cases
        self._attempts = attempts
        self._locks = locks
        self._orchestrator = orchestrator

    async def _require_case(self, case_id: str) -> ProductCase:
        case = await self._cases.get(case_id)
        if case is None:
            logger.warning("case.not_found case=%s", case_id)
            raise AppError.of(ErrorMessage.CASE_NOT_FOUND)
        return case

    async def create_case(self, req: CreateCaseRequest) -> ProductCase:
        case = await self._cases.create(req)
        logger.info("case.created case=%s direction=%s", case.id, case.direction.value)
        return case

    async def get_case(self, case_id: str) -> CaseResponse:
        case = await self._require_case(case_id)
        latest = await self._attempts.latest(case_id)
        # a lost status write is repaired from the attempt log on read
        if latest is not None and case.status != CaseStatus.VALIDATED:
            derived = derive_case_status(latest)
            if derived != case.status:
                logger.info(
                    "case.status.repaired case=%s stored=%s derived=%s",
                    case_id,
                    case.status.value,
                    derived.value,
                )
                await self._cases.set_status(case_id, derived)
                case = case.model_copy(update={"status": derived})
        return CaseResponse(case=case, latestAttempt=latest)

    async def list_attempts(self, case_id: str) -> AttemptsResponse:
        await self._require_case(case_id)
        attempts = await self._attempts.all(case_id)
        return AttemptsResponse(caseId=case_id, attempts=attempts)

    async def _run(
        self,
        case_id: str,
        document_refs: Sequence[DocumentRef],
        answers: Mapping[str, str],
        context: ClassificationContext,
    ) -> ClassificationAttempt:
        await self._require_case(case_id)
        token = await self._locks.acquire(case_id)
        if token is None:
            logger.warning("classify.busy case=%s", case_id)
            raise AppError.of(ErrorMessage.CASE_BUSY)
        try:
            return await self._orchestrator.classify(case_id, document_refs, answers, context)
        except CaseNotFoundError:
            raise AppError.of(ErrorMessage.CASE_NOT_FOUND)
        except Exception:
            logger.error("classify.pipeline.error case=%s", case_id)
            raise
        finally:
            await self._locks.release(case_id, token)

    async def classify(self, case_id: str, req: ClassifyRequest) -> ClassificationAttempt:
        return await self._run(case_id, req.documentRefs, req.answers, req.context)

    async def answer(self, case_id: str, req: AnswerRequest) -> ClassificationAttempt:
        logger.info("classify.answer case=%s question=%s", case_id, req.questionId)
        return await self._run(
            case_id, req.documentRefs, {req.questionId: req.answer}, req.context
        )

    async def validate(self, case_id: str) -> ProductCase:
        try:
            return await self._orchestrator.validate_case(case_id)
        except CaseNotFoundError:
            raise AppError.of(ErrorMessage.CASE_NOT_FOUND)
        except CaseTransitionError:
            logger.warning("case.validate.rejected case=%s", case_id)
            raise AppError.of(ErrorMessage.CASE_NOT_VALIDATABLE)
