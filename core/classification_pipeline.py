# core/classification_pipeline.py
import asyncio
from typing import Dict, List, Mapping, Optional, Sequence
from uuid import uuid4

from config.settings import settings
from config.tables import (
    DEFAULT_CALIBRATION,
    DEFAULT_RULES,
    BusinessRuleTables,
    CalibrationTables,
)
from core.business_rules import validate_with_business_rules
from core.confidence_calibrator import calibrate_confidence
from core.entities import ModelOutput, RetrievalBundle, level_for
from core.hallucination_verifier import ground_evidence, verify_recommendation
from core.interfaces import AttemptStore, CaseStore, Classifier
from core.prompt_builder import build_prompts
from core.question_bank import select_question
from core.retrievers import CandidateRetriever, KnowledgeRetriever, PrecedentRetriever
from model.api import ClassificationContext
from model.attempt import (
    Alternative,
    AttemptStatus,
    CalibrationReport,
    ClassificationAttempt,
    NextQuestion,
    ValidationReport,
    Verification,
    VerificationOutcome,
)
from model.case import CaseStatus, ProductCase
from model.registry import DocumentRef
from util import constants
from util.errors import CaseNotFoundError, CaseTransitionError, ClassifierError, TransportError
from util.functions import normalize_code
import logging
from util.timing import timed

logger = logging.getLogger(__name__)

ROUND_LIMIT_NOTE = "Clarification limit reached; escalated for human review."


def normalize_confidence(value: Optional[float]) -> Optional[float]:
    """Model confidence arrives as 0-100 (or 0-1); the pipeline works in [0,1]."""
    if value is None:
        return None
    v = float(value)
    if v > 1.0:
        v = v / 100.0
    return max(0.0, min(1.0, v))


def derive_case_status(latest: Optional[ClassificationAttempt]) -> CaseStatus:
    """
    Case status as a function of its latest attempt only, so it can always be
    recomputed after a partial write.
    """
    if latest is None:
        return CaseStatus.IN_PROGRESS
    if latest.status in (AttemptStatus.ERROR, AttemptStatus.HALLUCINATION_DETECTED):
        return CaseStatus.ERROR
    if latest.nextQuestion is not None:
        return CaseStatus.IN_PROGRESS
    if latest.actionable:
        return CaseStatus.RESULT_READY
    if latest.status == AttemptStatus.LOW_CONFIDENCE:
        # escalated without a question: a human has to look at it
        return CaseStatus.RESULT_READY
    return CaseStatus.IN_PROGRESS


def product_text(case: ProductCase, context: ClassificationContext, answers: Mapping[str, str]) -> str:
    parts: List[str] = [case.productName]
    parts.append(context.productDescription or case.productDescription or "")
    parts.extend(context.materialComposition)
    if context.usage:
        parts.append(context.usage)
    parts.extend(answers[k] for k in sorted(answers))
    return " ".join(p for p in parts if p)


class ClassificationOrchestrator:
    """
    Runs one classification round for a case and owns the case/attempt state
    machine. Every collaborator is injected; nothing here talks to Redis or HTTP
    directly.
    """

    def __init__(
        self,
        *,
        cases: CaseStore,
        attempts: AttemptStore,
        classifier: Classifier,
        candidates: CandidateRetriever,
        knowledge: KnowledgeRetriever,
        precedents: PrecedentRetriever,
        calibration: CalibrationTables = DEFAULT_CALIBRATION,
        rules: BusinessRuleTables = DEFAULT_RULES,
        model_timeout: float = settings.CLASSIFY_TIMEOUT_SECONDS,
        max_rounds: int = settings.MAX_CLARIFICATION_ROUNDS,
        knowledge_limit: int = settings.KNOWLEDGE_LIMIT,
    ) -> None:
        self.cases = cases
        self.attempts = attempts
        self.classifier = classifier
        self.candidates = candidates
        self.knowledge = knowledge
        self.precedents = precedents
        self.calibration = calibration
        self.rules = rules
        self.model_timeout = model_timeout
        self.max_rounds = max_rounds
        self.knowledge_limit = knowledge_limit

    async def _retrieve(self, case: ProductCase, text: str) -> RetrievalBundle:
        candidates, knowledge, precedents = await asyncio.gather(
            self.candidates.search(text),
            self.knowledge.search(text, None, self.knowledge_limit),
            self.precedents.search(text, case.ownerId),
        )
        return RetrievalBundle(candidates=candidates, knowledge=knowledge, precedents=precedents)

    async def _infer(self, system: str, user: str, document_refs: Sequence[DocumentRef]) -> ModelOutput:
        try:
            return await asyncio.wait_for(
                self.classifier.infer(system, user, document_refs),
                timeout=self.model_timeout,
            )
        except asyncio.TimeoutError as e:
            raise TransportError(
                f"model call exceeded {self.model_timeout:.0f}s"
            ) from e

    async def classify(
        self,
        case_id: str,
        document_refs: Sequence[DocumentRef],
        answers: Mapping[str, str],
        context: Optional[ClassificationContext] = None,
    ) -> ClassificationAttempt:
        case = await self.cases.get(case_id)
        if case is None:
            raise CaseNotFoundError(case_id)
        context = context or ClassificationContext()

        previous = await self.attempts.latest(case_id)
        merged: Dict[str, str] = dict(previous.answers) if previous else {}
        merged.update({k: v for k, v in answers.items() if v})
        round_no = await self.attempts.count(case_id) + 1
        text = product_text(case, context, merged)
        logger.info(
            "classify.start case=%s round=%d answers=%d docs=%d",
            case_id,
            round_no,
            len(merged),
            len(document_refs),
        )

        with timed(logger, "classify", case=case_id, round=round_no) as t:
            bundle = await self._retrieve(case, text)
            prompts = build_prompts(case, bundle, document_refs, merged, context)
            try:
                output = await self._infer(prompts.system, prompts.user, document_refs)
            except ClassifierError as e:
                logger.error("classify.model.error case=%s kind=%s msg=%s", case_id, e.kind, e)
                attempt = ClassificationAttempt(
                    id=str(uuid4()),
                    caseId=case_id,
                    round=round_no,
                    status=AttemptStatus.ERROR,
                    answers=merged,
                    candidateCodes=bundle.candidate_codes(),
                    errorMessage=f"{e.kind}: {e}",
                )
            else:
                attempt = self._resolve(
                    case, round_no, output, bundle, document_refs, merged, context, text
                )
        attempt.durationMs = t["ms"]

        await self._persist(attempt)
        return attempt

    def _resolve(
        self,
        case: ProductCase,
        round_no: int,
        output: ModelOutput,
        bundle: RetrievalBundle,
        document_refs: Sequence[DocumentRef],
        answers: Dict[str, str],
        context: ClassificationContext,
        text: str,
    ) -> ClassificationAttempt:
        candidate_codes = [normalize_code(c) for c in bundle.candidate_codes()]
        evidence, dropped = ground_evidence(output.evidence, bundle.knowledge, bundle.precedents)
        confidence = normalize_confidence(output.confidence)
        status = output.status
        question: Optional[NextQuestion] = output.next_question
        calibration: Optional[CalibrationReport] = None
        validation: Optional[ValidationReport] = None

        if not bundle.candidates:
            # nothing the model says can be a registry code
            if status != AttemptStatus.NEED_INFO:
                logger.warning("classify.no_candidates.coerced case=%s status=%s", case.id, status.value)
            verification = Verification(
                outcome=VerificationOutcome.skipped,
                reason="no candidates retrieved; forced NEED_INFO",
                originalCode=output.recommended_code,
                droppedEvidence=dropped,
            )
            status, code, confidence, level, justification = (
                AttemptStatus.NEED_INFO, None, None, None, output.justification,
            )
        elif status in (AttemptStatus.DONE, AttemptStatus.LOW_CONFIDENCE) and output.recommended_code:
            v = verify_recommendation(output, confidence, candidate_codes)
            verification = Verification(
                outcome=v.outcome,
                reason=v.reason,
                originalCode=v.original_code,
                finalCode=v.code,
                droppedEvidence=dropped,
            )
            status, code, confidence, level, justification = (
                v.status, v.code, v.confidence, v.level, v.justification,
            )
        else:
            verification = Verification(
                outcome=VerificationOutcome.skipped,
                reason="no recommendation to verify",
                originalCode=output.recommended_code,
                droppedEvidence=dropped,
            )
            # a code without a recommendation is never surfaced
            code, confidence, level, justification = None, None, None, output.justification
            if status in (AttemptStatus.DONE, AttemptStatus.LOW_CONFIDENCE):
                # a result needs a code; without one the case still needs input
                logger.warning("classify.no_code.coerced case=%s status=%s", case.id, status.value)
                status = AttemptStatus.NEED_INFO

        alternatives = [
            Alternative(
                code=normalize_code(a.code),
                reason=a.reason,
                confidence=normalize_confidence(a.confidence),
            )
            for a in output.alternatives
            if normalize_code(a.code) in candidate_codes and normalize_code(a.code) != code
        ]

        if status == AttemptStatus.HALLUCINATION_DETECTED:
            question = None
            alternatives = []
        elif status in (AttemptStatus.DONE, AttemptStatus.LOW_CONFIDENCE) and code:
            if not evidence:
                logger.info("classify.no_evidence case=%s code=%s", case.id, code)
                question = question or self._fallback_question(bundle, answers, context)
            else:
                cap = confidence or 0.0
                top = next(
                    (c.score for c in bundle.candidates if normalize_code(c.code10) == code), None
                )
                if top is None:
                    top = max((c.score for c in bundle.candidates), default=0.0)
                cal = calibrate_confidence(
                    confidence or 0.0,
                    evidence,
                    [d.type.value for d in document_refs],
                    len(alternatives),
                    top,
                    self.calibration,
                )
                calibration = CalibrationReport(
                    originalConfidence=cal.original_confidence,
                    calibratedConfidence=cal.calibrated_confidence,
                    level=cal.level,
                    qualityScore=cal.quality_score,
                    factors=cal.factors,
                    reason=cal.reason,
                    needsMoreInfo=cal.needs_more_info,
                )
                confidence, level = cal.calibrated_confidence, cal.level
                if verification.outcome == VerificationOutcome.corrected and confidence > cap:
                    # a substituted code never gains confidence back through calibration
                    confidence = cap
                    level = level_for(
                        cap, constants.CALIBRATED_HIGH_THRESHOLD, constants.CALIBRATED_MEDIUM_THRESHOLD
                    )
                if cal.needs_more_info:
                    status = AttemptStatus.LOW_CONFIDENCE
                    question = question or self._fallback_question(bundle, answers, context)
                elif status == AttemptStatus.DONE:
                    question = None

                rules = validate_with_business_rules(
                    status,
                    code,
                    confidence,
                    level,
                    evidence,
                    origin_country=case.originCountry,
                    product_text=text,
                    material_composition=context.materialComposition,
                    tables=self.rules,
                )
                validation = ValidationReport(valid=rules.valid, violations=rules.violations)
                confidence, level = rules.confidence, rules.level
        else:
            # NEED_INFO (or a DONE with nothing to recommend)
            question = question or self._fallback_question(bundle, answers, context)

        if question is not None and question.id in answers:
            # never ask the same thing twice
            question = self._fallback_question(bundle, answers, context)

        wants_more = question is not None or (
            status == AttemptStatus.NEED_INFO
            or (status == AttemptStatus.DONE and not evidence)
        )
        if status != AttemptStatus.HALLUCINATION_DETECTED and wants_more and (
            question is None or round_no >= self.max_rounds
        ):
            logger.warning(
                "classify.escalated case=%s round=%d max=%d", case.id, round_no, self.max_rounds
            )
            status = AttemptStatus.LOW_CONFIDENCE
            question = None
            justification = f"{justification or ''} {ROUND_LIMIT_NOTE}".strip()

        return ClassificationAttempt(
            id=str(uuid4()),
            caseId=case.id,
            round=round_no,
            status=status,
            recommendedCode=code,
            confidence=confidence,
            confidenceLevel=level if code else None,
            justification=justification,
            alternatives=alternatives,
            evidence=evidence,
            nextQuestion=question,
            answers=answers,
            candidateCodes=candidate_codes,
            verification=verification,
            calibration=calibration,
            validation=validation,
        )

    @staticmethod
    def _fallback_question(
        bundle: RetrievalBundle, answers: Mapping[str, str], context: ClassificationContext
    ) -> Optional[NextQuestion]:
        return select_question(bundle.candidates, answers, context.materialComposition)

    async def _persist(self, attempt: ClassificationAttempt) -> None:
        await self.attempts.append(attempt)
        new_status = derive_case_status(attempt)
        try:
            await self.cases.set_status(attempt.caseId, new_status)
        except Exception:
            # the attempt is stored; status is re-derived from it on the next read
            logger.exception(
                "classify.case_status.failed case=%s status=%s", attempt.caseId, new_status.value
            )
            return
        logger.info(
            "classify.done case=%s attempt=%s status=%s case_status=%s",
            attempt.caseId,
            attempt.id,
            attempt.status.value,
            new_status.value,
        )

    async def validate_case(self, case_id: str) -> ProductCase:
        """Human sign-off: RESULT_READY with an actionable latest attempt -> VALIDATED."""
        case = await self.cases.get(case_id)
        if case is None:
            raise CaseNotFoundError(case_id)
        latest = await self.attempts.latest(case_id)
        if case.status != CaseStatus.RESULT_READY or latest is None or not latest.actionable:
            raise CaseTransitionError(
                f"case {case_id} cannot be validated from {case.status.value}"
            )
        await self.cases.set_status(case_id, CaseStatus.VALIDATED)
        logger.info("case.validated case=%s attempt=%s", case_id, latest.id)
        return case.model_copy(update={"status": CaseStatus.VALIDATED})
