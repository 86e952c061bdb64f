# controller/controller_dependencies.py
from config.settings import settings
from core.anthropic_client import AnthropicClassifier
from core.classification_pipeline import ClassificationOrchestrator
from core.retrievers import CandidateRetriever, KnowledgeRetriever, PrecedentRetriever
from repository.attempt_repository import AttemptRepository
from repository.case_repository import CaseRepository
from repository.corpus_repository import CorpusRepository
from repository.lock_repository import CaseLockRepository
from repository.precedent_repository import PrecedentRepository
from repository.registry_repository import RegistryRepository
from service.classification_service import ClassificationService


def get_classification_service() -> ClassificationService:
    _cases = CaseRepository()
    _attempts = AttemptRepository()
    _orchestrator = ClassificationOrchestrator(
        cases=_cases,
        attempts=_attempts,
        classifier=AnthropicClassifier(),
        candidates=CandidateRetriever(RegistryRepository()),
        knowledge=KnowledgeRetriever(
            CorpusRepository(), mode=settings.KNOWLEDGE_SEARCH_MODE
        ),
        precedents=PrecedentRetriever(PrecedentRepository()),
    )
    return ClassificationService(_cases, _attempts, CaseLockRepository(), _orchestrator)
