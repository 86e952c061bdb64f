# core/interfaces.py
"""
Read contracts the pipeline consumes, and the one effectful model boundary.

Anything with these method shapes can be plugged into the orchestrator: the
Redis adapters in `repository/`, or scripted fakes in tests.
"""
from typing import List, Optional, Protocol, Sequence

from core.entities import ModelOutput
from model.attempt import ClassificationAttempt
from model.case import CaseStatus, ProductCase
from model.registry import DocumentRef, KnowledgeChunk, Precedent, RegistryEntry


class Registry(Protocol):
    async def search(self, keywords: Sequence[str], limit: int) -> List[RegistryEntry]: ...

    async def sample(self, limit: int) -> List[RegistryEntry]: ...


class Corpus(Protocol):
    async def search(
        self,
        *,
        keywords: Optional[Sequence[str]] = None,
        embedding: Optional[Sequence[float]] = None,
        sources: Optional[Sequence[str]] = None,
        limit: int = 15,
    ) -> List[KnowledgeChunk]: ...


class Precedents(Protocol):
    async def search(
        self, keywords: Sequence[str], owner_id: str, limit: int
    ) -> List[Precedent]: ...


class Classifier(Protocol):
    async def infer(
        self, system_prompt: str, user_prompt: str, document_refs: Sequence[DocumentRef]
    ) -> ModelOutput: ...


class CaseStore(Protocol):
    async def get(self, case_id: str) -> Optional[ProductCase]: ...

    async def set_status(self, case_id: str, status: CaseStatus) -> None: ...


class AttemptStore(Protocol):
    async def append(self, attempt: ClassificationAttempt) -> None: ...

    async def latest(self, case_id: str) -> Optional[ClassificationAttempt]: ...

    async def count(self, case_id: str) -> int: ...
