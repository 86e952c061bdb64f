"""Shared fixtures: environment for Settings, in-memory ports, a scripted classifier."""

import os
from types import SimpleNamespace
from typing import Dict, List, Optional, Sequence, Union

import pytest

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("ALLOWED_ORIGIN", "http://localhost:3000")
os.environ.setdefault("ANTHROPIC_API_URL", "https://api.anthropic.test/v1/messages")
os.environ.setdefault("ANTHROPIC_API_KEY", "test-key")
os.environ.setdefault("ANTHROPIC_MODEL", "test-model")
os.environ.setdefault("KNOWLEDGE_SEARCH_MODE", "lexical")

from core.classification_pipeline import ClassificationOrchestrator  # noqa: E402
from core.entities import ModelOutput  # noqa: E402
from core.retrievers import (  # noqa: E402
    CandidateRetriever,
    KnowledgeRetriever,
    PrecedentRetriever,
)
from model.attempt import ClassificationAttempt  # noqa: E402
from model.case import CaseStatus, ProductCase, TradeDirection  # noqa: E402
from model.registry import DocumentRef, KnowledgeChunk, Precedent, RegistryEntry  # noqa: E402
from util.enums import SearchMode  # noqa: E402
from util.functions import fold, token_coverage  # noqa: E402


class FakeRegistry:
    def __init__(self, entries: Sequence[RegistryEntry]) -> None:
        self.entries = list(entries)
        self.sampled = False

    async def search(self, keywords, limit):
        hits = [
            e for e in self.entries if any(fold(k) in fold(e.label) for k in keywords)
        ]
        return hits[:limit]

    async def sample(self, limit):
        self.sampled = True
        return self.entries[:limit]


class FakeCorpus:
    def __init__(self, chunks: Sequence[KnowledgeChunk]) -> None:
        self.chunks = list(chunks)
        self.calls: List[dict] = []

    async def search(self, *, keywords=None, embedding=None, sources=None, limit=15):
        self.calls.append(
            {"keywords": keywords, "embedding": embedding, "sources": sources, "limit": limit}
        )
        out = []
        for c in self.chunks:
            if sources and c.source not in sources:
                continue
            score = token_coverage(keywords or [], c.text) if keywords else c.score
            if score > 0:
                out.append(c.model_copy(update={"score": score}))
        return out[:limit]


class FakePrecedents:
    def __init__(self, items: Sequence[Precedent]) -> None:
        self.items = list(items)

    async def search(self, keywords, owner_id, limit):
        return [
            p
            for p in self.items
            if p.ownerId == owner_id and any(fold(k) in fold(p.description) for k in keywords)
        ][:limit]


class ScriptedClassifier:
    """Returns (or raises) the scripted items in order and records every call."""

    def __init__(self, script: Sequence[Union[ModelOutput, Exception]]) -> None:
        self.script = list(script)
        self.calls: List[dict] = []

    async def infer(self, system_prompt, user_prompt, document_refs):
        self.calls.append(
            {"system": system_prompt, "user": user_prompt, "docs": list(document_refs)}
        )
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class InMemoryCases:
    def __init__(self, cases: Sequence[ProductCase] = ()) -> None:
        self.cases: Dict[str, ProductCase] = {c.id: c for c in cases}
        self.history: List[CaseStatus] = []

    async def get(self, case_id: str) -> Optional[ProductCase]:
        return self.cases.get(case_id)

    async def set_status(self, case_id: str, status: CaseStatus) -> None:
        self.history.append(status)
        self.cases[case_id] = self.cases[case_id].model_copy(update={"status": status})


class InMemoryAttempts:
    def __init__(self) -> None:
        self.items: List[ClassificationAttempt] = []

    async def append(self, attempt: ClassificationAttempt) -> None:
        self.items.append(attempt)

    async def all(self, case_id: str) -> List[ClassificationAttempt]:
        return [a for a in self.items if a.caseId == case_id]

    async def latest(self, case_id: str) -> Optional[ClassificationAttempt]:
        mine = [a for a in self.items if a.caseId == case_id]
        return mine[-1] if mine else None

    async def count(self, case_id: str) -> int:
        return len([a for a in self.items if a.caseId == case_id])


LONG_TEXT = (
    "Portable automatic data-processing machines weighing not more than 10 kg, "
    "consisting of at least a central processing unit, a keyboard and a display. "
    "Laptop and notebook computers fall under this subheading when they carry out "
    "data processing independently of any other machine. "
)


@pytest.fixture
def fakes() -> SimpleNamespace:
    return SimpleNamespace(
        Registry=FakeRegistry,
        Corpus=FakeCorpus,
        Precedents=FakePrecedents,
        Classifier=ScriptedClassifier,
        Cases=InMemoryCases,
        Attempts=InMemoryAttempts,
    )


@pytest.fixture
def laptop_case() -> ProductCase:
    return ProductCase(
        id="case-1",
        ownerId="org-1",
        direction=TradeDirection.import_,
        originCountry="CN",
        productName="Laptop computer",
        productDescription="portable notebook computer with keyboard and display",
    )


@pytest.fixture
def laptop_entries() -> List[RegistryEntry]:
    return [
        RegistryEntry(code10="8471300000", label="Portable laptop computer machines", unit="u"),
        RegistryEntry(code10="8471410000", label="Other computer machines with keyboard", unit="u"),
    ]


@pytest.fixture
def laptop_chunks() -> List[KnowledgeChunk]:
    return [
        KnowledgeChunk(id="k1", source="omd", docId="omd-84", ref="8471.30 note", text="laptop computer portable " + LONG_TEXT),
        KnowledgeChunk(id="k2", source="maroc", docId="ma-84", ref="art. 12", text="notebook computer keyboard " + LONG_TEXT),
        KnowledgeChunk(id="k3", source="lois", docId="lf-2024", ref="art. 7", text="portable computer display " + LONG_TEXT),
    ]


@pytest.fixture
def tech_sheet() -> List[DocumentRef]:
    return [DocumentRef(id="doc-1", type="tech_sheet")]


@pytest.fixture
def build_orchestrator():
    def _build(
        case: ProductCase,
        entries: Sequence[RegistryEntry],
        script: Sequence[Union[ModelOutput, Exception]],
        chunks: Sequence[KnowledgeChunk] = (),
        precedents: Sequence[Precedent] = (),
        max_rounds: int = 5,
    ):
        cases = InMemoryCases([case])
        attempts = InMemoryAttempts()
        classifier = ScriptedClassifier(script)
        orch = ClassificationOrchestrator(
            cases=cases,
            attempts=attempts,
            classifier=classifier,
            candidates=CandidateRetriever(FakeRegistry(entries)),
            knowledge=KnowledgeRetriever(
                FakeCorpus(chunks), mode=SearchMode.LEXICAL, embed=lambda q: [0.0]
            ),
            precedents=PrecedentRetriever(FakePrecedents(precedents)),
            max_rounds=max_rounds,
            model_timeout=2.0,
        )
        return orch, cases, attempts, classifier

    return _build
