# core/retrievers.py
import asyncio
import logging
from typing import Callable, List, Optional, Sequence

from config.settings import settings
from config.tables import DEFAULT_CALIBRATION, CalibrationTables
from core.embeddings_retriever import embed_query
from core.interfaces import Corpus, Precedents, Registry
from model.registry import KnowledgeChunk, Precedent, RegistryEntry
from util.enums import SearchMode
from util.functions import token_coverage, tokenize
from util.timing import timed

logger = logging.getLogger(__name__)


class CandidateRetriever:
    """
    Registry codes whose label mentions any product token.

    An empty result is a legitimate answer and is returned as such; the
    orchestrator decides what it means.
    """

    def __init__(self, registry: Registry, limit: int = settings.CANDIDATE_LIMIT) -> None:
        self._registry = registry
        self._limit = limit

    async def search(self, product_text: str) -> List[RegistryEntry]:
        tokens = tokenize(product_text)
        with timed(logger, "retrieve.candidates", tokens=len(tokens)):
            if not tokens:
                sample = await self._registry.sample(self._limit)
                logger.info("retrieve.candidates.sample count=%d", len(sample))
                return sample[: self._limit]

            # over-fetch so the ranking below sees more than the first hits
            raw = await self._registry.search(tokens, self._limit * 3)
            scored = [
                entry.model_copy(update={"score": round(token_coverage(tokens, entry.label), 4)})
                for entry in raw
            ]
            scored.sort(key=lambda e: (-e.score, e.code10))
        logger.info("retrieve.candidates count=%d", min(len(scored), self._limit))
        return scored[: self._limit]


def rank_chunks(
    chunks: Sequence[KnowledgeChunk], tables: CalibrationTables = DEFAULT_CALIBRATION
) -> List[KnowledgeChunk]:
    """Score desc, then source authority desc, then chunk id, so ties are stable."""
    return sorted(
        chunks,
        key=lambda c: (-c.score, -tables.source_weight(c.source), c.id),
    )


class KnowledgeRetriever:
    """
    Regulatory excerpts relevant to a query.

    Lexical mode scores by query-token coverage; vector mode embeds the query and
    lets the corpus score by cosine. Callers cannot tell which one ran.
    """

    def __init__(
        self,
        corpus: Corpus,
        *,
        mode: SearchMode = settings.KNOWLEDGE_SEARCH_MODE,
        embed: Optional[Callable[[str], List[float]]] = None,
        tables: CalibrationTables = DEFAULT_CALIBRATION,
    ) -> None:
        self._corpus = corpus
        self._mode = SearchMode(mode)
        self._embed = embed or embed_query
        self._tables = tables

    async def search(
        self,
        query: str,
        sources: Optional[Sequence[str]] = None,
        limit: int = settings.KNOWLEDGE_LIMIT,
    ) -> List[KnowledgeChunk]:
        if not query.strip():
            return []
        with timed(logger, "retrieve.knowledge", mode=self._mode.value, limit=limit):
            if self._mode == SearchMode.VECTOR:
                vec = await asyncio.to_thread(self._embed, query)
                chunks = await self._corpus.search(
                    embedding=vec, sources=sources, limit=limit
                )
            else:
                tokens = tokenize(query)
                if not tokens:
                    return []
                chunks = await self._corpus.search(
                    keywords=tokens, sources=sources, limit=limit
                )
            ranked = rank_chunks(chunks, self._tables)[:limit]
        logger.info("retrieve.knowledge count=%d", len(ranked))
        return ranked


class PrecedentRetriever:
    def __init__(self, precedents: Precedents, limit: int = settings.PRECEDENT_LIMIT) -> None:
        self._precedents = precedents
        self._limit = limit

    async def search(self, product_text: str, owner_id: str) -> List[Precedent]:
        tokens = tokenize(product_text)
        if not tokens or not owner_id:
            return []
        with timed(logger, "retrieve.precedents", tokens=len(tokens)):
            found = await self._precedents.search(tokens, owner_id, self._limit * 4)
            own = [p for p in found if p.ownerId in (None, owner_id)]
            own.sort(key=lambda p: (-p.reliability, p.code))
        logger.info("retrieve.precedents count=%d", min(len(own), self._limit))
        return own[: self._limit]
