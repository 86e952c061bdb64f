# repository/corpus_repository.py
from typing import List, Optional, Sequence
from redis.asyncio import Redis
from config.cache import get_redis
from config.tables import DEFAULT_CALIBRATION, CalibrationTables
from core.embeddings_retriever import cosine_scores, index_from_vectors
from core.retrievers import rank_chunks
from model.registry import KnowledgeChunk
from repository.namespaces import CORPUS
from util.functions import token_coverage


class CorpusRepository:
    """
    Read side of the knowledge corpus (hash chunk id -> chunk json, with an
    optional precomputed embedding). Scores lexically or by cosine.
    """

    def __init__(
        self, client: Optional[Redis] = None, tables: CalibrationTables = DEFAULT_CALIBRATION
    ) -> None:
        self._redis = client
        self._tables = tables

    async def _client(self) -> Redis:
        return self._redis or await get_redis()

    async def _chunks(self, sources: Optional[Sequence[str]]) -> List[KnowledgeChunk]:
        r = await self._client()
        allowed = set(sources) if sources else None
        out: List[KnowledgeChunk] = []
        async for _, raw in r.hscan_iter(CORPUS, count=500):
            chunk = KnowledgeChunk.model_validate_json(raw)
            if allowed is None or chunk.source in allowed:
                out.append(chunk)
        return out

    async def search(
        self,
        *,
        keywords: Optional[Sequence[str]] = None,
        embedding: Optional[Sequence[float]] = None,
        sources: Optional[Sequence[str]] = None,
        limit: int = 15,
    ) -> List[KnowledgeChunk]:
        chunks = await self._chunks(sources)
        if embedding is not None:
            with_vec = [c for c in chunks if c.embedding]
            index = index_from_vectors([c.embedding for c in with_vec])
            scores = cosine_scores(index, embedding)
            scored = [c.model_copy(update={"score": s}) for c, s in zip(with_vec, scores)]
        elif keywords:
            scored = [
                c.model_copy(update={"score": token_coverage(keywords, c.text)}) for c in chunks
            ]
        else:
            return []
        hits = [c for c in scored if c.score > 0]
        # rank before truncating so authority breaks ties at the limit
        return rank_chunks(hits, self._tables)[:limit]
