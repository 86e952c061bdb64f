# core/embeddings_retriever.py
from functools import lru_cache
from typing import TYPE_CHECKING, List, Sequence
import numpy as np
from config.settings import settings
from core.entities import EmbeddingIndex
from util.timing import timed
import logging

if TYPE_CHECKING:
    from sentence_transformers import SentenceTransformer

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _load_model() -> "SentenceTransformer":
    """
    Lazy-load the sentence embedding model used for knowledge queries.

    Must be the same model the corpus embeddings were built with.
    """
    from sentence_transformers import SentenceTransformer

    name = settings.EMBEDDING_MODEL_NAME
    with timed(logger, "embed.model.load", model=name):
        model = SentenceTransformer(name, device="cpu")
    return model


def embed_query(text: str) -> List[float]:
    """
    Encode a single query into an L2-normalized vector.
    """
    model = _load_model()
    with timed(logger, "embed.query", chars=len(text)):
        vec = model.encode(
            [text], convert_to_numpy=True, normalize_embeddings=True
        ).astype(np.float32, copy=False)[0]
    return vec.tolist()


def index_from_vectors(vectors: Sequence[Sequence[float]]) -> EmbeddingIndex:
    """
    Stack precomputed chunk vectors into an index, re-normalizing rows so cosine
    stays a plain dot product even if the ingestion side skipped it.
    """
    emb = np.asarray(vectors, dtype=np.float32)
    if emb.ndim != 2 or emb.size == 0:
        return EmbeddingIndex(embeddings=np.zeros((0, 0), dtype=np.float32))
    norms = np.linalg.norm(emb, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    return EmbeddingIndex(embeddings=emb / norms)


def cosine_scores(index: EmbeddingIndex, query: Sequence[float]) -> List[float]:
    """
    Cosine similarity of `query` against every row of the index, in row order.
    """
    if index.embeddings.size == 0:
        return []
    q = np.asarray(query, dtype=np.float32)
    n = float(np.linalg.norm(q))
    if n == 0.0 or q.shape[0] != index.embeddings.shape[1]:
        return [0.0] * index.embeddings.shape[0]
    sims = index.embeddings @ (q / n)
    return [float(s) for s in sims]

