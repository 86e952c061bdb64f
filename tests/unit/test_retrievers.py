import pytest

from core.retrievers import (
    CandidateRetriever,
    KnowledgeRetriever,
    PrecedentRetriever,
    rank_chunks,
)
from model.registry import KnowledgeChunk, Precedent, RegistryEntry
from util.enums import SearchMode


def _chunk(id_, source, score, text="computer"):
    return KnowledgeChunk(id=id_, source=source, docId=f"d-{id_}", ref="r", text=text, score=score)


@pytest.mark.asyncio
async def test_candidates_sorted_by_coverage_then_code(fakes, laptop_entries):
    registry = fakes.Registry(
        laptop_entries
        + [RegistryEntry(code10="8471000000", label="Portable laptop computer machines")]
    )
    out = await CandidateRetriever(registry, limit=10).search("portable laptop computer")

    assert [e.code10 for e in out] == ["8471000000", "8471300000", "8471410000"]
    assert out[0].score == 1.0
    assert out[-1].score == pytest.approx(0.3333)
    assert registry.sampled is False


@pytest.mark.asyncio
async def test_candidates_capped_at_limit(fakes, laptop_entries):
    out = await CandidateRetriever(fakes.Registry(laptop_entries), limit=1).search("computer")
    assert len(out) == 1


@pytest.mark.asyncio
async def test_candidates_without_tokens_fall_back_to_sample(fakes, laptop_entries):
    registry = fakes.Registry(laptop_entries)
    out = await CandidateRetriever(registry, limit=5).search("a b")

    assert registry.sampled is True
    assert len(out) == 2


@pytest.mark.asyncio
async def test_candidates_empty_when_nothing_matches(fakes, laptop_entries):
    out = await CandidateRetriever(fakes.Registry(laptop_entries)).search("frozen shrimp")
    assert out == []


def test_rank_chunks_breaks_ties_on_source_then_id():
    chunks = [
        _chunk("c", "lois", 0.5),
        _chunk("b", "omd", 0.5),
        _chunk("a", "omd", 0.5),
        _chunk("z", "unknown", 0.9),
    ]
    assert [c.id for c in rank_chunks(chunks)] == ["z", "a", "b", "c"]


@pytest.mark.asyncio
async def test_knowledge_lexical_passes_keywords(fakes, laptop_chunks):
    corpus = fakes.Corpus(laptop_chunks)
    retriever = KnowledgeRetriever(corpus, mode=SearchMode.LEXICAL, embed=lambda q: [1.0])

    out = await retriever.search("laptop computer", sources=["omd"], limit=3)

    assert [c.id for c in out] == ["k1"]
    assert corpus.calls[0]["keywords"] == ["laptop", "computer"]
    assert corpus.calls[0]["embedding"] is None
    assert corpus.calls[0]["sources"] == ["omd"]


@pytest.mark.asyncio
async def test_knowledge_vector_mode_embeds_the_query(fakes):
    seen = []

    def embed(q):
        seen.append(q)
        return [0.1, 0.2]

    corpus = fakes.Corpus([_chunk("a", "lois", 0.4), _chunk("b", "omd", 0.8)])
    retriever = KnowledgeRetriever(corpus, mode=SearchMode.VECTOR, embed=embed)

    out = await retriever.search("laptop", limit=5)

    assert seen == ["laptop"]
    assert corpus.calls[0]["embedding"] == [0.1, 0.2]
    assert corpus.calls[0]["keywords"] is None
    assert [c.id for c in out] == ["b", "a"]


@pytest.mark.asyncio
async def test_knowledge_blank_query_returns_nothing(fakes, laptop_chunks):
    corpus = fakes.Corpus(laptop_chunks)
    retriever = KnowledgeRetriever(corpus, mode=SearchMode.LEXICAL, embed=lambda q: [0.0])

    assert await retriever.search("   ") == []
    assert corpus.calls == []


@pytest.mark.asyncio
async def test_precedents_ordered_by_reliability_and_capped(fakes):
    items = [
        Precedent(code="8471300000", description="laptop 14in", reliability=0.6, ownerId="org-1"),
        Precedent(code="8471300000", description="laptop 15in", reliability=0.9, ownerId="org-1"),
        Precedent(code="8471410000", description="laptop dock", reliability=0.7, ownerId="org-1"),
        Precedent(code="8471300000", description="laptop other org", reliability=1.0, ownerId="org-2"),
    ]
    out = await PrecedentRetriever(fakes.Precedents(items), limit=2).search("laptop", "org-1")

    assert [p.reliability for p in out] == [0.9, 0.7]
    assert all(p.ownerId == "org-1" for p in out)


@pytest.mark.asyncio
async def test_precedents_need_an_owner(fakes):
    items = [Precedent(code="8471300000", description="laptop", reliability=1.0, ownerId="org-1")]
    assert await PrecedentRetriever(fakes.Precedents(items)).search("laptop", "") == []
