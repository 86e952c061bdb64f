import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from model.api import CreateCaseRequest
from model.attempt import AttemptStatus, ClassificationAttempt
from model.case import CaseStatus, ProductCase
from model.registry import KnowledgeChunk, Precedent, RegistryEntry
from repository.attempt_repository import AttemptRepository
from repository.case_repository import CaseRepository
from repository.corpus_repository import CorpusRepository
from repository.lock_repository import CaseLockRepository
from repository.precedent_repository import PrecedentRepository
from repository.registry_repository import RegistryRepository


def _hash(items):
    """Redis mock whose hscan_iter yields (field, value) pairs."""

    async def scan(*args, **kwargs):
        for k, v in items:
            yield k.encode(), v.encode()

    r = MagicMock()
    r.hscan_iter = scan
    return r


@pytest.mark.asyncio
async def test_case_create_and_get():
    r = AsyncMock()
    repo = CaseRepository(ttl_seconds=60, client=r)

    case = await repo.create(
        CreateCaseRequest(
            ownerId="org-1", direction="import", originCountry=" CN ", productName=" Laptop "
        )
    )

    key, payload = r.set.await_args.args
    assert key == f"hscode:cases:{case.id}"
    assert r.set.await_args.kwargs == {"ex": 60}
    assert case.originCountry == "CN"
    assert case.productName == "Laptop"

    r.get.return_value = payload
    loaded = await repo.get(case.id)
    assert loaded == case


@pytest.mark.asyncio
async def test_case_get_missing():
    r = AsyncMock()
    r.get.return_value = None
    repo = CaseRepository(client=r)

    assert await repo.get("nope") is None
    assert await repo.get("") is None


@pytest.mark.asyncio
async def test_case_set_status_rewrites_record():
    case = ProductCase(
        id="c1", ownerId="o", direction="export", originCountry="MA", productName="Dates"
    )
    r = AsyncMock()
    r.get.return_value = case.model_dump_json().encode()
    repo = CaseRepository(client=r)

    await repo.set_status("c1", CaseStatus.RESULT_READY)

    stored = ProductCase.model_validate_json(r.set.await_args.args[1])
    assert stored.status == CaseStatus.RESULT_READY
    assert stored.updatedAt >= case.updatedAt


@pytest.mark.asyncio
async def test_attempt_log_append_latest_count():
    r = AsyncMock()
    repo = AttemptRepository(ttl_seconds=120, client=r)
    attempt = ClassificationAttempt(id="a1", caseId="c1", status=AttemptStatus.NEED_INFO)

    await repo.append(attempt)

    key, payload = r.rpush.await_args.args
    assert key == "hscode:attempts:c1"
    assert b"actionable" not in payload
    r.expire.assert_awaited_once_with("hscode:attempts:c1", 120)

    r.lindex.return_value = payload
    assert (await repo.latest("c1")).id == "a1"
    r.lindex.assert_awaited_with("hscode:attempts:c1", -1)

    r.lrange.return_value = [payload, payload]
    assert len(await repo.all("c1")) == 2

    r.llen.return_value = 3
    assert await repo.count("c1") == 3


@pytest.mark.asyncio
async def test_attempt_latest_empty():
    r = AsyncMock()
    r.lindex.return_value = None
    assert await AttemptRepository(client=r).latest("c1") is None


@pytest.mark.asyncio
async def test_lock_acquire_and_release():
    r = AsyncMock()
    r.set.return_value = True
    r.eval.return_value = 1
    locks = CaseLockRepository(ttl_seconds=30, client=r)

    token = await locks.acquire("c1")

    assert token
    assert r.set.await_args.kwargs == {"nx": True, "ex": 30}
    assert r.set.await_args.args[0] == "hscode:locks:case:c1"
    assert await locks.release("c1", token) is True
    assert r.eval.await_args.args[1:] == (1, "hscode:locks:case:c1", token.encode())


@pytest.mark.asyncio
async def test_lock_held_elsewhere():
    r = AsyncMock()
    r.set.return_value = None
    assert await CaseLockRepository(client=r).acquire("c1") is None


@pytest.mark.asyncio
async def test_registry_search_folds_accents():
    entries = [
        RegistryEntry(code10="6109100000", label="T-shirts en coton, tricotés"),
        RegistryEntry(code10="8471300000", label="Machines portatives"),
    ]
    r = _hash([(e.code10, e.model_dump_json()) for e in entries])

    out = await RegistryRepository(client=r).search(["TRICOTES"], 10)

    assert [e.code10 for e in out] == ["6109100000"]
    assert out[0].chapter2 == "61"


@pytest.mark.asyncio
async def test_registry_sample_reads_values():
    e = RegistryEntry(code10="8471300000", label="Machines")
    r = AsyncMock()
    r.hrandfield.return_value = [b"8471300000", e.model_dump_json().encode()]

    out = await RegistryRepository(client=r).sample(5)

    assert [x.code10 for x in out] == ["8471300000"]
    r.hrandfield.assert_awaited_once_with("hscode:registry", count=5, withvalues=True)


@pytest.mark.asyncio
async def test_corpus_keyword_search_filters_sources():
    chunks = [
        KnowledgeChunk(id="a", source="omd", docId="d1", ref="r", text="laptop computer"),
        KnowledgeChunk(id="b", source="lois", docId="d2", ref="r", text="laptop"),
        KnowledgeChunk(id="c", source="omd", docId="d3", ref="r", text="frozen fish"),
    ]
    r = _hash([(c.id, c.model_dump_json()) for c in chunks])

    out = await CorpusRepository(client=r).search(
        keywords=["laptop", "computer"], sources=["omd"]
    )

    assert [(c.id, c.score) for c in out] == [("a", 1.0)]


@pytest.mark.asyncio
async def test_corpus_ties_at_the_limit_go_to_the_stronger_source():
    chunks = [
        KnowledgeChunk(id="a", source="dum", docId="d1", ref="r", text="laptop"),
        KnowledgeChunk(id="b", source="omd", docId="d2", ref="r", text="laptop"),
    ]
    r = _hash([(c.id, c.model_dump_json()) for c in chunks])

    out = await CorpusRepository(client=r).search(keywords=["laptop"], limit=1)

    assert [c.id for c in out] == ["b"]


@pytest.mark.asyncio
async def test_corpus_vector_search_uses_stored_embeddings():
    rows = [
        {"id": "x", "source": "omd", "docId": "d1", "ref": "r", "text": "t", "embedding": [1.0, 0.0]},
        {"id": "y", "source": "omd", "docId": "d2", "ref": "r", "text": "t", "embedding": [0.6, 0.8]},
        {"id": "z", "source": "omd", "docId": "d3", "ref": "r", "text": "t"},
    ]
    # embeddings are excluded from model dumps, so store raw ingestion json
    r = _hash([(row["id"], json.dumps(row)) for row in rows])

    out = await CorpusRepository(client=r).search(embedding=[0.0, 1.0])

    assert [c.id for c in out] == ["y"]
    assert out[0].score == pytest.approx(0.8)


@pytest.mark.asyncio
async def test_precedents_scoped_to_owner():
    p = Precedent(code="8471300000", description="Laptop 14in", reliability=0.9)
    r = AsyncMock()
    r.hvals.return_value = [p.model_dump_json().encode()]

    out = await PrecedentRepository(client=r).search(["laptop"], "org-1", 5)

    r.hvals.assert_awaited_once_with("hscode:precedents:org-1")
    assert out[0].ownerId == "org-1"
    assert await PrecedentRepository(client=r).search(["laptop"], "", 5) == []
