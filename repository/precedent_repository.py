# repository/precedent_repository.py
from typing import List, Optional, Sequence
from redis.asyncio import Redis
from config.cache import get_redis
from model.registry import Precedent
from repository.namespaces import PRECEDENTS
from util.functions import fold


class PrecedentRepository:
    """Past classifications, one hash per organization (id -> precedent json)."""

    def __init__(self, client: Optional[Redis] = None) -> None:
        self._redis = client

    async def _client(self) -> Redis:
        return self._redis or await get_redis()

    @staticmethod
    def _key(owner_id: str) -> str:
        return f"{PRECEDENTS}:{owner_id}"

    async def search(
        self, keywords: Sequence[str], owner_id: str, limit: int
    ) -> List[Precedent]:
        needles = [fold(k) for k in keywords if k]
        if not needles or not owner_id or limit <= 0:
            return []
        r = await self._client()
        vals = await r.hvals(self._key(owner_id))
        out: List[Precedent] = []
        for raw in vals or []:
            p = Precedent.model_validate_json(raw)
            if any(n in fold(p.description) for n in needles):
                out.append(p.model_copy(update={"ownerId": p.ownerId or owner_id}))
        out.sort(key=lambda p: (-p.reliability, p.code))
        return out[:limit]
