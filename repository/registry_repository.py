# repository/registry_repository.py
from typing import List, Optional, Sequence
from redis.asyncio import Redis
from config.cache import get_redis
from model.registry import RegistryEntry
from repository.namespaces import REGISTRY
from util.functions import fold


class RegistryRepository:
    """
    Read side of the nomenclature registry (hash code10 -> entry json).
    Entries are written by the ingestion job; this adapter never mutates them.
    """

    def __init__(self, client: Optional[Redis] = None) -> None:
        self._redis = client

    async def _client(self) -> Redis:
        return self._redis or await get_redis()

    async def search(self, keywords: Sequence[str], limit: int) -> List[RegistryEntry]:
        """Entries whose label contains any keyword (accent/case-insensitive)."""
        needles = [fold(k) for k in keywords if k]
        if not needles or limit <= 0:
            return []
        r = await self._client()
        out: List[RegistryEntry] = []
        async for _, raw in r.hscan_iter(REGISTRY, count=500):
            entry = RegistryEntry.model_validate_json(raw)
            label = fold(entry.label)
            if any(n in label for n in needles):
                out.append(entry)
                if len(out) >= limit:
                    break
        return out

    async def sample(self, limit: int) -> List[RegistryEntry]:
        if limit <= 0:
            return []
        r = await self._client()
        raw = await r.hrandfield(REGISTRY, count=limit, withvalues=True)
        # withvalues returns a flat [field, value, field, value, ...] list
        values = (raw or [])[1::2]
        return [RegistryEntry.model_validate_json(v) for v in values]
