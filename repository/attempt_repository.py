# repository/attempt_repository.py
from typing import List, Optional
from redis.asyncio import Redis
from config.cache import get_redis
from config.settings import settings
from model.attempt import ClassificationAttempt
from repository.namespaces import ATTEMPTS


class AttemptRepository:
    """
    Append-only attempt log per case (RPUSH, oldest first). The last element
    is the current attempt. TTL is refreshed on every append.
    """

    def __init__(
        self,
        ttl_seconds: int = settings.PERSISTENCE_TTL_SECONDS,
        client: Optional[Redis] = None,
    ) -> None:
        self._ttl = int(ttl_seconds)
        self._redis = client

    async def _client(self) -> Redis:
        return self._redis or await get_redis()

    @staticmethod
    def _key(case_id: str) -> str:
        return f"{ATTEMPTS}:{case_id}"

    async def append(self, attempt: ClassificationAttempt) -> None:
        r = await self._client()
        payload = attempt.model_dump_json(exclude={"actionable"}).encode("utf-8")
        await r.rpush(self._key(attempt.caseId), payload)
        await r.expire(self._key(attempt.caseId), self._ttl)

    async def all(self, case_id: str) -> List[ClassificationAttempt]:
        r = await self._client()
        vals = await r.lrange(self._key(case_id), 0, -1)
        return [ClassificationAttempt.model_validate_json(raw) for raw in vals or []]

    async def latest(self, case_id: str) -> Optional[ClassificationAttempt]:
        r = await self._client()
        raw = await r.lindex(self._key(case_id), -1)
        if raw is None:
            return None
        return ClassificationAttempt.model_validate_json(raw)

    async def count(self, case_id: str) -> int:
        r = await self._client()
        return int(await r.llen(self._key(case_id)) or 0)
