# repository/lock_repository.py
from typing import Optional
from uuid import uuid4
from redis.asyncio import Redis
from config.cache import get_redis
from config.settings import settings
from repository.namespaces import LOCKS

# delete only if we still own the lock
_RELEASE = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class CaseLockRepository:
    """
    Single-flight guard per case: SET NX EX with an owner token. The expiry
    bounds how long a crashed worker can hold a case.
    """

    def __init__(
        self,
        ttl_seconds: int = settings.CASE_LOCK_SECONDS,
        client: Optional[Redis] = None,
    ) -> None:
        self._ttl = int(ttl_seconds)
        self._redis = client

    async def _client(self) -> Redis:
        return self._redis or await get_redis()

    @staticmethod
    def _key(case_id: str) -> str:
        return f"{LOCKS}:{case_id}"

    async def acquire(self, case_id: str) -> Optional[str]:
        token = uuid4().hex
        r = await self._client()
        ok = await r.set(self._key(case_id), token.encode("utf-8"), nx=True, ex=self._ttl)
        return token if ok else None

    async def release(self, case_id: str, token: str) -> bool:
        r = await self._client()
        return bool(await r.eval(_RELEASE, 1, self._key(case_id), token.encode("utf-8")))
