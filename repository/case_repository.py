# repository/case_repository.py
from typing import Final, Optional
from uuid import uuid4
from redis.asyncio import Redis
from config.cache import get_redis
from config.settings import settings
from model.api import CreateCaseRequest
from model.case import CaseStatus, ProductCase, utcnow
from repository.namespaces import CASES

KEY_PREFIX: Final[str] = CASES


class CaseRepository:
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
        return f"{KEY_PREFIX}:{case_id}"

    async def create(self, req: CreateCaseRequest) -> ProductCase:
        case = ProductCase(
            id=str(uuid4()),
            ownerId=req.ownerId,
            direction=req.direction,
            originCountry=req.originCountry.strip(),
            productName=req.productName.strip(),
            productDescription=req.productDescription,
        )
        await self.put(case)
        return case

    async def put(self, case: ProductCase) -> None:
        r = await self._client()
        await r.set(self._key(case.id), case.model_dump_json().encode("utf-8"), ex=self._ttl)

    async def get(self, case_id: str) -> Optional[ProductCase]:
        if not case_id:
            return None
        r = await self._client()
        raw = await r.get(self._key(case_id))
        if raw is None:
            return None
        return ProductCase.model_validate_json(raw)

    async def set_status(self, case_id: str, status: CaseStatus) -> None:
        case = await self.get(case_id)
        if case is None:
            return
        await self.put(case.model_copy(update={"status": status, "updatedAt": utcnow()}))
