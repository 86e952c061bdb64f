# model/case.py
from datetime import datetime, timezone
from enum import Enum
from pydantic import BaseModel, Field


class CaseStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    RESULT_READY = "RESULT_READY"
    VALIDATED = "VALIDATED"
    ERROR = "ERROR"


class TradeDirection(str, Enum):
    import_ = "import"
    export = "export"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProductCase(BaseModel):
    id: str
    ownerId: str
    direction: TradeDirection
    originCountry: str
    productName: str
    productDescription: str | None = None
    status: CaseStatus = CaseStatus.IN_PROGRESS
    createdAt: datetime = Field(default_factory=utcnow)
    updatedAt: datetime = Field(default_factory=utcnow)
