# model/registry.py
from enum import Enum
from pydantic import BaseModel, Field, model_validator


class KnowledgeSource(str, Enum):
    omd = "omd"  # WCO explanatory notes
    maroc = "maroc"  # national regulation
    lois = "lois"  # finance laws
    finance = "finance"  # tax articles
    dum = "dum"  # customs declaration history / precedents


class DocumentType(str, Enum):
    tech_sheet = "tech_sheet"
    dum = "dum"
    certificate = "certificate"
    invoice = "invoice"
    packing_list = "packing_list"
    photo_label = "photo_label"
    photo_plate = "photo_plate"
    photo_product = "photo_product"
    admin_ingestion = "admin_ingestion"
    other = "other"


class RegistryEntry(BaseModel):
    code10: str
    code6: str = ""
    chapter2: str = ""
    label: str
    unit: str | None = None
    restrictions: list[str] = Field(default_factory=list)
    score: float = 0.0

    @model_validator(mode="after")
    def _derive_prefixes(self) -> "RegistryEntry":
        if not self.code6:
            self.code6 = self.code10[:6]
        if not self.chapter2:
            self.chapter2 = self.code10[:2]
        return self


class KnowledgeChunk(BaseModel):
    id: str
    source: str
    docId: str
    ref: str
    text: str
    score: float = 0.0
    embedding: list[float] | None = Field(default=None, exclude=True)


class Precedent(BaseModel):
    code: str
    description: str
    originCountry: str | None = None
    reliability: float = 0.0
    ownerId: str | None = None
    docId: str | None = None


class DocumentRef(BaseModel):
    # Opaque handle; the bytes live with whoever uploaded them.
    id: str = Field(min_length=1)
    type: DocumentType = DocumentType.other
