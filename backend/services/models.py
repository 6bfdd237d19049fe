# backend/services/models.py

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class DocumentType(str, Enum):
    PAN = "PAN"
    AADHAAR = "AADHAAR"
    DRIVING_LICENSE = "DRIVING_LICENSE"
    GOVERNMENT_ID = "GOVERNMENT_ID"
    UNKNOWN = "UNKNOWN"


class RegionKind(str, Enum):
    TEXT = "TEXT"
    PHOTO = "PHOTO"


class BoundingBox(BaseModel):
    """Axis-aligned word box in source-image pixels, (x0, y0) top-left to (x1, y1) bottom-right."""
    model_config = ConfigDict(frozen=True)

    x0: int
    y0: int
    x1: int
    y1: int


class RecognizedWord(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    box: BoundingBox


class RecognizedDocument(BaseModel):
    """Output of the OCR pass for one image. Read-only for the rest of the pipeline."""
    model_config = ConfigDict(frozen=True)

    full_text: str = ""
    confidence: float = Field(default=0.0, ge=0.0, le=100.0)
    words: List[RecognizedWord] = Field(default_factory=list)


# Fields counted towards maskedFieldCount, in the order regions are emitted.
PII_FIELDS = (
    "name",
    "father_name",
    "date_of_birth",
    "national_id",
    "tax_id",
    "phone",
    "email",
    "address",
)


class PIIRecord(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    name: Optional[str] = None
    father_name: Optional[str] = None
    date_of_birth: Optional[str] = None
    national_id: Optional[str] = None
    tax_id: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    document_type: DocumentType = DocumentType.UNKNOWN
    has_photo: bool = False

    def present_fields(self) -> List[str]:
        return [f for f in PII_FIELDS if getattr(self, f) is not None]


class MaskRegion(BaseModel):
    """A rectangle the compositing step must render opaque."""
    model_config = ConfigDict(frozen=True)

    left: int
    top: int
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    kind: RegionKind = RegionKind.TEXT
    field: Optional[str] = None


class ExtractionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    record: PIIRecord
    regions: List[MaskRegion] = Field(default_factory=list)
    confidence: float = 0.0
    degenerate: bool = False

    @property
    def masked_field_count(self) -> int:
        return len(self.record.present_fields())
