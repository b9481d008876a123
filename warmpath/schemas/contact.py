"""Contact records produced by normalization."""

from datetime import datetime
from enum import Enum
from typing import Optional, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class SourceType(str, Enum):
    """Known provenance types. Free-form strings are accepted as well."""

    CSV = "csv"
    SPREADSHEET = "spreadsheet"
    LINKEDIN_API = "linkedin_api"
    LINKEDIN_AUTOMATION = "linkedin_automation"
    MANUAL = "manual"
    SEED = "seed"


class Provenance(BaseModel):
    """Where a record came from."""

    model_config = ConfigDict(frozen=True)

    type: str = Field(description="Source type, e.g. csv or linkedin_api")
    filename: Optional[str] = Field(default=None, description="Originating file, if any")
    source_name: Optional[str] = Field(default=None, description="Human readable source label")
    imported_at: Optional[datetime] = Field(default=None)


class PersonalConnection(BaseModel):
    """A structured relationship from a contact to another person."""

    name: str
    current_role: Optional[str] = None
    current_company: Optional[str] = None
    source: Optional[str] = None
    mutual_connections: Optional[int] = Field(default=None, ge=0)
    last_seen: Optional[str] = None
    direction: Optional[str] = None
    notes: Optional[str] = None
    strength: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class Contact(BaseModel):
    """Normalized contact. Immutable once returned by the normalizer."""

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    name: Optional[str] = None
    firm: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None
    linkedin_url: Optional[str] = None
    twitter_handle: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    notes: Optional[str] = None
    personal_connections: Union[str, list[PersonalConnection], None] = None
    assets_under_management: Optional[str] = None
    school: Optional[str] = None
    degree: Optional[str] = None
    interests: Optional[str] = None
    job_history_raw: Optional[str] = None
    education_raw: Optional[str] = None
    firm_slug: Optional[str] = None
    source: Provenance
    confidence: dict[str, float] = Field(default_factory=dict)

    @property
    def has_required_fields(self) -> bool:
        return bool(self.name) and bool(self.firm)


class ErrorKind(str, Enum):
    """Why a row or entity could not be handled completely."""

    MISSING_REQUIRED_FIELD = "missing_required_field"
    INVALID_FIELD = "invalid_field"
    PREPROCESSING_FAILED = "preprocessing_failed"
    MALFORMED_JSON = "malformed_json"
    STORE_FAILURE = "store_failure"
    UNRESOLVED_REFERENCE = "unresolved_reference"


class RowError(BaseModel):
    """A row-level validation problem. The row's partial contact is still returned."""

    kind: ErrorKind
    field: Optional[str] = None
    message: str


class NormalizationResult(BaseModel):
    """Outcome of normalizing one preprocessed row."""

    contact: Contact
    confidence: dict[str, float] = Field(default_factory=dict)
    logs: list[str] = Field(default_factory=list)
    errors: list[RowError] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def missing_fields(self) -> list[str]:
        return [
            error.field
            for error in self.errors
            if error.kind == ErrorKind.MISSING_REQUIRED_FIELD and error.field
        ]


class ImportSummary(BaseModel):
    """User-facing summary of a batch import."""

    total_rows: int = 0
    imported: int = 0
    skipped_rows: int = 0
    failed_rows: int = 0
    missing_required_fields: dict[str, int] = Field(default_factory=dict)
    row_errors: list[str] = Field(default_factory=list)
    contacts: list[Contact] = Field(default_factory=list)
