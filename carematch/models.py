"""Pydantic models for canonical entries, credentials, candidates and requisitions."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from carematch.processing.normalizer import Normalizer

_normalizer = Normalizer()


class CanonicalKey(str, Enum):
    """Domain of a canonical entry."""

    FACILITY_NAME = "facilityName"
    LICENSE_TYPE = "licenseType"
    CERT_TYPE = "certType"
    JOB_TITLE = "jobTitle"


class MatchType(str, Enum):
    """How a canonical id was assigned."""

    EXACT = "exact"
    FUZZY = "fuzzy"
    AI = "ai"
    MANUAL = "manual"
    NONE = "none"


class RequirementLevel(str, Enum):
    """Whether a requisition credential is mandatory or advisory."""

    REQUIRED = "required"
    PREFERRED = "preferred"


class DocumentStatus(str, Enum):
    """Review status shared by candidates and requisitions."""

    PENDING_REVIEW = "pending_review"
    ACTIVE = "active"
    ARCHIVED = "archived"


class CanonicalEntry(BaseModel):
    """One authoritative normalized record for a canonical key."""

    id: str
    name: str
    abbreviation: Optional[str] = None
    aliases: List[str] = Field(default_factory=list)

    @field_validator("aliases", mode="before")
    @classmethod
    def aliases_or_empty(cls, value: Any) -> Any:
        return value or []

    def labeled_strings(self) -> List[Tuple[str, str]]:
        """Return (label, value) pairs for name, abbreviation and aliases in comparison order."""
        strings = [("name", self.name)]
        if self.abbreviation:
            strings.append(("abbreviation", self.abbreviation))
        strings.extend(("alias", alias) for alias in self.aliases)
        return strings


class CanonicalResult(BaseModel):
    """Outcome of one resolution attempt."""

    model_config = ConfigDict(frozen=True)

    key: CanonicalKey
    raw_value: str
    canonical_id: Optional[str] = None
    canonical_value: Optional[str] = None
    match_type: MatchType = MatchType.NONE
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    reason: str = ""

    @property
    def resolved(self) -> bool:
        return self.canonical_id is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key.value,
            "rawValue": self.raw_value,
            "canonicalId": self.canonical_id,
            "canonicalValue": self.canonical_value,
            "matchType": self.match_type.value,
            "confidence": self.confidence,
            "reason": self.reason,
        }


class CanonStats(BaseModel):
    """Resolved/unresolved counts for a set of resolution results."""

    resolved: int = 0
    unresolved: int = 0
    total: int = 0

    @classmethod
    def from_results(cls, results: Iterable[CanonicalResult]) -> "CanonStats":
        results = list(results)
        resolved = sum(1 for r in results if r.resolved)
        return cls(resolved=resolved, unresolved=len(results) - resolved, total=len(results))


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    return _normalizer.normalize_timestamp(value)


def _parse_state(value: Any) -> Optional[str]:
    if not value:
        return None
    # Keep unrecognized values rather than silently dropping a constraint
    return _normalizer.normalize_state(value) or value.strip().upper() or None


class CandidateLicense(BaseModel):
    """A license held by a candidate."""

    canonical_license_id: Optional[str] = None
    state: Optional[str] = None
    is_compact: bool = False
    expiration_date: Optional[datetime] = None

    @field_validator("state", mode="before")
    @classmethod
    def normalize_state(cls, value: Any) -> Optional[str]:
        return _parse_state(value)

    @field_validator("expiration_date", mode="before")
    @classmethod
    def normalize_expiration(cls, value: Any) -> Optional[datetime]:
        return _parse_timestamp(value)


class CandidateCertification(BaseModel):
    """A certification held by a candidate."""

    canonical_certification_id: Optional[str] = None
    expiration_date: Optional[datetime] = None

    @field_validator("expiration_date", mode="before")
    @classmethod
    def normalize_expiration(cls, value: Any) -> Optional[datetime]:
        return _parse_timestamp(value)


class RequisitionLicense(BaseModel):
    """A license requirement stated on a requisition."""

    canonical_license_id: Optional[str] = None
    state: Optional[str] = None
    requirement_level: RequirementLevel = RequirementLevel.REQUIRED

    @field_validator("state", mode="before")
    @classmethod
    def normalize_state(cls, value: Any) -> Optional[str]:
        return _parse_state(value)


class RequisitionCertification(BaseModel):
    """A certification requirement stated on a requisition."""

    canonical_certification_id: Optional[str] = None
    requirement_level: RequirementLevel = RequirementLevel.REQUIRED


class Candidate(BaseModel):
    """A fully hydrated candidate with credential sub-records."""

    id: str
    first_name: str = ""
    last_name: str = ""
    status: DocumentStatus = DocumentStatus.ACTIVE
    state: Optional[str] = None
    canonical_job_title_id: Optional[str] = None
    licenses: List[CandidateLicense] = Field(default_factory=list)
    certifications: List[CandidateCertification] = Field(default_factory=list)

    @field_validator("state", mode="before")
    @classmethod
    def normalize_state(cls, value: Any) -> Optional[str]:
        return _parse_state(value)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Requisition(BaseModel):
    """A fully hydrated job requisition with its credential requirements."""

    id: str
    job_title: str = ""
    raw_facility_name: Optional[str] = None
    status: DocumentStatus = DocumentStatus.ACTIVE
    state: Optional[str] = None
    canonical_job_title_id: Optional[str] = None
    expires_at: Optional[datetime] = None
    licenses: List[RequisitionLicense] = Field(default_factory=list)
    certifications: List[RequisitionCertification] = Field(default_factory=list)

    @field_validator("state", mode="before")
    @classmethod
    def normalize_state(cls, value: Any) -> Optional[str]:
        return _parse_state(value)

    @field_validator("expires_at", mode="before")
    @classmethod
    def normalize_expiry(cls, value: Any) -> Optional[datetime]:
        return _parse_timestamp(value)
