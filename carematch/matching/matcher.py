"""Requirement matching engine.

Scores a candidate against a requisition using only resolved canonical
ids. Each requisition constraint that is present contributes terms to a
flat list of 0/100 requirement scores; the overall score is their mean.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple, Union

from carematch.models import (
    Candidate,
    CandidateCertification,
    CandidateLicense,
    RequirementLevel,
    Requisition,
)
from carematch.processing.normalizer import Normalizer

logger = logging.getLogger(__name__)

_normalizer = Normalizer()

When = Union[date, datetime, None]


@dataclass
class RequirementCheck:
    """Result of checking a single requisition constraint."""
    requirement: str           # Factor name: job_title, location, license, certification
    required_value: str        # Canonical id or state code required
    matched: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "requirement": self.requirement,
            "required_value": self.required_value,
            "matched": self.matched,
        }


@dataclass
class MatchScore:
    """Score breakdown, each component 0-100."""
    overall: int
    job_title: int             # 0 when the requisition has no job title constraint
    licenses: int              # 100 when no required license is resolved
    certifications: int        # 100 when no required certification is resolved
    location: int              # 0 when the requisition has no state constraint

    def to_dict(self) -> Dict[str, int]:
        return {
            "overall": self.overall,
            "jobTitle": self.job_title,
            "licenses": self.licenses,
            "certifications": self.certifications,
            "location": self.location,
        }


@dataclass
class MatchResult:
    """Result of scoring one candidate against one requisition."""
    candidate_id: str
    requisition_id: str
    score: MatchScore
    matched_licenses: List[str] = field(default_factory=list)
    matched_certifications: List[str] = field(default_factory=list)
    missing_required_licenses: List[str] = field(default_factory=list)
    missing_required_certifications: List[str] = field(default_factory=list)
    candidate_name: str = ""
    job_title: str = ""
    facility_name: Optional[str] = None
    details: List[RequirementCheck] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "candidateId": self.candidate_id,
            "candidateName": self.candidate_name,
            "requisitionId": self.requisition_id,
            "jobTitle": self.job_title,
            "facilityName": self.facility_name,
            "score": self.score.to_dict(),
            "matchedLicenses": list(self.matched_licenses),
            "matchedCertifications": list(self.matched_certifications),
            "missingRequiredLicenses": list(self.missing_required_licenses),
            "missingRequiredCertifications": list(self.missing_required_certifications),
            "details": [d.to_dict() for d in self.details],
        }

    @property
    def match_summary(self) -> str:
        """Return summary like '4/5' of requirements met."""
        met = sum(1 for d in self.details if d.matched)
        return f"{met}/{len(self.details)}"


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for non-negative values."""
    return int(math.floor(value + 0.5))


def as_of(now: When) -> datetime:
    """Evaluation time for expiry checks as an aware UTC datetime."""
    if now is None:
        return datetime.now(timezone.utc)
    return _normalizer.normalize_timestamp(now)


def is_expired(expiration: Optional[datetime], now: datetime) -> bool:
    """Expired once the evaluation time has passed the expiration instant."""
    return expiration is not None and expiration < now


class RequirementMatcher:
    """Scores candidates against requisitions."""

    def score(
        self,
        candidate: Candidate,
        requisition: Requisition,
        now: When = None,
    ) -> MatchResult:
        """Score a candidate against a requisition.

        Args:
            candidate: Hydrated candidate with licenses and certifications
            requisition: Hydrated requisition with license/certification requirements
            now: Evaluation time for expiry checks; a date means its midnight UTC (default: now)

        Returns:
            MatchResult with score breakdown and matched/missing credential ids
        """
        evaluated_at = as_of(now)
        details: List[RequirementCheck] = []

        licenses = self._valid_licenses(candidate.licenses, evaluated_at)
        license_ids = {lic.canonical_license_id for lic in licenses}
        cert_ids = self._valid_certification_ids(candidate.certifications, evaluated_at)

        job_title_score = 0
        if requisition.canonical_job_title_id:
            matched = candidate.canonical_job_title_id == requisition.canonical_job_title_id
            job_title_score = 100 if matched else 0
            details.append(RequirementCheck("job_title", requisition.canonical_job_title_id, matched))

        location_score = 0
        if requisition.state:
            matched = self._can_work_in_state(licenses, requisition.state)
            location_score = 100 if matched else 0
            details.append(RequirementCheck("location", requisition.state, matched))

        required_licenses = [
            lic.canonical_license_id for lic in requisition.licenses
            if lic.requirement_level == RequirementLevel.REQUIRED and lic.canonical_license_id
        ]
        matched_licenses, missing_licenses = self._partition(required_licenses, license_ids)
        details.extend(RequirementCheck("license", lid, lid in license_ids) for lid in required_licenses)

        required_certs = [
            cert.canonical_certification_id for cert in requisition.certifications
            if cert.requirement_level == RequirementLevel.REQUIRED and cert.canonical_certification_id
        ]
        matched_certs, missing_certs = self._partition(required_certs, cert_ids)
        details.extend(RequirementCheck("certification", cid, cid in cert_ids) for cid in required_certs)

        # Every applicable constraint is one 0/100 term
        terms = [100 if d.matched else 0 for d in details]
        overall = round_half_up(sum(terms) / len(terms)) if terms else 100

        score = MatchScore(
            overall=overall,
            job_title=job_title_score,
            licenses=self._ratio(len(matched_licenses), len(required_licenses)),
            certifications=self._ratio(len(matched_certs), len(required_certs)),
            location=location_score,
        )

        return MatchResult(
            candidate_id=candidate.id,
            requisition_id=requisition.id,
            score=score,
            matched_licenses=matched_licenses,
            matched_certifications=matched_certs,
            missing_required_licenses=missing_licenses,
            missing_required_certifications=missing_certs,
            candidate_name=candidate.full_name,
            job_title=requisition.job_title,
            facility_name=requisition.raw_facility_name,
            details=details,
        )

    def _valid_licenses(
        self,
        licenses: Iterable[CandidateLicense],
        now: datetime,
    ) -> List[CandidateLicense]:
        """Resolved, unexpired licenses."""
        return [
            lic for lic in licenses
            if lic.canonical_license_id and not is_expired(lic.expiration_date, now)
        ]

    def _valid_certification_ids(
        self,
        certifications: Iterable[CandidateCertification],
        now: datetime,
    ) -> Set[str]:
        """Canonical ids of resolved, unexpired certifications."""
        return {
            cert.canonical_certification_id for cert in certifications
            if cert.canonical_certification_id and not is_expired(cert.expiration_date, now)
        }

    def _can_work_in_state(self, licenses: List[CandidateLicense], state: str) -> bool:
        """A license in the state or any compact license satisfies the location."""
        return any(lic.state == state or lic.is_compact for lic in licenses)

    def _partition(self, required: List[str], held: Set[str]) -> Tuple[List[str], List[str]]:
        matched = [rid for rid in required if rid in held]
        missing = [rid for rid in required if rid not in held]
        return matched, missing

    def _ratio(self, matched: int, total: int) -> int:
        if total == 0:
            return 100
        return round_half_up(matched / total * 100)
