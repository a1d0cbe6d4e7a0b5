"""Ranking of candidates and requisitions by match score.

Both directions score every pool member with the same RequirementMatcher
and sort descending by overall score. Equal scores keep their pool order.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Mapping, Optional

from carematch.errors import NotFoundError
from carematch.matching.matcher import MatchResult, RequirementMatcher, When, as_of, is_expired
from carematch.models import Candidate, DocumentStatus, Requisition

logger = logging.getLogger(__name__)

_default_matcher = RequirementMatcher()


@dataclass
class MatchFilters:
    """Eligibility filters applied to a pool before scoring."""
    status: Optional[DocumentStatus] = DocumentStatus.ACTIVE  # None = any status
    include_expired: bool = False  # Include requisitions past expires_at


def _eligible_candidates(
    candidates: Iterable[Candidate],
    filters: Optional[MatchFilters],
) -> List[Candidate]:
    if filters is None:
        return list(candidates)
    return [c for c in candidates if filters.status is None or c.status == filters.status]


def _eligible_requisitions(
    requisitions: Iterable[Requisition],
    filters: Optional[MatchFilters],
    now: When,
) -> List[Requisition]:
    if filters is None:
        return list(requisitions)
    evaluated_at = as_of(now)
    eligible = []
    for requisition in requisitions:
        if filters.status is not None and requisition.status != filters.status:
            continue
        if not filters.include_expired and is_expired(requisition.expires_at, evaluated_at):
            continue
        eligible.append(requisition)
    return eligible


def _sort_by_overall(results: List[MatchResult]) -> List[MatchResult]:
    # list.sort is stable, also with reverse=True
    results.sort(key=lambda r: r.score.overall, reverse=True)
    return results


def rank_candidates_for(
    requisition: Requisition,
    candidate_pool: Iterable[Candidate],
    filters: Optional[MatchFilters] = None,
    now: When = None,
    matcher: Optional[RequirementMatcher] = None,
) -> List[MatchResult]:
    """Score every candidate in the pool against one requisition.

    Args:
        requisition: Requisition to fill
        candidate_pool: Candidates to consider
        filters: Optional eligibility filters; None scores the whole pool
        now: Evaluation time for expiry checks
        matcher: Matcher to use (default: shared RequirementMatcher)

    Returns:
        MatchResults sorted by overall score, highest first
    """
    matcher = matcher or _default_matcher
    candidates = _eligible_candidates(candidate_pool, filters)
    results = [matcher.score(candidate, requisition, now) for candidate in candidates]

    logger.info(f"Ranked {len(results)} candidates for requisition {requisition.id}")
    return _sort_by_overall(results)


def rank_requisitions_for(
    candidate: Candidate,
    requisition_pool: Iterable[Requisition],
    filters: Optional[MatchFilters] = None,
    now: When = None,
    matcher: Optional[RequirementMatcher] = None,
) -> List[MatchResult]:
    """Score every requisition in the pool against one candidate.

    Args:
        candidate: Candidate looking for work
        requisition_pool: Requisitions to consider
        filters: Optional eligibility filters; None scores the whole pool
        now: Evaluation time for expiry checks
        matcher: Matcher to use (default: shared RequirementMatcher)

    Returns:
        MatchResults sorted by overall score, highest first
    """
    matcher = matcher or _default_matcher
    requisitions = _eligible_requisitions(requisition_pool, filters, now)
    results = [matcher.score(candidate, requisition, now) for requisition in requisitions]

    logger.info(f"Ranked {len(results)} requisitions for candidate {candidate.id}")
    return _sort_by_overall(results)


def find_candidates_for_requisition(
    requisition_id: str,
    requisitions: Mapping[str, Requisition],
    candidates: Iterable[Candidate],
    filters: Optional[MatchFilters] = None,
    now: When = None,
) -> List[MatchResult]:
    """Look up a requisition by id and rank eligible candidates for it.

    Raises:
        NotFoundError: No requisition with this id
    """
    requisition = requisitions.get(requisition_id)
    if requisition is None:
        raise NotFoundError("Requisition", requisition_id)
    return rank_candidates_for(requisition, candidates, filters or MatchFilters(), now)


def find_requisitions_for_candidate(
    candidate_id: str,
    candidates: Mapping[str, Candidate],
    requisitions: Iterable[Requisition],
    filters: Optional[MatchFilters] = None,
    now: When = None,
) -> List[MatchResult]:
    """Look up a candidate by id and rank eligible requisitions for them.

    Raises:
        NotFoundError: No candidate with this id
    """
    candidate = candidates.get(candidate_id)
    if candidate is None:
        raise NotFoundError("Candidate", candidate_id)
    return rank_requisitions_for(candidate, requisitions, filters or MatchFilters(), now)


def get_match_details(
    candidate_id: str,
    requisition_id: str,
    candidates: Mapping[str, Candidate],
    requisitions: Mapping[str, Requisition],
    now: When = None,
) -> Optional[MatchResult]:
    """Score one specific pair, or None if either id is unknown."""
    candidate = candidates.get(candidate_id)
    requisition = requisitions.get(requisition_id)
    if candidate is None or requisition is None:
        return None
    return _default_matcher.score(candidate, requisition, now)
