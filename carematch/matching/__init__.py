"""Matching module for candidate/requisition scoring and ranking."""

from carematch.matching.matcher import MatchResult, MatchScore, RequirementCheck, RequirementMatcher
from carematch.matching.ranking import (
    MatchFilters,
    find_candidates_for_requisition,
    find_requisitions_for_candidate,
    get_match_details,
    rank_candidates_for,
    rank_requisitions_for,
)

__all__ = [
    "MatchResult",
    "MatchScore",
    "RequirementCheck",
    "RequirementMatcher",
    "MatchFilters",
    "find_candidates_for_requisition",
    "find_requisitions_for_candidate",
    "get_match_details",
    "rank_candidates_for",
    "rank_requisitions_for",
]
