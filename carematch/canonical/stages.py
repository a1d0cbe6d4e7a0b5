"""Deterministic stages of the canonicalization waterfall.

Each stage is a plain function taking the raw value and the candidate
entries and returning a StageMatch, or None when it has nothing to offer.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from carematch.canonical.similarity import similarity
from carematch.models import CanonicalEntry, MatchType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageMatch:
    """A canonical entry selected by one waterfall stage."""
    entry: CanonicalEntry
    match_type: MatchType
    confidence: float
    reason: str


def exact_match(raw_value: str, entries: List[CanonicalEntry]) -> Optional[StageMatch]:
    """Case-insensitive equality on abbreviation, then name, then aliases.
    
    Each field is checked across every entry before moving to the next, so an
    abbreviation hit on a later entry outranks a name hit on an earlier one.
    """
    normalized = raw_value.strip().lower()
    
    def hit(entry: CanonicalEntry, label: str, value: str) -> StageMatch:
        return StageMatch(
            entry=entry,
            match_type=MatchType.EXACT,
            confidence=1.0,
            reason=f"Exact match on {label} '{value}'",
        )
    
    for entry in entries:
        if entry.abbreviation and entry.abbreviation.strip().lower() == normalized:
            return hit(entry, "abbreviation", entry.abbreviation)
    
    for entry in entries:
        if entry.name.strip().lower() == normalized:
            return hit(entry, "name", entry.name)
    
    for entry in entries:
        for alias in entry.aliases:
            if alias.strip().lower() == normalized:
                return hit(entry, "alias", alias)
    
    return None


def fuzzy_match(
    raw_value: str,
    entries: List[CanonicalEntry],
    threshold: float,
) -> Optional[StageMatch]:
    """Best Levenshtein similarity over every comparison string of every entry.
    
    Only a strictly higher score replaces the current best, so on ties the
    first comparison string enumerated wins.
    """
    normalized = raw_value.strip().lower()
    best: Optional[Tuple[float, CanonicalEntry, str, str]] = None
    
    for entry in entries:
        for label, value in entry.labeled_strings():
            score = similarity(normalized, value.strip())
            if best is None or score > best[0]:
                best = (score, entry, label, value)
    
    if best is None:
        return None
    
    score, entry, label, value = best
    if score < threshold:
        logger.debug(f"Best fuzzy score {score:.2f} for {raw_value!r} is below {threshold:.2f}")
        return None
    
    return StageMatch(
        entry=entry,
        match_type=MatchType.FUZZY,
        confidence=score,
        reason=f"Fuzzy match on {label} '{value}' ({round(score * 100)}% match)",
    )
