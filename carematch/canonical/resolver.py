"""Canonicalization resolver.

Maps raw extracted strings onto canonical entries using a three-stage
waterfall that stops at the first stage producing a match:

1. exact     case-insensitive equality on abbreviation, name, aliases
2. fuzzy     Levenshtein similarity at or above the fuzzy threshold
3. semantic  an injected semantic matcher, validated and confidence-capped

A failed resolution is a normal outcome (match type "none"), never an
exception.
"""

import asyncio
import logging
from typing import Iterable, List, Optional, Protocol, Tuple, Union

from carematch.canonical.semantic import DOMAIN_HINTS, SemanticMatcher, parse_selection
from carematch.canonical.stages import StageMatch, exact_match, fuzzy_match
from carematch.config import Settings
from carematch.errors import ExternalServiceError, UnknownCanonicalIdError
from carematch.models import CanonicalEntry, CanonicalKey, CanonicalResult, MatchType

logger = logging.getLogger(__name__)

KeyLike = Union[CanonicalKey, str]


class EntrySource(Protocol):
    """Read-only listing of canonical entries per key."""

    def list_entries(self, key: CanonicalKey) -> List[CanonicalEntry]:
        ...


class CanonicalResolver:
    """Resolves raw values to canonical entry ids."""

    def __init__(
        self,
        entry_source: EntrySource,
        semantic_matcher: Optional[SemanticMatcher] = None,
        fuzzy_threshold: float = 0.90,
        confidence_floor: float = 0.5,
        confidence_cap: float = 0.7,
        semantic_timeout: float = 20.0,
    ):
        """Initialize the resolver.

        Args:
            entry_source: Provides canonical entries for each key
            semantic_matcher: Optional semantic stage collaborator; the stage is skipped without one
            fuzzy_threshold: Minimum similarity accepted by the fuzzy stage
            confidence_floor: Minimum semantic confidence accepted
            confidence_cap: Maximum confidence stored for a semantic match
            semantic_timeout: Seconds to wait for the semantic matcher
        """
        self.entry_source = entry_source
        self.semantic_matcher = semantic_matcher
        self.fuzzy_threshold = fuzzy_threshold
        self.confidence_floor = confidence_floor
        self.confidence_cap = confidence_cap
        self.semantic_timeout = semantic_timeout

    @classmethod
    def from_settings(
        cls,
        entry_source: EntrySource,
        settings: Settings,
        semantic_matcher: Optional[SemanticMatcher] = None,
    ) -> "CanonicalResolver":
        return cls(
            entry_source,
            semantic_matcher=semantic_matcher,
            fuzzy_threshold=settings.fuzzy_threshold,
            confidence_floor=settings.ai_confidence_floor,
            confidence_cap=settings.ai_confidence_cap,
            semantic_timeout=settings.semantic_timeout_seconds,
        )

    async def resolve(self, key: KeyLike, raw_value: str) -> CanonicalResult:
        """Resolve one raw value for a canonical key.

        Args:
            key: Canonical key (facilityName, licenseType, certType, jobTitle)
            raw_value: Raw extracted string

        Returns:
            CanonicalResult; canonical_id is None when nothing matched

        Raises:
            Whatever the entry source raises while listing entries
        """
        key = CanonicalKey(key)

        if _is_blank(raw_value):
            return self._no_match(key, raw_value or "", "Empty input value")

        entries = await self._load_entries(key)
        return await self._resolve_with(key, raw_value, entries)

    async def resolve_batch(
        self,
        items: Iterable[Tuple[KeyLike, str]],
    ) -> List[CanonicalResult]:
        """Resolve independent (key, raw_value) pairs concurrently.

        Entries are listed once per distinct key. A key whose entries cannot
        be loaded, or an item that fails unexpectedly, yields a "none" result
        for the affected items only.

        Returns:
            Results in the same order as the input items
        """
        items = [(CanonicalKey(key), raw) for key, raw in items]

        keys = list(dict.fromkeys(key for key, raw in items if not _is_blank(raw)))
        loaded = await asyncio.gather(*(self._load_for_batch(key) for key in keys))
        entries_by_key = dict(zip(keys, loaded))

        results = await asyncio.gather(*(
            self._resolve_item(key, raw, entries_by_key.get(key)) for key, raw in items
        ))

        resolved = sum(1 for r in results if r.resolved)
        logger.info(f"Batch canonicalization complete: {resolved}/{len(results)} resolved")
        return list(results)

    def manual(self, key: KeyLike, raw_value: str, canonical_id: str) -> CanonicalResult:
        """Record an operator's manual choice of canonical entry.

        Raises:
            UnknownCanonicalIdError: canonical_id is not an entry for this key
        """
        key = CanonicalKey(key)
        entry = next(
            (e for e in self.entry_source.list_entries(key) if e.id == canonical_id),
            None,
        )
        if entry is None:
            raise UnknownCanonicalIdError(key.value, canonical_id)

        return CanonicalResult(
            key=key,
            raw_value=raw_value,
            canonical_id=entry.id,
            canonical_value=entry.name,
            match_type=MatchType.MANUAL,
            confidence=1.0,
            reason=f"Manually resolved to '{entry.name}'",
        )

    async def _load_entries(self, key: CanonicalKey) -> List[CanonicalEntry]:
        # Entry sources may block on I/O
        return await asyncio.to_thread(self.entry_source.list_entries, key)

    async def _load_for_batch(self, key: CanonicalKey) -> Optional[List[CanonicalEntry]]:
        try:
            return await self._load_entries(key)
        except Exception:
            logger.exception(f"Failed to load canonical entries for {key.value}")
            return None

    async def _resolve_item(
        self,
        key: CanonicalKey,
        raw_value: str,
        entries: Optional[List[CanonicalEntry]],
    ) -> CanonicalResult:
        if _is_blank(raw_value):
            return self._no_match(key, raw_value or "", "Empty input value")
        if entries is None:
            return self._no_match(key, raw_value, f"Failed to load canonical entries for {key.value}")

        try:
            return await self._resolve_with(key, raw_value, entries)
        except Exception as e:
            logger.exception(f"Canonicalization failed for {key.value} {raw_value!r}")
            return self._no_match(key, raw_value, f"Resolution failed: {e}")

    async def _resolve_with(
        self,
        key: CanonicalKey,
        raw_value: str,
        entries: List[CanonicalEntry],
    ) -> CanonicalResult:
        if not entries:
            return self._no_match(key, raw_value, f"No canonical entries found for {key.value}")

        for stage in (self._exact_stage, self._fuzzy_stage):
            match = stage(raw_value, entries)
            if match:
                return self._from_match(key, raw_value, match)

        match, reason = await self._semantic_stage(key, raw_value, entries)
        if match:
            return self._from_match(key, raw_value, match)

        logger.debug(f"No canonical match for {key.value} {raw_value!r}: {reason}")
        return self._no_match(key, raw_value, reason)

    def _exact_stage(self, raw_value: str, entries: List[CanonicalEntry]) -> Optional[StageMatch]:
        return exact_match(raw_value, entries)

    def _fuzzy_stage(self, raw_value: str, entries: List[CanonicalEntry]) -> Optional[StageMatch]:
        return fuzzy_match(raw_value, entries, self.fuzzy_threshold)

    async def _semantic_stage(
        self,
        key: CanonicalKey,
        raw_value: str,
        entries: List[CanonicalEntry],
    ) -> Tuple[Optional[StageMatch], str]:
        """Run the semantic matcher and validate what it returns.

        Returns:
            (match, reason); match is None when the stage yields nothing
        """
        if self.semantic_matcher is None:
            return None, "No exact or fuzzy match; semantic matching not configured"

        try:
            raw_selection = await asyncio.wait_for(
                self.semantic_matcher(raw_value, DOMAIN_HINTS[key], entries),
                timeout=self.semantic_timeout,
            )
            selection = parse_selection(raw_selection)
        except asyncio.TimeoutError:
            logger.warning(f"Semantic matching timed out for {key.value} {raw_value!r}")
            return None, f"AI matching timed out after {self.semantic_timeout:g}s"
        except ExternalServiceError as e:
            logger.warning(f"Semantic matching failed for {key.value} {raw_value!r}: {e}")
            return None, f"AI matching failed: {e}"
        except Exception as e:
            logger.exception(f"Unexpected semantic matcher error for {key.value} {raw_value!r}")
            return None, f"AI matching failed: {e}"

        if not selection.match_id:
            return None, "AI did not identify a confident canonical match"

        entry = next((e for e in entries if e.id == selection.match_id), None)
        if entry is None:
            logger.warning(f"Semantic matcher returned unknown id {selection.match_id!r} for {key.value}")
            return None, f"AI returned unknown canonical id '{selection.match_id}'"

        if selection.confidence < self.confidence_floor:
            return None, (
                f"AI confidence {selection.confidence:.2f} below "
                f"threshold {self.confidence_floor:.2f}"
            )

        return StageMatch(
            entry=entry,
            match_type=MatchType.AI,
            confidence=min(selection.confidence, self.confidence_cap),
            reason=f"AI semantic match: {selection.reasoning}",
        ), ""

    def _from_match(self, key: CanonicalKey, raw_value: str, match: StageMatch) -> CanonicalResult:
        return CanonicalResult(
            key=key,
            raw_value=raw_value,
            canonical_id=match.entry.id,
            canonical_value=match.entry.name,
            match_type=match.match_type,
            confidence=match.confidence,
            reason=match.reason,
        )

    def _no_match(self, key: CanonicalKey, raw_value: str, reason: str) -> CanonicalResult:
        return CanonicalResult(
            key=key,
            raw_value=raw_value,
            canonical_id=None,
            canonical_value=None,
            match_type=MatchType.NONE,
            confidence=0.0,
            reason=reason,
        )


def _is_blank(raw_value: Optional[str]) -> bool:
    return not raw_value or not raw_value.strip()
