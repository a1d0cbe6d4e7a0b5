"""
Pytest configuration and shared fixtures.
"""

import asyncio
from datetime import date
from typing import List, Optional

import pytest

from carematch.canonical import CanonicalResolver, SemanticSelection
from carematch.models import CanonicalEntry, CanonicalKey
from carematch.storage import StaticEntrySource, reset_engine


class StubSemanticMatcher:
    """Async semantic matcher returning a canned selection."""

    def __init__(self, selection=None, error: Optional[Exception] = None, delay: float = 0.0):
        self.selection = selection
        self.error = error
        self.delay = delay
        self.calls: List[tuple] = []

    async def __call__(self, raw_value, domain_hint, entries):
        self.calls.append((raw_value, domain_hint, [e.id for e in entries]))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.selection


@pytest.fixture
def today() -> date:
    """Fixed evaluation date for expiry checks."""
    return date(2026, 1, 15)


@pytest.fixture
def license_entries() -> List[CanonicalEntry]:
    """Canonical license types."""
    return [
        CanonicalEntry(
            id="lic-rn",
            name="Registered Nurse",
            abbreviation="RN",
            aliases=["Registered Professional Nurse"],
        ),
        CanonicalEntry(
            id="lic-lpn",
            name="Licensed Practical Nurse",
            abbreviation="LPN",
            aliases=["Licensed Vocational Nurse", "LVN"],
        ),
        CanonicalEntry(
            id="lic-np",
            name="Nurse Practitioner",
            abbreviation="NP",
            aliases=["APRN-NP"],
        ),
    ]


@pytest.fixture
def cert_entries() -> List[CanonicalEntry]:
    """Canonical certification types."""
    return [
        CanonicalEntry(id="cert-bls", name="Basic Life Support", abbreviation="BLS"),
        CanonicalEntry(id="cert-acls", name="Advanced Cardiovascular Life Support", abbreviation="ACLS"),
    ]


@pytest.fixture
def entry_source(license_entries, cert_entries) -> StaticEntrySource:
    """Entry source with licenses and certifications but no facilities or job titles."""
    return StaticEntrySource({
        CanonicalKey.LICENSE_TYPE: license_entries,
        CanonicalKey.CERT_TYPE: cert_entries,
    })


@pytest.fixture
def make_resolver(entry_source):
    """Factory for resolvers sharing the default entry source."""
    def _make(semantic_matcher=None, **kwargs) -> CanonicalResolver:
        return CanonicalResolver(entry_source, semantic_matcher=semantic_matcher, **kwargs)
    return _make


@pytest.fixture
def selection():
    """Factory for semantic selections."""
    def _make(match_id, confidence=0.9, reasoning="same credential") -> SemanticSelection:
        return SemanticSelection(match_id=match_id, confidence=confidence, reasoning=reasoning)
    return _make


@pytest.fixture
def clean_engine():
    """Ensure each storage test binds its own database."""
    reset_engine()
    yield
    reset_engine()


@pytest.fixture
def stub_matcher():
    """Factory for stub semantic matchers."""
    return StubSemanticMatcher
