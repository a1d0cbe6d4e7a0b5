"""Tests for the canonicalization waterfall."""

import asyncio

import pytest

from carematch.canonical import CanonicalResolver
from carematch.config import Settings
from carematch.errors import ExternalServiceError, UnknownCanonicalIdError
from carematch.models import CanonicalKey, MatchType


def resolve(resolver, key, raw_value):
    return asyncio.run(resolver.resolve(key, raw_value))


class TestShortCircuits:
    """Inputs that never reach a matching stage."""

    @pytest.mark.parametrize("raw", ["", "   ", "\t\n"])
    def test_blank_input(self, make_resolver, stub_matcher, raw):
        matcher = stub_matcher()
        result = resolve(make_resolver(matcher), CanonicalKey.LICENSE_TYPE, raw)

        assert result.canonical_id is None
        assert result.match_type == MatchType.NONE
        assert result.confidence == 0.0
        assert result.reason == "Empty input value"
        assert matcher.calls == []

    def test_no_entries_for_key(self, make_resolver, stub_matcher, selection):
        matcher = stub_matcher(selection("fac-1"))
        result = resolve(make_resolver(matcher), CanonicalKey.FACILITY_NAME, "St. Mary's Hospital")

        assert result.canonical_id is None
        assert result.match_type == MatchType.NONE
        assert "No canonical entries" in result.reason
        assert matcher.calls == []

    def test_accepts_string_key(self, make_resolver):
        result = resolve(make_resolver(), "licenseType", "RN")
        assert result.key == CanonicalKey.LICENSE_TYPE
        assert result.canonical_id == "lic-rn"

    def test_unknown_key_is_rejected(self, make_resolver):
        with pytest.raises(ValueError):
            resolve(make_resolver(), "shoeSize", "10")


class TestDeterministicStages:
    """Exact and fuzzy resolution through the resolver."""

    @pytest.mark.parametrize("raw", ["RN", "rn", " Registered Nurse ", "registered professional nurse"])
    def test_exact(self, make_resolver, stub_matcher, raw):
        matcher = stub_matcher()
        result = resolve(make_resolver(matcher), CanonicalKey.LICENSE_TYPE, raw)

        assert result.canonical_id == "lic-rn"
        assert result.canonical_value == "Registered Nurse"
        assert result.match_type == MatchType.EXACT
        assert result.confidence == 1.0
        assert result.raw_value == raw
        assert matcher.calls == []

    def test_fuzzy(self, make_resolver, stub_matcher):
        matcher = stub_matcher()
        result = resolve(make_resolver(matcher), CanonicalKey.LICENSE_TYPE, "Licensed Practial Nurse")

        assert result.canonical_id == "lic-lpn"
        assert result.match_type == MatchType.FUZZY
        assert result.confidence == pytest.approx(1 - 1 / 24)
        assert matcher.calls == []

    def test_custom_fuzzy_threshold(self, make_resolver):
        result = resolve(make_resolver(fuzzy_threshold=0.99), CanonicalKey.LICENSE_TYPE, "Registerd Nurse")
        assert result.match_type == MatchType.NONE

    def test_no_match_without_semantic_matcher(self, make_resolver):
        result = resolve(make_resolver(), CanonicalKey.LICENSE_TYPE, "Physical Therapist")
        assert result.canonical_id is None
        assert result.match_type == MatchType.NONE
        assert "not configured" in result.reason

    def test_idempotent(self, make_resolver):
        resolver = make_resolver()
        first = resolve(resolver, CanonicalKey.LICENSE_TYPE, "Registerd Nurse")
        second = resolve(resolver, CanonicalKey.LICENSE_TYPE, "Registerd Nurse")
        assert first == second


class TestSemanticStage:
    """Validation of the semantic collaborator's answers."""

    def test_receives_domain_hint_and_entries(self, make_resolver, stub_matcher, selection):
        matcher = stub_matcher(selection("lic-np"))
        resolve(make_resolver(matcher), CanonicalKey.LICENSE_TYPE, "Advanced Practice Nurse")

        raw, hint, ids = matcher.calls[0]
        assert raw == "Advanced Practice Nurse"
        assert hint == "professional medical/nursing license"
        assert ids == ["lic-rn", "lic-lpn", "lic-np"]

    def test_accepts_valid_selection_with_capped_confidence(self, make_resolver, stub_matcher, selection):
        matcher = stub_matcher(selection("lic-np", confidence=0.95, reasoning="APRN is an NP"))
        result = resolve(make_resolver(matcher), CanonicalKey.LICENSE_TYPE, "Advanced Practice Nurse")

        assert result.canonical_id == "lic-np"
        assert result.canonical_value == "Nurse Practitioner"
        assert result.match_type == MatchType.AI
        assert result.confidence == pytest.approx(0.7)
        assert result.reason == "AI semantic match: APRN is an NP"

    def test_confidence_between_floor_and_cap_is_kept(self, make_resolver, stub_matcher, selection):
        matcher = stub_matcher(selection("lic-np", confidence=0.6))
        result = resolve(make_resolver(matcher), CanonicalKey.LICENSE_TYPE, "Advanced Practice Nurse")
        assert result.confidence == pytest.approx(0.6)

    def test_confidence_at_floor_is_accepted(self, make_resolver, stub_matcher, selection):
        matcher = stub_matcher(selection("lic-np", confidence=0.5))
        result = resolve(make_resolver(matcher), CanonicalKey.LICENSE_TYPE, "Advanced Practice Nurse")
        assert result.canonical_id == "lic-np"

    def test_low_confidence_rejected(self, make_resolver, stub_matcher, selection):
        matcher = stub_matcher(selection("lic-np", confidence=0.49))
        result = resolve(make_resolver(matcher), CanonicalKey.LICENSE_TYPE, "Advanced Practice Nurse")

        assert result.canonical_id is None
        assert result.match_type == MatchType.NONE
        assert result.confidence == 0.0
        assert "below threshold" in result.reason

    def test_unknown_id_rejected(self, make_resolver, stub_matcher, selection):
        matcher = stub_matcher(selection("lic-made-up", confidence=0.99))
        result = resolve(make_resolver(matcher), CanonicalKey.LICENSE_TYPE, "Advanced Practice Nurse")

        assert result.canonical_id is None
        assert result.match_type == MatchType.NONE
        assert "lic-made-up" in result.reason

    def test_abstention(self, make_resolver, stub_matcher, selection):
        matcher = stub_matcher(selection(None, confidence=0.0))
        result = resolve(make_resolver(matcher), CanonicalKey.LICENSE_TYPE, "Phlebotomist")
        assert result.canonical_id is None
        assert "did not identify" in result.reason

    def test_accepts_dict_payload(self, make_resolver, stub_matcher):
        matcher = stub_matcher({"match_id": "lic-np", "confidence": 0.8, "reasoning": "ok"})
        result = resolve(make_resolver(matcher), CanonicalKey.LICENSE_TYPE, "Advanced Practice Nurse")
        assert result.canonical_id == "lic-np"

    def test_malformed_payload_fails_open(self, make_resolver, stub_matcher):
        matcher = stub_matcher({"match_id": "lic-np", "confidence": 7})
        result = resolve(make_resolver(matcher), CanonicalKey.LICENSE_TYPE, "Advanced Practice Nurse")
        assert result.canonical_id is None
        assert result.reason.startswith("AI matching failed")

    def test_service_error_fails_open(self, make_resolver, stub_matcher):
        matcher = stub_matcher(error=ExternalServiceError("connection refused"))
        result = resolve(make_resolver(matcher), CanonicalKey.LICENSE_TYPE, "Advanced Practice Nurse")

        assert result.canonical_id is None
        assert result.match_type == MatchType.NONE
        assert result.reason == "AI matching failed: connection refused"

    def test_unexpected_error_fails_open(self, make_resolver, stub_matcher):
        matcher = stub_matcher(error=RuntimeError("boom"))
        result = resolve(make_resolver(matcher), CanonicalKey.LICENSE_TYPE, "Advanced Practice Nurse")
        assert result.canonical_id is None
        assert "boom" in result.reason

    def test_timeout_fails_open(self, make_resolver, stub_matcher, selection):
        matcher = stub_matcher(selection("lic-np"), delay=1.0)
        resolver = make_resolver(matcher, semantic_timeout=0.01)
        result = resolve(resolver, CanonicalKey.LICENSE_TYPE, "Advanced Practice Nurse")

        assert result.canonical_id is None
        assert "timed out" in result.reason

    def test_from_settings_applies_thresholds(self, entry_source, stub_matcher, selection):
        settings = Settings(ai_confidence_floor=0.8, ai_confidence_cap=0.6)
        resolver = CanonicalResolver.from_settings(entry_source, settings, stub_matcher(selection("lic-np", 0.7)))
        result = resolve(resolver, CanonicalKey.LICENSE_TYPE, "Advanced Practice Nurse")
        assert result.canonical_id is None

        resolver.semantic_matcher = stub_matcher(selection("lic-np", 0.9))
        result = resolve(resolver, CanonicalKey.LICENSE_TYPE, "Advanced Practice Nurse")
        assert result.confidence == pytest.approx(0.6)


class TestResolveBatch:
    """Batch resolution."""

    def test_preserves_order(self, make_resolver):
        resolver = make_resolver()
        items = [
            (CanonicalKey.CERT_TYPE, "ACLS"),
            (CanonicalKey.LICENSE_TYPE, "LVN"),
            (CanonicalKey.LICENSE_TYPE, ""),
            ("certType", "Basic Life Suport"),
        ]
        results = asyncio.run(resolver.resolve_batch(items))

        assert [r.canonical_id for r in results] == ["cert-acls", "lic-lpn", None, "cert-bls"]
        assert [r.match_type for r in results] == [
            MatchType.EXACT, MatchType.EXACT, MatchType.NONE, MatchType.FUZZY,
        ]

    def test_failure_does_not_abort_batch(self, make_resolver, stub_matcher):
        resolver = make_resolver(stub_matcher(error=ExternalServiceError("down")))
        results = asyncio.run(resolver.resolve_batch([
            (CanonicalKey.LICENSE_TYPE, "Advanced Practice Nurse"),
            (CanonicalKey.LICENSE_TYPE, "RN"),
        ]))
        assert results[0].canonical_id is None
        assert results[1].canonical_id == "lic-rn"

    def test_empty_batch(self, make_resolver):
        assert asyncio.run(make_resolver().resolve_batch([])) == []

    def test_entry_source_failure_is_isolated_to_its_key(self, license_entries):
        class FlakySource:
            def list_entries(self, key):
                if key == CanonicalKey.CERT_TYPE:
                    raise RuntimeError("database is locked")
                return list(license_entries)

        resolver = CanonicalResolver(FlakySource())
        results = asyncio.run(resolver.resolve_batch([
            (CanonicalKey.LICENSE_TYPE, "RN"),
            (CanonicalKey.CERT_TYPE, "BLS"),
            (CanonicalKey.LICENSE_TYPE, "LVN"),
        ]))

        assert [r.canonical_id for r in results] == ["lic-rn", None, "lic-lpn"]
        assert results[1].match_type == MatchType.NONE
        assert results[1].reason == "Failed to load canonical entries for certType"

    def test_entries_listed_once_per_key(self, license_entries, cert_entries):
        class CountingSource:
            def __init__(self):
                self.calls = []

            def list_entries(self, key):
                self.calls.append(key)
                return list(license_entries if key == CanonicalKey.LICENSE_TYPE else cert_entries)

        source = CountingSource()
        results = asyncio.run(CanonicalResolver(source).resolve_batch([
            (CanonicalKey.LICENSE_TYPE, "RN"),
            (CanonicalKey.LICENSE_TYPE, "LPN"),
            (CanonicalKey.CERT_TYPE, "BLS"),
            (CanonicalKey.LICENSE_TYPE, "NP"),
            (CanonicalKey.CERT_TYPE, "  "),
        ]))

        assert sorted(source.calls) == sorted([CanonicalKey.LICENSE_TYPE, CanonicalKey.CERT_TYPE])
        assert [r.canonical_id for r in results] == ["lic-rn", "lic-lpn", "cert-bls", "lic-np", None]

    def test_single_resolve_propagates_entry_source_errors(self):
        class BrokenSource:
            def list_entries(self, key):
                raise RuntimeError("database is locked")

        with pytest.raises(RuntimeError, match="database is locked"):
            resolve(CanonicalResolver(BrokenSource()), CanonicalKey.LICENSE_TYPE, "RN")


class TestManualResolution:
    """Operator-assigned canonical ids."""

    def test_manual(self, make_resolver):
        result = make_resolver().manual(CanonicalKey.LICENSE_TYPE, "R.N. (compact)", "lic-rn")
        assert result.canonical_id == "lic-rn"
        assert result.match_type == MatchType.MANUAL
        assert result.confidence == 1.0

    def test_unknown_id(self, make_resolver):
        with pytest.raises(UnknownCanonicalIdError) as exc_info:
            make_resolver().manual(CanonicalKey.LICENSE_TYPE, "RN", "lic-missing")
        assert exc_info.value.canonical_id == "lic-missing"

    def test_wrong_key(self, entry_source):
        resolver = CanonicalResolver(entry_source)
        with pytest.raises(UnknownCanonicalIdError):
            resolver.manual(CanonicalKey.CERT_TYPE, "RN", "lic-rn")


class TestEntrySourceUsage:
    """Entries are read fresh for each resolution."""

    def test_entries_reloaded(self, license_entries):
        class GrowingSource:
            def __init__(self):
                self.entries = []

            def list_entries(self, key):
                return list(self.entries)

        source = GrowingSource()
        resolver = CanonicalResolver(source)
        assert resolve(resolver, CanonicalKey.JOB_TITLE, "Travel RN").canonical_id is None

        source.entries = license_entries
        assert resolve(resolver, CanonicalKey.JOB_TITLE, "RN").canonical_id == "lic-rn"
