"""Canonical module for resolving raw values to canonical entries."""

from carematch.canonical.resolver import CanonicalResolver, EntrySource
from carematch.canonical.semantic import OpenAISemanticMatcher, SemanticMatcher, SemanticSelection
from carematch.canonical.similarity import levenshtein_distance, similarity

__all__ = [
    "CanonicalResolver",
    "EntrySource",
    "OpenAISemanticMatcher",
    "SemanticMatcher",
    "SemanticSelection",
    "levenshtein_distance",
    "similarity",
]
