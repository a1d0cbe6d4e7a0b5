"""Storage module for the canonical reference tables."""

from carematch.storage.database import init_db, get_session, get_engine, reset_engine
from carematch.storage.entries import DatabaseEntrySource, StaticEntrySource, seed_entries
from carematch.storage.models import (
    CanonicalCertification,
    CanonicalJobTitle,
    CanonicalLicense,
    Facility,
)

__all__ = [
    "init_db",
    "get_session",
    "get_engine",
    "reset_engine",
    "DatabaseEntrySource",
    "StaticEntrySource",
    "seed_entries",
    "CanonicalCertification",
    "CanonicalJobTitle",
    "CanonicalLicense",
    "Facility",
]
