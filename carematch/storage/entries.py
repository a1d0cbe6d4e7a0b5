"""Canonical entry sources consumed by the resolver."""

import logging
from typing import Callable, ContextManager, Dict, Iterable, List, Mapping, Type

from sqlalchemy import select
from sqlalchemy.orm import Session

from carematch.models import CanonicalEntry, CanonicalKey
from carematch.storage.database import get_session
from carematch.storage.models import (
    CanonicalCertification,
    CanonicalJobTitle,
    CanonicalLicense,
    Facility,
)

logger = logging.getLogger(__name__)

TABLES: Dict[CanonicalKey, Type] = {
    CanonicalKey.FACILITY_NAME: Facility,
    CanonicalKey.LICENSE_TYPE: CanonicalLicense,
    CanonicalKey.CERT_TYPE: CanonicalCertification,
    CanonicalKey.JOB_TITLE: CanonicalJobTitle,
}


class StaticEntrySource:
    """In-memory entries, keyed by CanonicalKey."""

    def __init__(self, entries: Mapping[CanonicalKey, Iterable[CanonicalEntry]]):
        self._entries = {CanonicalKey(k): list(v) for k, v in entries.items()}

    def list_entries(self, key: CanonicalKey) -> List[CanonicalEntry]:
        return list(self._entries.get(CanonicalKey(key), []))


class DatabaseEntrySource:
    """Reads canonical entries from the canonical tables."""

    def __init__(self, session_factory: Callable[[], ContextManager[Session]] = get_session):
        self.session_factory = session_factory

    def list_entries(self, key: CanonicalKey) -> List[CanonicalEntry]:
        table = TABLES[CanonicalKey(key)]
        with self.session_factory() as session:
            rows = session.scalars(select(table).order_by(table.name, table.id)).all()
            entries = [
                CanonicalEntry(
                    id=row.id,
                    name=row.name,
                    abbreviation=getattr(row, "abbreviation", None),
                    aliases=row.aliases or [],
                )
                for row in rows
            ]

        logger.debug(f"Loaded {len(entries)} canonical entries for {CanonicalKey(key).value}")
        return entries


def seed_entries(session: Session, key: CanonicalKey, entries: Iterable[CanonicalEntry]) -> int:
    """Insert or update canonical entries for a key.

    Returns:
        Number of entries written
    """
    table = TABLES[CanonicalKey(key)]
    count = 0
    for entry in entries:
        values = {"id": entry.id, "name": entry.name, "aliases": list(entry.aliases)}
        if hasattr(table, "abbreviation"):
            values["abbreviation"] = entry.abbreviation
        session.merge(table(**values))
        count += 1

    logger.info(f"Seeded {count} {CanonicalKey(key).value} entries")
    return count
