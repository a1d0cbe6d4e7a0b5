"""SQLAlchemy models for the canonical reference tables."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class CanonicalColumns:
    """Columns shared by every canonical table."""

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    aliases: Mapped[Optional[List[str]]] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(id={self.id!r}, name={self.name!r})>"


class Facility(CanonicalColumns, Base):
    """Healthcare facilities requisitions are posted for."""

    __tablename__ = "facilities"


class CanonicalLicense(CanonicalColumns, Base):
    """Canonical license types (RN, LPN, ...)."""

    __tablename__ = "canonical_licenses"

    abbreviation: Mapped[Optional[str]] = mapped_column(String(32))


class CanonicalCertification(CanonicalColumns, Base):
    """Canonical certification types (BLS, ACLS, ...)."""

    __tablename__ = "canonical_certifications"

    abbreviation: Mapped[Optional[str]] = mapped_column(String(32))


class CanonicalJobTitle(CanonicalColumns, Base):
    """Canonical job titles."""

    __tablename__ = "canonical_job_titles"

    abbreviation: Mapped[Optional[str]] = mapped_column(String(32))
