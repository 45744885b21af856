"""SQLAlchemy ORM schema for the snapshot store.

Tables: snapshots, audit_entries, _snapforge_meta.

The PipelineState, LogPhase and LogLevel enums come from the domain
models; the ORM stores them by name.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from snapforge.models.snapshot import LogLevel, LogPhase, PipelineState


class Base(DeclarativeBase):
    """Base class for all snapforge ORM models."""

    pass


class SnapshotRow(Base):
    """A captured document and its extraction lifecycle."""

    __tablename__ = "snapshots"

    snapshot_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    raw_document: Mapped[str] = mapped_column(Text, nullable=False)
    ground_truth_json: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    state: Mapped[PipelineState] = mapped_column(nullable=False)
    extractor_source: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    entries: Mapped[list["AuditEntryRow"]] = relationship(
        "AuditEntryRow",
        order_by="AuditEntryRow.seq",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_snapshots_state_created", "state", "created_at"),
    )


class AuditEntryRow(Base):
    """One append-only audit log line; ``seq`` preserves append order."""

    __tablename__ = "audit_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    snapshot_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("snapshots.snapshot_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    phase: Mapped[LogPhase] = mapped_column(nullable=False)
    level: Mapped[LogLevel] = mapped_column(nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class ForgeMetaRow(Base):
    """Key/value store metadata (schema version)."""

    __tablename__ = "_snapforge_meta"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
