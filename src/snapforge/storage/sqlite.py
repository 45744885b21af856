"""SQLite implementation of the snapshot repository.

SQLAlchemy 2.0-style queries (select() + session.execute()). The
repository takes a Session and flushes; committing is the caller's job.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from snapforge.models.snapshot import AuditEntry, PipelineState, Snapshot
from snapforge.storage.repositories import SnapshotRepository
from snapforge.storage.schema import AuditEntryRow, SnapshotRow


def _aware(value: datetime) -> datetime:
    """SQLite drops tzinfo; everything stored is UTC."""
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _naive(value: datetime) -> datetime:
    return value.astimezone(timezone.utc).replace(tzinfo=None) if value.tzinfo else value


def row_to_snapshot(row: SnapshotRow) -> Snapshot:
    """Convert a SnapshotRow (with its entries) into a domain Snapshot."""
    return Snapshot(
        snapshot_id=row.snapshot_id,
        raw_document=row.raw_document,
        ground_truth=row.ground_truth_json,
        state=row.state,
        extractor_source=row.extractor_source,
        logs=[
            AuditEntry(
                phase=entry.phase,
                level=entry.level,
                message=entry.message,
                timestamp=_aware(entry.timestamp),
            )
            for entry in row.entries
        ],
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


class SqliteSnapshotRepository(SnapshotRepository):
    """SQLite implementation of the snapshot repository.

    Audit entries are append-only: ``save`` inserts only the entries past
    the ones already stored.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def _row(self, snapshot_id: str) -> SnapshotRow | None:
        stmt = select(SnapshotRow).where(SnapshotRow.snapshot_id == snapshot_id)
        return self._session.execute(stmt).scalar_one_or_none()

    def add(self, snapshot: Snapshot) -> None:
        row = SnapshotRow(
            snapshot_id=snapshot.snapshot_id,
            raw_document=snapshot.raw_document,
            ground_truth_json=snapshot.ground_truth,
            state=snapshot.state,
            extractor_source=snapshot.extractor_source,
            created_at=_naive(snapshot.created_at),
            updated_at=_naive(snapshot.updated_at),
        )
        self._append_entries(row, snapshot)
        self._session.add(row)
        self._session.flush()

    def get(self, snapshot_id: str) -> Snapshot | None:
        row = self._row(snapshot_id)
        return row_to_snapshot(row) if row is not None else None

    def get_by_prefix(self, prefix: str) -> Snapshot | None:
        stmt = (
            select(SnapshotRow)
            .where(SnapshotRow.snapshot_id.startswith(prefix, autoescape=True))
            .limit(2)
        )
        rows = self._session.execute(stmt).scalars().all()
        if len(rows) > 1:
            raise ValueError(f"Ambiguous snapshot prefix '{prefix}'")
        return row_to_snapshot(rows[0]) if rows else None

    def save(self, snapshot: Snapshot) -> None:
        row = self._row(snapshot.snapshot_id)
        if row is None:
            self.add(snapshot)
            return
        row.state = snapshot.state
        row.extractor_source = snapshot.extractor_source
        row.updated_at = _naive(snapshot.updated_at)
        self._append_entries(row, snapshot)
        self._session.flush()

    def next_eligible(self) -> Snapshot | None:
        stmt = (
            select(SnapshotRow)
            .where(SnapshotRow.state == PipelineState.ANNOTATED)
            .order_by(SnapshotRow.created_at, SnapshotRow.snapshot_id)
            .limit(1)
        )
        row = self._session.execute(stmt).scalar_one_or_none()
        return row_to_snapshot(row) if row is not None else None

    def list(self, state: PipelineState | None = None, limit: int | None = None) -> list[Snapshot]:
        stmt = select(SnapshotRow).order_by(SnapshotRow.created_at, SnapshotRow.snapshot_id)
        if state is not None:
            stmt = stmt.where(SnapshotRow.state == state)
        if limit is not None:
            stmt = stmt.limit(limit)
        return [row_to_snapshot(row) for row in self._session.execute(stmt).scalars()]

    @staticmethod
    def _append_entries(row: SnapshotRow, snapshot: Snapshot) -> None:
        stored = len(row.entries)
        for seq, entry in enumerate(snapshot.logs[stored:], start=stored):
            row.entries.append(
                AuditEntryRow(
                    seq=seq,
                    phase=entry.phase,
                    level=entry.level,
                    message=entry.message,
                    timestamp=_naive(entry.timestamp),
                )
            )
