"""Engine and session factory for the snapshot store.

SQLite connections get WAL, busy_timeout, synchronous and foreign-key
pragmas on connect. Other backends are used as configured.
"""

from __future__ import annotations

from sqlalchemy import Engine, create_engine, event, select
from sqlalchemy.orm import Session, sessionmaker

from snapforge.storage.schema import Base, ForgeMetaRow

SCHEMA_VERSION = "1"

SQLITE_PRAGMAS = (
    "journal_mode=WAL",
    "busy_timeout=5000",
    "synchronous=NORMAL",
    "foreign_keys=ON",
)


def _database_url(db_path: str, url: str | None) -> str:
    if url is not None:
        return url
    return "sqlite://" if db_path == ":memory:" else f"sqlite:///{db_path}"


def create_forge_engine(db_path: str = ":memory:", *, url: str | None = None) -> Engine:
    """Create a SQLAlchemy engine for the snapshot store.

    Args:
        db_path: SQLite file path or ``":memory:"``; ignored when *url* is given.
        url: Full SQLAlchemy database URL.
    """
    engine = create_engine(_database_url(db_path, url), echo=False)

    if engine.dialect.name == "sqlite":

        @event.listens_for(engine, "connect")
        def apply_pragmas(dbapi_conn, connection_record):  # type: ignore[no-untyped-def]
            cursor = dbapi_conn.cursor()
            for pragma in SQLITE_PRAGMAS:
                cursor.execute(f"PRAGMA {pragma}")
            cursor.close()

    return engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Sessions keep loaded rows readable after commit."""
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create missing tables and stamp a new database with the schema version."""
    Base.metadata.create_all(engine)
    with create_session_factory(engine)() as session:
        stamped = session.execute(
            select(ForgeMetaRow.value).where(ForgeMetaRow.key == "schema_version")
        ).scalar_one_or_none()
        if stamped is None:
            session.add(ForgeMetaRow(key="schema_version", value=SCHEMA_VERSION))
            session.commit()
