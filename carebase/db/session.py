# carebase/db/session.py
from __future__ import annotations

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import sessionmaker


def _is_sqlite(db_uri: str) -> bool:
    return db_uri.startswith("sqlite")


def _serialize_sqlite_writes(eng: Engine) -> None:
    """
    pysqlite opens transactions lazily, which lets two writers both read the
    ledger before either takes the write lock. BEGIN IMMEDIATE takes it up
    front so transactions on the same file run one after the other.
    """

    @event.listens_for(eng, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cur = dbapi_connection.cursor()
        cur.execute("PRAGMA foreign_keys=ON")
        cur.close()

    @event.listens_for(eng, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def make_engine(db_uri: str) -> Engine:
    if _is_sqlite(db_uri):
        eng = create_engine(
            db_uri,
            connect_args={"check_same_thread": False, "timeout": 30},
            future=True,
        )
        _serialize_sqlite_writes(eng)
        return eng

    return create_engine(
        db_uri,
        pool_pre_ping=True,
        pool_recycle=280,
        pool_size=10,
        max_overflow=20,
        isolation_level="READ COMMITTED",
        future=True,
    )


def make_session_factory(eng: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=eng,
        future=True,
    )


# unique-key races: sqlite, mysql (1062), postgres
_UNIQUE_MARKERS = ("unique constraint", "duplicate entry", "duplicate key")

_CONFLICT_MARKERS = (
    "deadlock",
    "lock wait timeout",
    "database is locked",
    "could not serialize",
    "serialization failure",
)


def is_retryable_conflict(exc: DBAPIError) -> bool:
    """
    True when the failure came from a competing writer (unique-key race,
    deadlock, lock timeout). Foreign-key and check violations are not
    conflicts and stay as they are.
    """
    msg = str(getattr(exc, "orig", None) or exc).lower()
    if isinstance(exc, IntegrityError):
        return any(m in msg for m in _UNIQUE_MARKERS)
    return any(m in msg for m in _CONFLICT_MARKERS)
