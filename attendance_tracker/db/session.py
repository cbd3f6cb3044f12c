"""
Database session management
"""
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from attendance_tracker.core.config import settings
from attendance_tracker.db.base import Base
import attendance_tracker.models  # noqa: F401  (register tables on Base.metadata)


def serialize_sqlite_writes(engine) -> None:
    """
    Start every SQLite transaction with BEGIN IMMEDIATE.

    SQLite ignores SELECT ... FOR UPDATE and pysqlite defers BEGIN until the
    first write, so two sessions could both read a day record before either
    writes. Taking the write lock at BEGIN makes the read-validate-write of an
    attendance transition exclusive; other writers wait up to the driver's
    busy timeout.
    """
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_conn, connection_record):
        dbapi_conn.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


_connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    connect_args=_connect_args,
    echo=False
)

if engine.dialect.name == "sqlite":
    serialize_sqlite_writes(engine)
    # Create all tables automatically on startup for SQLite
    Base.metadata.create_all(bind=engine)

# Results are read after commit for logging and response bodies
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
