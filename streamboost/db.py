import logging

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, DeclarativeBase
from .config import settings

logger = logging.getLogger(__name__)

class Base(DeclarativeBase):
    pass


def serialize_sqlite_writes(bind):
    """
    Take SQLite's write lock when a transaction begins, not at its first write.

    SQLite ignores SELECT ... FOR UPDATE and pysqlite defers BEGIN, so two
    sessions could both read the same quota totals before either commits.
    With BEGIN IMMEDIATE the second session waits (up to the driver's
    ``timeout``) for the first to finish, then reads its committed rows.
    """
    @event.listens_for(bind, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(bind, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return bind


engine = create_engine(
    settings.DATABASE_URL,
    connect_args={"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {},
)
if settings.DATABASE_URL.startswith("sqlite"):
    serialize_sqlite_writes(engine)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# Helper indexes for the quota and conflict queries (IF NOT EXISTS works on SQLite and PG 9.5+)
_INDEXES = [
    "CREATE INDEX IF NOT EXISTS ix_planned_streams_streamer_start ON planned_streams(streamer_id, scheduled_start);",
    "CREATE INDEX IF NOT EXISTS ix_planned_streams_status ON planned_streams(status);",
    "CREATE INDEX IF NOT EXISTS ix_subscriptions_streamer_status_end ON subscriptions(streamer_id, status, end_date);",
    "CREATE INDEX IF NOT EXISTS ix_payments_subscription_status ON payments(subscription_id, status);",
]


def ensure_schema(bind=None):
    """
    Lightweight, best-effort schema setup for environments without Alembic.
    - Create missing tables from the models
    - Ensure helpful indexes exist for the scheduling queries
    Never fails app startup; problems are logged and skipped.
    """
    bind = bind or engine
    try:
        Base.metadata.create_all(bind=bind)
    except Exception as exc:
        logger.warning("Could not create tables: %s", exc)
        return
    for ddl in _INDEXES:
        try:
            with bind.begin() as conn:
                conn.exec_driver_sql(ddl)
        except Exception as exc:
            logger.warning("Skipping index DDL %r: %s", ddl, exc)
