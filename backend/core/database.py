import hashlib
import logging
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import event, text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlmodel import SQLModel, Session, create_engine

from core import config
from core.errors import LedgerError, StoreFailure

logger = logging.getLogger(__name__)

# Namespace for pg_advisory_xact_lock(namespace, key)
ADVISORY_NAMESPACE = 0x4C464958  # 'LFIX'


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_engine(url: str, lock_timeout: int = None, echo: bool = False):
    """
    Create an engine whose transactions are safe for concurrent writers.

    SQLite: every transaction opens with BEGIN IMMEDIATE so writers queue on
    the database lock instead of failing on upgrade; the driver timeout bounds
    the wait. PostgreSQL: lock_timeout is set per transaction in atomic().
    """
    timeout = lock_timeout if lock_timeout is not None else config.LOCK_TIMEOUT_SECONDS

    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": timeout},
        )

        @event.listens_for(engine, "connect")
        def _sqlite_connect(dbapi_connection, connection_record):
            # Let SQLAlchemy emit BEGIN itself
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine, "begin")
        def _sqlite_begin(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

        return engine

    return create_engine(url, echo=echo, pool_pre_ping=True)


engine = build_engine(config.DATABASE_URL, echo=config.SQL_ECHO)


def create_db_and_tables(bind=None):
    # Register every table on the metadata
    from models import application, audit_log, evidence, issue, payment, rating, withdrawal  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)


def get_session():
    with Session(engine) as session:
        yield session


def is_postgres(session: Session) -> bool:
    return session.get_bind().dialect.name == "postgresql"


@contextmanager
def atomic(session: Session):
    """
    Run the enclosed statements as one all-or-nothing transaction.

    Workflow errors propagate untouched after rollback. Driver-level failures
    (lock timeout, aborted transaction, unclassified constraint errors) are
    rolled back and surfaced as StoreFailure so callers can retry the whole
    operation.
    """
    if session.in_transaction():
        # A previous read left an implicit transaction open; start clean so the
        # guarded reads below see current data.
        session.commit()

    try:
        if is_postgres(session):
            session.execute(text(f"SET LOCAL lock_timeout = '{int(config.LOCK_TIMEOUT_SECONDS)}s'"))
        yield session
        session.commit()
    except LedgerError:
        session.rollback()
        raise
    except OperationalError as e:
        session.rollback()
        logger.error("Transaction aborted: %s", e)
        raise StoreFailure("Database is busy, please retry") from e
    except SQLAlchemyError as e:
        session.rollback()
        logger.error("Transaction rolled back: %s", e)
        raise StoreFailure() from e
    except Exception:
        session.rollback()
        raise


def guarded_update(session: Session, statement) -> int:
    """
    Execute an UPDATE/DELETE whose WHERE clause names the expected status.

    Returns the number of matched rows; 0 means another request changed the
    row first.
    """
    session.flush()
    result = session.connection().execute(statement)
    return result.rowcount


def lock_ledger(session: Session, key: str) -> None:
    """Serialize ledger work for one key until the transaction ends."""
    if not is_postgres(session):
        # SQLite transactions already hold the write lock (BEGIN IMMEDIATE)
        return
    lock_id = int(hashlib.sha256(key.encode("utf-8")).hexdigest()[:8], 16) & 0x7FFFFFFF
    session.execute(
        text("SELECT pg_advisory_xact_lock(:namespace, :lock_id)"),
        {"namespace": ADVISORY_NAMESPACE, "lock_id": lock_id},
    )
