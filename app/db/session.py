import logging
from contextlib import contextmanager
from typing import Callable, List

import psycopg2
from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from app.core import config
from app.core.errors import ConflictError

logger = logging.getLogger(__name__)

CHANGES_KEY = "feedhub.pending_changes"


def _ensure_database(url):
    # Try to create the DB if it doesn't exist
    try:
        conn = psycopg2.connect(
            dbname="postgres",
            user=url.username,
            password=url.password,
            host=url.host,
            port=url.port,
        )
        conn.autocommit = True
        cur = conn.cursor()
        cur.execute(f'CREATE DATABASE "{url.database}"')
        cur.close()
        conn.close()
    except psycopg2.errors.DuplicateDatabase:
        pass
    except Exception as e:
        logger.warning(f"Could not ensure database {url.database}: {e}")


def _create_engine(database_url: str):
    url = make_url(database_url)
    if url.get_backend_name() == "postgresql":
        _ensure_database(url)
        return create_engine(database_url, pool_pre_ping=True)
    if url.get_backend_name() == "sqlite":
        # API handlers run in the threadpool, the live hub re-runs queries there too
        return create_engine(database_url, connect_args={"check_same_thread": False})
    return create_engine(database_url)


engine = _create_engine(config.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# --- change capture -------------------------------------------------------
# Every committed unit of work is published once, as a list of row changes
# {"table": name, "values": {column: value}} to the registered listeners.

_change_listeners: List[Callable[[list], None]] = []


def add_change_listener(listener: Callable[[list], None]) -> None:
    if listener not in _change_listeners:
        _change_listeners.append(listener)


def remove_change_listener(listener: Callable[[list], None]) -> None:
    if listener in _change_listeners:
        _change_listeners.remove(listener)


def _row_values(obj) -> dict:
    state = inspect(obj)
    # only already-loaded attributes; never trigger a load from inside a flush
    return {
        attr.columns[0].name: state.dict[attr.key]
        for attr in state.mapper.column_attrs
        if attr.key in state.dict
    }


def record_change(db: Session, table: str, **values) -> None:
    """Register a change the ORM cannot see, e.g. a bulk ``query.delete()``."""
    db.info.setdefault(CHANGES_KEY, []).append({"table": table, "values": values})


@event.listens_for(SessionLocal, "after_flush")
def _capture_flushed_rows(session, flush_context):
    changes = session.info.setdefault(CHANGES_KEY, [])
    dirty = [obj for obj in session.dirty if session.is_modified(obj)]
    for obj in list(session.new) + dirty + list(session.deleted):
        changes.append({"table": inspect(obj).mapper.local_table.name, "values": _row_values(obj)})


@event.listens_for(SessionLocal, "after_commit")
def _publish_committed_changes(session):
    changes = session.info.pop(CHANGES_KEY, None)
    if not changes:
        return
    for listener in list(_change_listeners):
        try:
            listener(changes)
        except Exception as e:
            logger.error(f"Change listener failed: {e}", exc_info=True)


@event.listens_for(SessionLocal, "after_rollback")
def _discard_changes(session):
    session.info.pop(CHANGES_KEY, None)


# --- atomic units ---------------------------------------------------------

@contextmanager
def atomic(db: Session):
    """Run the enclosed statements as one unit: commit on success, roll back on any error."""
    try:
        yield db
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Unique constraint conflict: {e.orig}")
        raise ConflictError("Concurrent write conflict") from e
    except StaleDataError as e:
        db.rollback()
        logger.warning(f"Stale row version: {e}")
        raise ConflictError("Row was modified concurrently") from e
    except Exception:
        db.rollback()
        raise


def run_with_retry(fn, *args, attempts: int = 2, **kwargs):
    """Call a mutation, re-running it after a ConflictError until attempts run out."""
    for attempt in range(1, attempts + 1):
        try:
            return fn(*args, **kwargs)
        except ConflictError:
            if attempt == attempts:
                raise
            logger.info(f"Retrying {fn.__name__} after conflict (attempt {attempt})")
