import logging
from contextlib import contextmanager
import time

from sqlalchemy import create_engine, event
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from counselling.config import settings
from counselling.core.errors import ConflictError, StoreError
from counselling.request_context import current_endpoint


_connect_args = {'check_same_thread': False} if settings.database_url.startswith('sqlite') else {}
engine = create_engine(settings.database_url, connect_args=_connect_args, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

_SLOW_QUERY_MS = settings.db_slow_query_ms
_slow_logger = logging.getLogger('counselling.db.slow_query')
logger = logging.getLogger(__name__)


@event.listens_for(engine, 'before_cursor_execute')
def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    context._query_start_time = time.perf_counter()


@event.listens_for(engine, 'after_cursor_execute')
def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    start = getattr(context, '_query_start_time', None)
    if start is None:
        return
    duration_ms = (time.perf_counter() - start) * 1000.0
    if duration_ms >= _SLOW_QUERY_MS:
        endpoint = current_endpoint.get()
        sql_text = (statement or '').replace('\n', ' ').strip()
        _slow_logger.warning(
            'slow_query duration_ms=%.2f endpoint=%s sql=%s',
            duration_ms,
            endpoint,
            sql_text,
        )


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def _store_errors(db: Session, conflict_message: str, action: str):
    try:
        yield
    except IntegrityError as exc:
        db.rollback()
        logger.info('store_integrity_violation action=%s endpoint=%s error=%s', action, current_endpoint.get(), exc.orig)
        raise ConflictError(conflict_message) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('store_%s_failed endpoint=%s', action, current_endpoint.get())
        raise StoreError() from exc


def commit_or_raise(db: Session, *, conflict_message: str = 'Record already exists') -> None:
    """Commit the unit of work, translating store failures into the service error taxonomy.

    Integrity violations (unique, foreign key, partial index) become ``ConflictError``;
    anything else the driver raises becomes a ``StoreError`` whose detail is only logged.
    The session is rolled back in both cases so row locks are released.
    """
    with _store_errors(db, conflict_message, 'commit'):
        db.commit()


def flush_or_raise(db: Session, *, conflict_message: str = 'Record already exists') -> None:
    with _store_errors(db, conflict_message, 'flush'):
        db.flush()
