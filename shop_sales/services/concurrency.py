import logging
import time
from contextlib import contextmanager

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from shop_sales.core.config import settings
from shop_sales.core.errors import SalesError, TransientStoreFailure

logger = logging.getLogger(__name__)


def _is_transient(exc: DBAPIError) -> bool:
    # Lock timeouts, deadlocks and "database is locked" all surface as OperationalError.
    return isinstance(exc, OperationalError) or exc.connection_invalidated


@contextmanager
def atomic(db: Session, operation: str):
    """Run the body as one unit of work: commit on success, roll back on anything else.

    Store failures that are safe to retry are re-raised as
    ``TransientStoreFailure``; every other exception propagates unchanged.
    """
    try:
        yield
        db.commit()
    except SalesError as exc:
        db.rollback()
        logger.info("%s rolled back: %s", operation, exc.detail)
        raise
    except DBAPIError as exc:
        db.rollback()
        if _is_transient(exc):
            logger.warning("%s rolled back on transient store failure: %s", operation, exc.orig)
            raise TransientStoreFailure(f"{operation} could not complete, retry later") from exc
        raise
    except PoolTimeoutError as exc:
        # No connection was checked out in time; the pool is saturated.
        db.rollback()
        logger.warning("%s rolled back, connection pool exhausted: %s", operation, exc)
        raise TransientStoreFailure(f"{operation} could not complete, retry later") from exc
    except BaseException:
        db.rollback()
        raise


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """Call ``func`` again after a ``TransientStoreFailure``, with exponential backoff.

    ``func`` must open its own unit of work; nothing from a failed attempt
    is ever committed, so replaying it is safe.
    """
    if attempts is None:
        attempts = settings.retry_attempts
    if attempts < 1:
        raise ValueError("attempts must be at least 1")
    if backoff_base is None:
        backoff_base = settings.retry_backoff_ms / 1000
    for attempt in range(attempts):
        try:
            return func()
        except TransientStoreFailure:
            if attempt >= attempts - 1:
                raise
            delay = backoff_base * (2 ** attempt)
            logger.warning("Transient store failure, retrying in %.2fs (attempt %d/%d)", delay, attempt + 2, attempts)
            time.sleep(delay)
