# Overview: Service-layer helpers for concurrency; row locks and retry around DB work.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


logger = logging.getLogger(__name__)

# Deadlocks, lock timeouts and optimistic version conflicts
CONCURRENCY_ERRORS = (OperationalError, StaleDataError)

# Unique document number collisions, retried with a freshly generated number
NUMBER_CONFLICT_ERRORS = CONCURRENCY_ERRORS + (IntegrityError,)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    The locked read always reloads the row, even if the object is already in
    the identity map, so read-compute-write starts from committed values.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    Rows that must never lose an update also carry a version_id column, so the
    optimistic check still catches a conflicting writer on SQLite.
    """
    return query.with_for_update().populate_existing()


def run_with_retry(
    func,
    *,
    attempts: int = 3,
    backoff_base: float = 0.1,
    retry_on: tuple[type[BaseException], ...] = CONCURRENCY_ERRORS,
):
    """
    Execute a DB operation with retry on concurrency-related failures.

    func must do all of its reads and writes inside the call so that a retry
    after rollback recomputes from fresh state.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except retry_on as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            logger.warning(
                "Retrying after %s (attempt %d of %d)",
                type(exc).__name__, attempt + 1, attempts,
            )
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
