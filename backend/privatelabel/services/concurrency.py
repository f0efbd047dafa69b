# Overview: Retry helpers for lock contention and optimistic version conflicts.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    Apply row-level locking for read-modify-write on a single order.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; the order's version_id
    column still detects lost updates there.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run a unit of work (which must commit itself) and retry it on
    lock timeouts or StaleDataError from the version_id check.

    The session is rolled back between attempts, so func must reload
    whatever it mutates.
    """
    for attempt in range(attempts):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            logger.warning(
                "Concurrent update detected (%s); retrying %d/%d",
                type(exc).__name__, attempt + 1, attempts - 1,
            )
            time.sleep(backoff_base * (2 ** attempt))
