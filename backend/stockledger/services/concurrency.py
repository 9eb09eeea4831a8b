# Overview: Row locking and retry helpers shared by every stock-writing service.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


RETRYABLE_ERRORS = (OperationalError, StaleDataError)

# For upserts keyed by a unique constraint: FOR UPDATE cannot lock a row that
# does not exist yet, so two first writes race and the loser hits the
# constraint. Its retry finds the winner's row and updates it instead.
RETRY_ON_DUPLICATE = (IntegrityError,)


def lock_for_update(query):
    """
    SELECT ... FOR UPDATE on stock, product and opname rows.

    NOTE: SQLite ignores the lock; there version_id conflicts surface as
    StaleDataError at flush and are retried by run_with_retry.
    """
    return query.with_for_update()


def run_with_retry(
    func,
    *,
    attempts: int | None = None,
    backoff_base: float | None = None,
    retry_on: tuple = (),
):
    """
    Run func, retrying lock timeouts, deadlocks and version conflicts.

    The session is rolled back before every retry, so func must redo all of
    its reads. Attempts and backoff default to DB_RETRY_ATTEMPTS and
    DB_RETRY_BACKOFF; the last failure is re-raised. retry_on adds further
    exception types (e.g. RETRY_ON_DUPLICATE) for callers that insert.
    """
    config = current_app.config
    attempts = attempts or config.get("DB_RETRY_ATTEMPTS", 3)
    backoff_base = config.get("DB_RETRY_BACKOFF", 0.1) if backoff_base is None else backoff_base
    retryable = RETRYABLE_ERRORS + tuple(retry_on)

    for attempt in range(1, attempts + 1):
        try:
            return func()
        except retryable as exc:
            db.session.rollback()
            if attempt == attempts:
                raise
            current_app.logger.warning(
                "Retrying after concurrency conflict (attempt %s/%s): %s", attempt, attempts, exc
            )
            time.sleep(backoff_base * (2 ** (attempt - 1)))
