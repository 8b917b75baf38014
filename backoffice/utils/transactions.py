# utils/transactions.py
"""
Transaction helpers for the workflow services.

``run_in_transaction`` is the single atomic scope every check-then-act
sequence goes through: it commits on success, rolls back on any error and
re-runs the whole unit of work when the database reports a transient
conflict (serialization failure, deadlock, lock timeout).
"""

import logging
import time

from flask import current_app, has_app_context
from sqlalchemy.exc import DBAPIError, OperationalError

logger = logging.getLogger('transactions')

# PostgreSQL SQLSTATEs: serialization_failure, deadlock_detected
TRANSIENT_PG_CODES = ('40001', '40P01')

# MySQL: lock wait timeout, deadlock
TRANSIENT_MYSQL_CODES = (1205, 1213)


def is_transient_error(error):
    """Return True when re-running the transaction may succeed."""
    if not isinstance(error, DBAPIError):
        return False

    orig = getattr(error, 'orig', None)

    pgcode = getattr(orig, 'pgcode', None) or getattr(orig, 'sqlstate', None)
    if pgcode in TRANSIENT_PG_CODES:
        return True

    args = getattr(orig, 'args', None)
    if args and args[0] in TRANSIENT_MYSQL_CODES:
        return True

    if isinstance(error, OperationalError) and 'database is locked' in str(orig):
        return True

    return False


def _retry_settings(retries, delay):
    if has_app_context():
        if retries is None:
            retries = current_app.config.get('DB_TRANSACTION_RETRIES', 3)
        if delay is None:
            delay = current_app.config.get('DB_TRANSACTION_RETRY_DELAY', 0.05)
    return (3 if retries is None else retries), (0.05 if delay is None else delay)


def run_in_transaction(session, work, retries=None, delay=None):
    """
    Run ``work(session)`` atomically and commit.

    Args:
        session: SQLAlchemy session (``db.session`` in request handlers)
        work: callable taking the session and returning the operation result
        retries: extra attempts on transient errors (config default)
        delay: initial backoff in seconds, doubled each attempt (config default)

    Returns:
        Whatever ``work`` returned, after a successful commit.
    """
    retries, delay = _retry_settings(retries, delay)

    attempt = 0
    while True:
        try:
            result = work(session)
            session.commit()
            return result
        except DBAPIError as e:
            session.rollback()
            if not is_transient_error(e) or attempt >= retries:
                raise
            attempt += 1
            wait = delay * (2 ** (attempt - 1))
            logger.warning(f"Transient database error, retrying in {wait:.2f}s (attempt {attempt}): {e.orig}")
            time.sleep(wait)
        except Exception:
            session.rollback()
            raise
