# Overview: Unit-of-work and retry helpers shared by the ledger services.

from __future__ import annotations

import time
from contextlib import contextmanager

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    The conditional UPDATEs in the ledger are the authoritative guard either way.
    """
    return query.with_for_update()


@contextmanager
def atomic(*, commit: bool = True):
    """
    Run the enclosed statements as one all-or-nothing unit of work.

    On success the session is committed (unless commit=False, in which case
    the caller owns the transaction and only a flush happens). On any
    exception everything done since the last commit is rolled back and the
    exception propagates unchanged.
    """
    try:
        yield db.session
        if commit:
            db.session.commit()
        else:
            db.session.flush()
    except Exception:
        db.session.rollback()
        raise


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (database locked) and StaleDataError.
    Domain errors are never retried.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
