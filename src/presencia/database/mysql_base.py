from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, List, Optional, TypeVar

import mysql.connector

from ..core.constants import DEFAULT_CONFLICT_RETRIES
from ..core.exceptions import ConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# ER_LOCK_DEADLOCK, ER_LOCK_WAIT_TIMEOUT
RETRYABLE_ERRNOS = frozenset({1213, 1205})


def is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, mysql.connector.Error) and getattr(exc, "errno", None) in RETRYABLE_ERRNOS


@contextmanager
def db_cursor(conn_factory, *, dictionary: bool = True):
    """Run one transaction: commit when the block exits cleanly, roll back otherwise.

    Lock conflicts reported by MySQL surface as ConflictError so callers can retry.
    """

    conn = conn_factory.connect()
    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except mysql.connector.Error as e:
        conn.rollback()
        if is_retryable(e):
            raise ConflictError("Concurrent update detected, please retry") from e
        raise
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def run_with_retry(operation: Callable[[], T], *, retries: int = DEFAULT_CONFLICT_RETRIES, label: str = "transaction") -> T:
    """Re-run a whole transaction after a ConflictError.

    The operation must re-read everything it depends on; it is invoked from
    scratch on every attempt.
    """

    attempts = max(1, int(retries))
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except ConflictError:
            if attempt >= attempts:
                logger.error("%s failed after %d attempts due to conflicts", label, attempts)
                raise
            logger.warning("%s hit a conflict (attempt %d/%d), retrying", label, attempt, attempts)
    raise ConflictError(f"{label} could not be completed")


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])


def placeholders(values) -> str:
    return ",".join(["%s"] * len(values))
