"""
Bounded retry of a whole unit of work on lock contention.

Responsibility:
    Runs ``work(session)`` in a fresh session and transaction, commits on
    success, and retries from scratch when the unit fails on a lock
    conflict, deadlock or serialization failure.

Architecture position:
    Kernel > Services -- transaction-boundary helper for callers (scripts,
    request handlers).  Kernel services themselves never commit.

Failure modes:
    - RetryExhaustedError after ``max_attempts`` conflicting attempts.
    - Any other exception propagates after rollback, without retry.
"""

from typing import Callable, TypeVar

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from ledger_kernel.exceptions import ConcurrencyError, RetryExhaustedError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services.base import is_lock_failure

logger = get_logger("services.retry")

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3


def run_in_transaction(
    session_factory: Callable[[], Session],
    work: Callable[[Session], T],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    operation: str = "unit_of_work",
) -> T:
    """
    Execute ``work`` in its own transaction, retrying on contention.

    ``work`` must be safe to re-run: every attempt starts from a clean
    session and nothing from a failed attempt survives.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    last_error: Exception | None = None
    for attempt in range(1, max_attempts + 1):
        session = session_factory()
        try:
            result = work(session)
            session.commit()
            if attempt > 1:
                logger.info("transaction_retry_succeeded", extra={"operation": operation, "attempt": attempt})
            return result
        except (ConcurrencyError, DBAPIError) as exc:
            session.rollback()
            if isinstance(exc, DBAPIError) and not is_lock_failure(exc):
                raise
            last_error = exc
            logger.warning(
                "transaction_conflict_retry",
                extra={"operation": operation, "attempt": attempt, "max_attempts": max_attempts},
            )
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    logger.error("transaction_retry_exhausted", extra={"operation": operation, "attempts": max_attempts})
    raise RetryExhaustedError(operation, max_attempts) from last_error
