"""Classification of database errors raised inside a transaction."""

from sqlalchemy.exc import DBAPIError, IntegrityError

# serialization_failure, deadlock_detected
_RETRYABLE_SQLSTATES = {"40001", "40P01"}


def is_transaction_conflict(exc: Exception) -> bool:
    """True for errors a caller can fix by retrying the whole operation.

    Covers serialization failures, deadlocks and unique-constraint losses to a
    concurrent writer.
    """
    if isinstance(exc, IntegrityError):
        return True
    if isinstance(exc, DBAPIError):
        orig = exc.orig
        sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
        return sqlstate in _RETRYABLE_SQLSTATES
    return False
