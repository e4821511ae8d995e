"""
Base Store Classes and Utilities

This module provides the foundation for all store implementations: the
base class, identifier validation, the decorator that guarantees raw
driver errors leave a store only as classified StoreErrors, and the
integrity error classification shared by every store.
"""

import logging
import uuid
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Callable, Dict, Iterable, Optional

from sqlalchemy.exc import DataError, IntegrityError, SQLAlchemyError

from fleetgroups.core.errors import ErrorKind, StoreError, store_error

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

# Integrity error classes
UNIQUE_VIOLATION = "unique"
FOREIGN_KEY_VIOLATION = "foreign_key"
NOT_NULL_VIOLATION = "not_null"
CHECK_VIOLATION = "check"
DATA_EXCEPTION = "data"

# PostgreSQL SQLSTATE codes
_PG_CODES = {
    "23505": UNIQUE_VIOLATION,
    "23503": FOREIGN_KEY_VIOLATION,
    "23502": NOT_NULL_VIOLATION,
    "23514": CHECK_VIOLATION,
    "22P02": DATA_EXCEPTION,  # invalid text representation
    "22001": DATA_EXCEPTION,  # string data right truncation
}

# SQLite reports the violated constraint only in the message text
_SQLITE_MESSAGES = {
    "UNIQUE constraint failed": UNIQUE_VIOLATION,
    "FOREIGN KEY constraint failed": FOREIGN_KEY_VIOLATION,
    "NOT NULL constraint failed": NOT_NULL_VIOLATION,
    "CHECK constraint failed": CHECK_VIOLATION,
}


def classify_integrity_error(exc: SQLAlchemyError) -> Optional[str]:
    """Map a driver level constraint failure to one of the violation classes."""
    if isinstance(exc, DataError):
        return DATA_EXCEPTION

    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code in _PG_CODES:
        return _PG_CODES[code]

    text = str(orig if orig is not None else exc)
    for marker, violation in _SQLITE_MESSAGES.items():
        if marker in text:
            return violation
    return None


def translate_integrity_error(exc: SQLAlchemyError, mapping: Dict[str, ErrorKind],
                              default: ErrorKind) -> StoreError:
    """Turn a constraint failure into the StoreError its violation class maps to."""
    violation = classify_integrity_error(exc)
    kind = mapping.get(violation, default)
    return store_error(kind, cause=exc, violation=violation)


def new_id() -> str:
    """Generate a globally unique opaque identifier."""
    return str(uuid.uuid4())


def valid_id(value: Any) -> bool:
    """Check that value is a well formed identifier."""
    if not isinstance(value, str) or not value:
        return False
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def require_ids(kind: ErrorKind, *values: Any) -> None:
    """Raise a StoreError of the given kind unless every value is a well formed identifier."""
    for value in values:
        if not valid_id(value):
            raise store_error(kind, message=f"invalid identifier: {value!r}", identifier=value)


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how timestamps are stored."""
    return datetime.utcnow()


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize an aware datetime to naive UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def store_operation(kind: ErrorKind) -> Callable:
    """
    Decorator for store methods with logging and error translation.

    StoreErrors pass through untouched. Any other SQLAlchemy failure is
    wrapped into the generic kind of the operation, keeping the driver
    error as its cause.
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(self, *args, **kwargs):
            method_name = f"{self.__class__.__name__}.{func.__name__}"
            self.logger.debug(f"[{method_name}] Starting operation")

            try:
                return func(self, *args, **kwargs)
            except StoreError as e:
                self.logger.warning(f"[{method_name}] {e.kind.value}: {e}")
                raise
            except SQLAlchemyError as e:
                self.logger.error(f"[{method_name}] Unexpected store error: {e}")
                raise store_error(kind, cause=e) from e

        return wrapper

    return decorator


class CRUDBase:
    """Base class for all stores."""

    def __init__(self, name: str = None, clock: Clock = None):
        self.name = name or self.__class__.__name__
        self.logger = logging.getLogger(f"crud.{self.name}")
        self._clock = clock or utcnow

    def now(self) -> datetime:
        """Current time from the configured clock, as naive UTC."""
        return naive_utc(self._clock())

    def _log_bulk(self, action: str, ids: Iterable[str]) -> None:
        count = len(list(ids))
        self.logger.info(f"{action} {count} row(s)")
