"""
Store error taxonomy.

Every failure leaving a store is a StoreError carrying an ErrorKind. Raw
driver errors are translated exactly once, at the store boundary, and kept
as the cause for diagnostics. Callers inspect failures with error_kind()
and is_kind() rather than by identity.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Enumerated failure classes exposed by the stores."""

    NOT_FOUND = "not_found"
    MALFORMED_ENTITY = "malformed_entity"
    CONFLICT = "conflict"
    GROUP_NOT_EMPTY = "group_not_empty"
    MEMBER_ALREADY_ASSIGNED = "member_already_assigned"
    THING_ALREADY_ASSIGNED = "thing_already_assigned"
    CHANNEL_ALREADY_ASSIGNED = "channel_already_assigned"
    PROFILE_ALREADY_ASSIGNED = "profile_already_assigned"
    GROUP_MEMBERSHIP_EXISTS = "group_membership_exists"
    CREATE_ENTITY = "create_entity"
    UPDATE_ENTITY = "update_entity"
    REMOVE_ENTITY = "remove_entity"
    RETRIEVE_ENTITY = "retrieve_entity"

    @property
    def parent(self) -> Optional["ErrorKind"]:
        """The broader kind this one specialises, if any."""
        return _PARENTS.get(self)


_PARENTS = {
    ErrorKind.MEMBER_ALREADY_ASSIGNED: ErrorKind.CONFLICT,
    ErrorKind.THING_ALREADY_ASSIGNED: ErrorKind.MEMBER_ALREADY_ASSIGNED,
    ErrorKind.CHANNEL_ALREADY_ASSIGNED: ErrorKind.MEMBER_ALREADY_ASSIGNED,
    ErrorKind.PROFILE_ALREADY_ASSIGNED: ErrorKind.MEMBER_ALREADY_ASSIGNED,
    ErrorKind.GROUP_MEMBERSHIP_EXISTS: ErrorKind.CONFLICT,
}

_MESSAGES = {
    ErrorKind.NOT_FOUND: "entity not found",
    ErrorKind.MALFORMED_ENTITY: "malformed entity specification",
    ErrorKind.CONFLICT: "entity already exists",
    ErrorKind.GROUP_NOT_EMPTY: "group is not empty",
    ErrorKind.MEMBER_ALREADY_ASSIGNED: "member is already assigned",
    ErrorKind.THING_ALREADY_ASSIGNED: "thing is already assigned",
    ErrorKind.CHANNEL_ALREADY_ASSIGNED: "channel is already assigned",
    ErrorKind.PROFILE_ALREADY_ASSIGNED: "profile is already assigned",
    ErrorKind.GROUP_MEMBERSHIP_EXISTS: "group membership already exists",
    ErrorKind.CREATE_ENTITY: "failed to create entity in the db",
    ErrorKind.UPDATE_ENTITY: "failed to update entity in the db",
    ErrorKind.REMOVE_ENTITY: "failed to remove entity from the db",
    ErrorKind.RETRIEVE_ENTITY: "failed to retrieve entity from the db",
}


class StoreError(Exception):
    """Base exception for store layer errors."""

    kind = ErrorKind.RETRIEVE_ENTITY

    def __init__(self, message: str = None, kind: ErrorKind = None,
                 cause: BaseException = None, details: Dict[str, Any] = None):
        self.kind = kind or self.kind
        self.message = message or _MESSAGES[self.kind]
        super().__init__(self.message)
        self.cause = cause
        self.details = details or {}
        self.timestamp = datetime.utcnow()
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message


class NotFoundError(StoreError):
    kind = ErrorKind.NOT_FOUND


class MalformedEntityError(StoreError):
    kind = ErrorKind.MALFORMED_ENTITY


class ConflictError(StoreError):
    kind = ErrorKind.CONFLICT


class GroupNotEmptyError(StoreError):
    kind = ErrorKind.GROUP_NOT_EMPTY


class AlreadyAssignedError(ConflictError):
    """Raised when a member is already bound to a group."""

    kind = ErrorKind.MEMBER_ALREADY_ASSIGNED


class GroupMembershipExistsError(ConflictError):
    kind = ErrorKind.GROUP_MEMBERSHIP_EXISTS


class CreateEntityError(StoreError):
    kind = ErrorKind.CREATE_ENTITY


class UpdateEntityError(StoreError):
    kind = ErrorKind.UPDATE_ENTITY


class RemoveEntityError(StoreError):
    kind = ErrorKind.REMOVE_ENTITY


class RetrieveEntityError(StoreError):
    kind = ErrorKind.RETRIEVE_ENTITY


_ERROR_TYPES = {
    ErrorKind.NOT_FOUND: NotFoundError,
    ErrorKind.MALFORMED_ENTITY: MalformedEntityError,
    ErrorKind.CONFLICT: ConflictError,
    ErrorKind.GROUP_NOT_EMPTY: GroupNotEmptyError,
    ErrorKind.MEMBER_ALREADY_ASSIGNED: AlreadyAssignedError,
    ErrorKind.THING_ALREADY_ASSIGNED: AlreadyAssignedError,
    ErrorKind.CHANNEL_ALREADY_ASSIGNED: AlreadyAssignedError,
    ErrorKind.PROFILE_ALREADY_ASSIGNED: AlreadyAssignedError,
    ErrorKind.GROUP_MEMBERSHIP_EXISTS: GroupMembershipExistsError,
    ErrorKind.CREATE_ENTITY: CreateEntityError,
    ErrorKind.UPDATE_ENTITY: UpdateEntityError,
    ErrorKind.REMOVE_ENTITY: RemoveEntityError,
    ErrorKind.RETRIEVE_ENTITY: RetrieveEntityError,
}


def store_error(kind: ErrorKind, cause: BaseException = None, message: str = None,
                **details: Any) -> StoreError:
    """Build the exception type matching kind."""
    return _ERROR_TYPES[kind](message=message, kind=kind, cause=cause, details=details)


def error_kind(exc: BaseException) -> Optional[ErrorKind]:
    """Classify an exception, returning None for errors not raised by a store."""
    if isinstance(exc, StoreError):
        return exc.kind
    return None


def is_kind(exc: BaseException, kind: ErrorKind) -> bool:
    """
    Check whether exc belongs to kind.

    Specific kinds match their broader parents, so a THING_ALREADY_ASSIGNED
    error is also a CONFLICT.
    """
    current = error_kind(exc)
    while current is not None:
        if current == kind:
            return True
        current = current.parent
    return False
