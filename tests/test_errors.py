import pytest
from sqlalchemy.exc import DataError, IntegrityError

from fleetgroups.core.errors import (
    AlreadyAssignedError, ConflictError, ErrorKind, NotFoundError, StoreError,
    error_kind, is_kind, store_error
)
from fleetgroups.crud.base import (
    DATA_EXCEPTION, FOREIGN_KEY_VIOLATION, UNIQUE_VIOLATION,
    classify_integrity_error, require_ids, translate_integrity_error, valid_id
)


class FakePgError(Exception):
    def __init__(self, pgcode):
        super().__init__(f"pg error {pgcode}")
        self.pgcode = pgcode


def integrity_error(orig):
    return IntegrityError("INSERT ...", {}, orig)


def test_store_error_builds_typed_exception():
    exc = store_error(ErrorKind.NOT_FOUND)
    assert isinstance(exc, NotFoundError)
    assert exc.kind == ErrorKind.NOT_FOUND
    assert exc.message == "entity not found"


def test_store_error_keeps_cause_and_details():
    cause = ValueError("boom")
    exc = store_error(ErrorKind.CREATE_ENTITY, cause=cause, violation="unique")
    assert exc.__cause__ is cause
    assert exc.details == {"violation": "unique"}
    assert "boom" in str(exc)


def test_specific_kinds_are_conflicts():
    exc = store_error(ErrorKind.THING_ALREADY_ASSIGNED)
    assert isinstance(exc, AlreadyAssignedError)
    assert isinstance(exc, ConflictError)
    assert is_kind(exc, ErrorKind.THING_ALREADY_ASSIGNED)
    assert is_kind(exc, ErrorKind.MEMBER_ALREADY_ASSIGNED)
    assert is_kind(exc, ErrorKind.CONFLICT)
    assert not is_kind(exc, ErrorKind.CHANNEL_ALREADY_ASSIGNED)
    assert not is_kind(exc, ErrorKind.NOT_FOUND)


def test_membership_exists_is_conflict_but_group_not_empty_is_not():
    assert is_kind(store_error(ErrorKind.GROUP_MEMBERSHIP_EXISTS), ErrorKind.CONFLICT)
    assert not is_kind(store_error(ErrorKind.GROUP_NOT_EMPTY), ErrorKind.CONFLICT)


def test_error_kind_of_foreign_exception_is_none():
    assert error_kind(ValueError("x")) is None
    assert not is_kind(ValueError("x"), ErrorKind.CONFLICT)


def test_classify_sqlite_messages():
    assert classify_integrity_error(
        integrity_error(Exception("UNIQUE constraint failed: groups.org_id, groups.name"))
    ) == UNIQUE_VIOLATION
    assert classify_integrity_error(
        integrity_error(Exception("FOREIGN KEY constraint failed"))
    ) == FOREIGN_KEY_VIOLATION
    assert classify_integrity_error(integrity_error(Exception("something else"))) is None


def test_classify_postgres_codes():
    assert classify_integrity_error(integrity_error(FakePgError("23505"))) == UNIQUE_VIOLATION
    assert classify_integrity_error(integrity_error(FakePgError("23503"))) == FOREIGN_KEY_VIOLATION
    assert classify_integrity_error(DataError("INSERT ...", {}, FakePgError("22P02"))) == DATA_EXCEPTION


def test_translate_uses_mapping_then_default():
    exc = translate_integrity_error(
        integrity_error(FakePgError("23505")),
        {UNIQUE_VIOLATION: ErrorKind.CONFLICT},
        ErrorKind.CREATE_ENTITY,
    )
    assert exc.kind == ErrorKind.CONFLICT
    assert exc.details["violation"] == UNIQUE_VIOLATION

    exc = translate_integrity_error(
        integrity_error(FakePgError("23503")),
        {UNIQUE_VIOLATION: ErrorKind.CONFLICT},
        ErrorKind.CREATE_ENTITY,
    )
    assert exc.kind == ErrorKind.CREATE_ENTITY
    assert isinstance(exc.cause, IntegrityError)


def test_valid_id():
    assert valid_id("1b4e28ba-2fa1-11d2-883f-0016d3cca427")
    assert not valid_id("thing-1")
    assert not valid_id("")
    assert not valid_id(None)


def test_require_ids_raises_given_kind():
    with pytest.raises(StoreError) as info:
        require_ids(ErrorKind.MALFORMED_ENTITY, "1b4e28ba-2fa1-11d2-883f-0016d3cca427", "nope")
    assert info.value.kind == ErrorKind.MALFORMED_ENTITY
    assert info.value.details["identifier"] == "nope"
