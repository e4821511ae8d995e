import pytest

from fleetgroups.core.errors import ErrorKind, StoreError, is_kind
from fleetgroups.crud.base import new_id
from fleetgroups.crud.memberships import GroupMembershipStore
from fleetgroups.schemas.groups import GroupMembership
from fleetgroups.schemas.pages import PageMetadata


@pytest.fixture
def memberships():
    return GroupMembershipStore(roles=["admin", "editor", "viewer"])


@pytest.fixture
def group(make_group):
    return make_group()


def membership(group_id, role="viewer", member_id=None):
    return GroupMembership(group_id=group_id, member_id=member_id or new_id(), role=role)


def test_save_and_retrieve_role(db, memberships, group):
    gm = membership(group.id, "editor")
    memberships.save(db, gm)
    assert memberships.retrieve_role(db, gm) == "editor"


def test_duplicate_membership(db, memberships, group):
    gm = membership(group.id)
    memberships.save(db, gm)

    with pytest.raises(StoreError) as info:
        memberships.save(db, gm)

    assert info.value.kind == ErrorKind.GROUP_MEMBERSHIP_EXISTS
    assert is_kind(info.value, ErrorKind.CONFLICT)


def test_batch_is_rejected_as_a_whole(db, memberships, group):
    existing = membership(group.id)
    memberships.save(db, existing)
    fresh = membership(group.id)

    with pytest.raises(StoreError):
        memberships.save(db, fresh, existing)

    with pytest.raises(StoreError) as info:
        memberships.retrieve_role(db, fresh)
    assert info.value.kind == ErrorKind.NOT_FOUND


def test_missing_group_conflicts(db, memberships):
    with pytest.raises(StoreError) as info:
        memberships.save(db, membership(new_id()))
    assert info.value.kind == ErrorKind.CONFLICT


@pytest.mark.parametrize("gm", [
    GroupMembership(group_id="nope", member_id="1b4e28ba-2fa1-11d2-883f-0016d3cca427", role="viewer"),
    GroupMembership(group_id="1b4e28ba-2fa1-11d2-883f-0016d3cca427", member_id="", role="viewer"),
])
def test_malformed_membership(db, memberships, gm):
    with pytest.raises(StoreError) as info:
        memberships.save(db, gm)
    assert info.value.kind == ErrorKind.MALFORMED_ENTITY


def test_unknown_role_is_malformed(db, memberships, group):
    with pytest.raises(StoreError) as info:
        memberships.save(db, membership(group.id, "overlord"))
    assert info.value.kind == ErrorKind.MALFORMED_ENTITY


def test_update_role(db, memberships, group):
    gm = membership(group.id, "viewer")
    memberships.save(db, gm)

    memberships.update(db, gm.copy(update={"role": "admin"}))

    assert memberships.retrieve_role(db, gm) == "admin"


def test_update_missing_membership(db, memberships, group):
    with pytest.raises(StoreError) as info:
        memberships.update(db, membership(group.id))
    assert info.value.kind == ErrorKind.NOT_FOUND


def test_remove_ignores_missing(db, memberships, group):
    gm = membership(group.id)
    memberships.save(db, gm)

    memberships.remove(db, group.id, gm.member_id, new_id())

    with pytest.raises(StoreError) as info:
        memberships.retrieve_role(db, gm)
    assert info.value.kind == ErrorKind.NOT_FOUND


def test_retrieve_role_of_malformed_pair_is_not_found(db, memberships):
    with pytest.raises(StoreError) as info:
        memberships.retrieve_role(db, GroupMembership(group_id="x", member_id="y"))
    assert info.value.kind == ErrorKind.NOT_FOUND


def test_retrieve_by_group_pages(db, memberships, group, make_group):
    saved = [membership(group.id, role) for role in ["admin", "editor", "viewer"]]
    memberships.save(db, *saved)
    memberships.save(db, membership(make_group().id))

    page = memberships.retrieve_by_group(db, group.id, PageMetadata(limit=2, order="role", dir="desc"))

    assert page.total == 3
    assert [gm.role for gm in page.group_memberships] == ["viewer", "editor"]


def test_group_ids_of_member_and_backups(db, memberships, make_group):
    member_id = new_id()
    groups = [make_group(), make_group()]
    for group in groups:
        memberships.save(db, membership(group.id, member_id=member_id))

    assert memberships.retrieve_group_ids_by_member(db, member_id) == sorted(g.id for g in groups)
    assert len(memberships.backup_all(db)) == 2
    assert [gm.member_id for gm in memberships.backup_by_group(db, groups[0].id)] == [member_id]


def test_roles_default_to_settings(db, group):
    store = GroupMembershipStore()
    store.save(db, membership(group.id, "viewer"))
