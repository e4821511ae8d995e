from datetime import timedelta

import pytest

from fleetgroups.core.errors import ErrorKind, StoreError, is_kind
from fleetgroups.crud.base import new_id
from fleetgroups.crud.invites import GroupInviteStore
from fleetgroups.crud.memberships import GroupMembershipStore
from fleetgroups.crud.relations import RelationVariant, ResourceKind, new_relation_store
from fleetgroups.schemas.groups import Group, GroupMembership
from fleetgroups.schemas.invites import GroupInvite
from fleetgroups.schemas.pages import PageMetadata

from tests.conftest import T0


def kind_of(info):
    return info.value.kind


class TestSave:
    def test_save_and_retrieve(self, db, group_store, org_id, owner_id):
        group = Group(id=new_id(), org_id=org_id, owner_id=owner_id, name="fleet-1",
                      description="rooftop sensors", metadata={"region": "eu"})
        saved = group_store.save(db, group)

        assert saved.created_at == T0
        assert saved.updated_at == T0

        fetched = group_store.retrieve_by_id(db, group.id)
        assert fetched.dict(exclude={"created_at", "updated_at"}) == group.dict(exclude={"created_at", "updated_at"})

    def test_duplicate_name_in_org_conflicts(self, db, make_group, group_store, org_id, owner_id):
        make_group(name="fleet-1")
        with pytest.raises(StoreError) as info:
            group_store.save(db, Group(id=new_id(), org_id=org_id, owner_id=owner_id, name="fleet-1"))
        assert kind_of(info) == ErrorKind.CONFLICT

    def test_same_name_in_another_org_is_allowed(self, make_group):
        make_group(name="fleet-1")
        other = make_group(name="fleet-1", org_id=new_id())
        assert other.name == "fleet-1"

    @pytest.mark.parametrize("fields", [
        {"id": "not-a-uuid"},
        {"org_id": ""},
        {"name": ""},
        {"name": "x" * 255},
        {"description": "x" * 1025},
    ])
    def test_invalid_fields_are_malformed(self, db, group_store, org_id, owner_id, fields):
        values = dict(id=new_id(), org_id=org_id, owner_id=owner_id, name="fleet")
        values.update(fields)
        with pytest.raises(StoreError) as info:
            group_store.save(db, Group(**values))
        assert kind_of(info) == ErrorKind.MALFORMED_ENTITY


class TestUpdate:
    def test_update_changes_fields_and_timestamp(self, db, make_group, group_store, clock):
        group = make_group(name="fleet-1")
        clock.advance(minutes=5)

        updated = group_store.update(db, group.copy(update={"name": "fleet-2", "metadata": {"k": 1}}))

        assert updated.name == "fleet-2"
        assert updated.metadata == {"k": 1}
        assert updated.created_at == T0
        assert updated.updated_at == clock()

    def test_update_missing_group(self, db, group_store):
        with pytest.raises(StoreError) as info:
            group_store.update(db, Group(id=new_id(), name="ghost"))
        assert kind_of(info) == ErrorKind.UPDATE_ENTITY

    def test_update_into_taken_name_conflicts(self, db, make_group, group_store):
        make_group(name="fleet-1")
        second = make_group(name="fleet-2")
        with pytest.raises(StoreError) as info:
            group_store.update(db, second.copy(update={"name": "fleet-1"}))
        assert kind_of(info) == ErrorKind.CONFLICT


class TestRemove:
    def test_remove_then_not_found(self, db, make_group, group_store):
        group = make_group()
        group_store.remove(db, group.id)
        with pytest.raises(StoreError) as info:
            group_store.retrieve_by_id(db, group.id)
        assert kind_of(info) == ErrorKind.NOT_FOUND

    def test_remove_missing_group(self, db, group_store):
        with pytest.raises(StoreError) as info:
            group_store.remove(db, new_id())
        assert kind_of(info) == ErrorKind.REMOVE_ENTITY

    def test_remove_is_all_or_nothing(self, db, make_group, group_store):
        group = make_group()
        with pytest.raises(StoreError):
            group_store.remove(db, group.id, new_id())
        assert group_store.retrieve_by_id(db, group.id).id == group.id

    def test_remove_with_membership_is_group_not_empty(self, db, make_group, group_store):
        group = make_group()
        memberships = GroupMembershipStore()
        gm = GroupMembership(group_id=group.id, member_id=new_id(), role="viewer")
        memberships.save(db, gm)

        with pytest.raises(StoreError) as info:
            group_store.remove(db, group.id)
        assert kind_of(info) == ErrorKind.GROUP_NOT_EMPTY

        memberships.remove(db, group.id, gm.member_id)
        group_store.remove(db, group.id)

    def test_remove_with_invite_is_group_not_empty(self, db, make_group, group_store, clock, owner_id):
        group = make_group()
        invites = GroupInviteStore(clock=clock)
        invite = GroupInvite(id=new_id(), group_id=group.id, inviter_id=owner_id, invitee_id=new_id(),
                             invitee_role="viewer", created_at=T0, expires_at=T0 + timedelta(days=7))
        invites.save_invites(db, invite)

        with pytest.raises(StoreError) as info:
            group_store.remove(db, group.id)
        assert kind_of(info) == ErrorKind.GROUP_NOT_EMPTY

        invites.remove_invite(db, invite.id)
        group_store.remove(db, group.id)

    @pytest.mark.parametrize("variant", list(RelationVariant))
    @pytest.mark.parametrize("kind", list(ResourceKind))
    def test_remove_with_assigned_member_is_group_not_empty(self, db, make_group, make_member,
                                                            group_store, kind, variant):
        group = make_group()
        store = new_relation_store(kind, variant)
        member_id = make_member(kind.value)
        store.assign(db, group.id, member_id)

        with pytest.raises(StoreError) as info:
            group_store.remove(db, group.id)
        assert kind_of(info) == ErrorKind.GROUP_NOT_EMPTY
        assert group_store.retrieve_by_id(db, group.id).id == group.id

        store.unassign(db, group.id, member_id)
        group_store.remove(db, group.id)


class TestRetrieve:
    def test_malformed_id_is_not_found(self, db, group_store):
        with pytest.raises(StoreError) as info:
            group_store.retrieve_by_id(db, "fleet-1")
        assert kind_of(info) == ErrorKind.NOT_FOUND

    def test_total_ignores_window(self, db, make_group, group_store, org_id):
        for i in range(5):
            make_group(name=f"fleet-{i}")

        page = group_store.retrieve_by_org(db, org_id, PageMetadata(limit=2, offset=1, order="name"))

        assert page.total == 5
        assert [g.name for g in page.groups] == ["fleet-1", "fleet-2"]

    def test_limit_zero_is_unbounded(self, db, make_group, group_store, org_id):
        for i in range(3):
            make_group(name=f"fleet-{i}")
        page = group_store.retrieve_by_org(db, org_id, PageMetadata())
        assert len(page.groups) == 3

    def test_descending_order(self, db, make_group, group_store, org_id):
        for name in ["b", "c", "a"]:
            make_group(name=name)
        page = group_store.retrieve_by_org(db, org_id, PageMetadata(order="name", dir="desc"))
        assert [g.name for g in page.groups] == ["c", "b", "a"]

    def test_org_scope(self, db, make_group, group_store, org_id):
        make_group(name="mine")
        make_group(name="theirs", org_id=new_id())
        page = group_store.retrieve_by_org(db, org_id, PageMetadata())
        assert [g.name for g in page.groups] == ["mine"]

    def test_owner_scope(self, db, make_group, group_store, owner_id):
        make_group(name="mine")
        make_group(name="theirs", owner_id=new_id())
        page = group_store.retrieve_by_owner(db, owner_id, PageMetadata())
        assert page.total == 1

    def test_name_filter_is_case_insensitive_substring(self, db, make_group, group_store):
        make_group(name="Fleet-North")
        make_group(name="depot")
        page = group_store.retrieve_all(db, PageMetadata(name="fleet"))
        assert [g.name for g in page.groups] == ["Fleet-North"]

    def test_metadata_containment(self, db, make_group, group_store, org_id):
        make_group(name="a", metadata={"region": "eu", "site": {"floor": 2}, "extra": True})
        make_group(name="b", metadata={"region": "eu", "site": {"floor": 3}})
        make_group(name="c", metadata={"region": "us"})
        make_group(name="d")

        pm = PageMetadata(metadata={"region": "eu", "site": {"floor": 2}}, limit=1, offset=0)
        page = group_store.retrieve_by_org(db, org_id, pm)

        assert page.total == 1
        assert [g.name for g in page.groups] == ["a"]

        page = group_store.retrieve_by_org(db, org_id, PageMetadata(metadata={"region": "eu"}, limit=1))
        assert page.total == 2
        assert len(page.groups) == 1

    def test_metadata_array_containment(self, db, make_group, group_store, org_id):
        make_group(name="a", metadata={"tags": ["x", "y"], "sensors": [{"kind": "temp", "id": 1}]})
        make_group(name="b", metadata={"tags": ["z"]})
        make_group(name="c", metadata={"tags": "x"})

        page = group_store.retrieve_by_org(db, org_id, PageMetadata(metadata={"tags": ["x"]}))
        assert page.total == 1
        assert [g.name for g in page.groups] == ["a"]

        page = group_store.retrieve_by_org(db, org_id, PageMetadata(metadata={"tags": ["x", "z"]}))
        assert page.total == 0

        page = group_store.retrieve_by_org(db, org_id, PageMetadata(metadata={"sensors": [{"kind": "temp"}]}))
        assert [g.name for g in page.groups] == ["a"]

    @pytest.mark.parametrize("stored, wanted, total", [
        ({"n": True}, {"n": 1}, 0),
        ({"n": 1}, {"n": True}, 0),
        ({"n": "1"}, {"n": 1}, 0),
        ({"n": 1}, {"n": "1"}, 0),
        ({"n": {"a": 1}}, {"n": 1}, 0),
        ({"n": 1}, {"n": 1.0}, 1),
        ({"n": False}, {"n": False}, 1),
        ({"n": None}, {"n": None}, 1),
        ({"n": 0}, {"n": None}, 0),
    ])
    def test_metadata_values_match_by_json_type(self, db, make_group, group_store, org_id,
                                                stored, wanted, total):
        make_group(metadata=stored)
        page = group_store.retrieve_by_org(db, org_id, PageMetadata(metadata=wanted))
        assert page.total == total

    def test_retrieve_by_ids(self, db, make_group, group_store):
        groups = [make_group(name=f"fleet-{i}") for i in range(4)]
        ids = [g.id for g in groups]

        pm = PageMetadata(limit=2, offset=3)
        page = group_store.retrieve_by_ids(db, ids, pm)
        assert len(page.groups) == 1
        assert page.total == 4

        first = group_store.retrieve_by_ids(db, ids, PageMetadata(order="name"))
        second = group_store.retrieve_by_ids(db, ids, PageMetadata(order="name"))
        assert [g.id for g in first.groups] == [g.id for g in second.groups]

    def test_retrieve_by_empty_ids(self, db, make_group, group_store):
        make_group()
        page = group_store.retrieve_by_ids(db, [], PageMetadata())
        assert page.total == 0
        assert page.groups == []

    def test_retrieve_ids_by_org_and_backup(self, db, make_group, group_store, org_id):
        mine = sorted(make_group().id for _ in range(2))
        make_group(org_id=new_id())
        assert group_store.retrieve_ids_by_org(db, org_id) == mine
        assert len(group_store.backup_all(db)) == 3


def test_fleet_scenario(db, group_store, make_member, org_id, owner_id):
    group = group_store.save(db, Group(id=new_id(), org_id=org_id, owner_id=owner_id, name="fleet-1"))

    with pytest.raises(StoreError) as info:
        group_store.save(db, Group(id=new_id(), org_id=org_id, owner_id=owner_id, name="fleet-1"))
    assert is_kind(info.value, ErrorKind.CONFLICT)

    things = new_relation_store(ResourceKind.THING)
    thing_1 = make_member("thing", name="thing-1")
    things.assign(db, group.id, thing_1)

    with pytest.raises(StoreError) as info:
        group_store.remove(db, group.id)
    assert is_kind(info.value, ErrorKind.GROUP_NOT_EMPTY)

    things.unassign(db, group.id, thing_1)
    group_store.remove(db, group.id)

    with pytest.raises(StoreError) as info:
        group_store.retrieve_by_id(db, group.id)
    assert is_kind(info.value, ErrorKind.NOT_FOUND)
