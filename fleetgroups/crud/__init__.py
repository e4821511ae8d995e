"""
Store layer.

Each store wraps one aggregate of the group subsystem and takes the
SQLAlchemy session as the first argument of every operation, so callers
decide the session scope and the store decides the transaction scope.
"""

from fleetgroups.crud.groups import GroupStore, groups
from fleetgroups.crud.memberships import GroupMembershipStore, group_memberships
from fleetgroups.crud.invites import GroupInviteStore, group_invites
from fleetgroups.crud.relations import (
    ForeignKeyRelationStore,
    JoinTableRelationStore,
    RelationStore,
    RelationVariant,
    ResourceKind,
    new_relation_store,
)

__all__ = [
    # Stores
    "GroupStore",
    "GroupMembershipStore",
    "GroupInviteStore",
    "RelationStore",
    "ForeignKeyRelationStore",
    "JoinTableRelationStore",

    # Default instances
    "groups",
    "group_memberships",
    "group_invites",

    # Relation store selection
    "ResourceKind",
    "RelationVariant",
    "new_relation_store",
]
