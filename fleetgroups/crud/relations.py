"""
Relation store: binding of member resources (things, channels, profiles)
to groups.

One interface, two backing strategies chosen by configuration:

- ForeignKeyRelationStore: a member belongs to at most one group through
  the group_id column on its own table. This is the default.
- JoinTableRelationStore: members may belong to several groups through
  a per-kind association table.

Both are generic over the resource kind; the kind only selects the table,
the association table and the already-assigned error reported.

Unassigning a pair that is not related is a silent no-op.
"""

import enum
from abc import ABC, abstractmethod
from typing import Dict, List, NamedTuple

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.sql.schema import Table

from fleetgroups.config.settings import settings
from fleetgroups.core.database import transaction
from fleetgroups.core.errors import ErrorKind, store_error
from fleetgroups.crud.base import (
    CRUDBase, Clock, FOREIGN_KEY_VIOLATION, UNIQUE_VIOLATION,
    require_ids, store_operation, translate_integrity_error, valid_id
)
from fleetgroups.crud.groups import GROUP_COLUMNS, group_page
from fleetgroups.crud.query import PageColumns, compose, fetch_page
from fleetgroups.models.groups import Group as GroupModel
from fleetgroups.models.resources import (
    Channel, Profile, Thing, group_channels, group_profiles, group_things
)
from fleetgroups.schemas.groups import GroupPage, GroupRelation, Resource, ResourcePage
from fleetgroups.schemas.pages import PageMetadata


class ResourceKind(str, enum.Enum):
    THING = "thing"
    CHANNEL = "channel"
    PROFILE = "profile"


class RelationVariant(str, enum.Enum):
    FOREIGN_KEY = "foreign_key"
    JOIN_TABLE = "join_table"


class KindConfig(NamedTuple):
    model: type
    table: Table
    already_assigned: ErrorKind


KINDS: Dict[ResourceKind, KindConfig] = {
    ResourceKind.THING: KindConfig(Thing, group_things, ErrorKind.THING_ALREADY_ASSIGNED),
    ResourceKind.CHANNEL: KindConfig(Channel, group_channels, ErrorKind.CHANNEL_ALREADY_ASSIGNED),
    ResourceKind.PROFILE: KindConfig(Profile, group_profiles, ErrorKind.PROFILE_ALREADY_ASSIGNED),
}


class RelationStore(CRUDBase, ABC):
    """Store binding members of one resource kind to groups."""

    def __init__(self, kind: ResourceKind, clock: Clock = None):
        kind = ResourceKind(kind)
        super().__init__(f"{self.__class__.__name__}[{kind.value}]", clock)
        self.kind = kind
        self.model, self.table, self.already_assigned = KINDS[kind]
        self.columns = PageColumns(
            id=self.model.id,
            name=self.model.name,
            metadata=self.model.metadata_,
            owner_id=self.model.owner_id,
            orders={
                "id": self.model.id,
                "name": self.model.name,
                "created_at": self.model.created_at,
            },
        )

    @abstractmethod
    def assign(self, db: Session, group_id: str, *member_ids: str) -> None:
        """Bind members to a group. All rows commit together or none do."""

    @abstractmethod
    def unassign(self, db: Session, group_id: str, *member_ids: str) -> None:
        """Unbind members from a group. Missing pairs are ignored."""

    @abstractmethod
    def retrieve_members_of_group(self, db: Session, group_id: str, pm: PageMetadata) -> ResourcePage:
        """Page of members bound to a group."""

    @abstractmethod
    def retrieve_membership_of(self, db: Session, member_id: str, pm: PageMetadata) -> GroupPage:
        """Page of groups a member is bound to."""

    @abstractmethod
    def retrieve_unassigned(self, db: Session, pm: PageMetadata) -> ResourcePage:
        """Page of members not bound to any group, scoped by pm.owner_id."""

    @abstractmethod
    def retrieve_membership_of_single(self, db: Session, member_id: str) -> str:
        """Id of the group owning a member, or an empty string."""

    @abstractmethod
    def backup_all(self, db: Session) -> List[GroupRelation]:
        """Every relation, unpaginated."""

    @abstractmethod
    def backup_by_group(self, db: Session, group_id: str) -> List[GroupRelation]:
        """Every relation of one group, unpaginated."""

    def _to_resource(self, row, group_id: str = None) -> Resource:
        return Resource(
            id=row.id,
            owner_id=row.owner_id,
            group_id=(group_id or None) if group_id is not None else row.group_id,
            name=row.name,
            metadata=row.metadata_ or {},
        )

    def _resource_page(self, rows, total: int, pm: PageMetadata, group_id: str = None) -> ResourcePage:
        return ResourcePage(
            total=total,
            offset=pm.offset,
            limit=pm.limit,
            members=[self._to_resource(row, group_id) for row in rows],
        )

    def _check_single(self, member_id: str) -> None:
        if not valid_id(member_id):
            raise store_error(ErrorKind.RETRIEVE_ENTITY, message=f"invalid {self.kind.value} id: {member_id!r}")


class ForeignKeyRelationStore(RelationStore):
    """Members reference their single group through their own group_id column."""

    @store_operation(ErrorKind.CREATE_ENTITY)
    def assign(self, db: Session, group_id: str, *member_ids: str) -> None:
        require_ids(ErrorKind.MALFORMED_ENTITY, group_id, *member_ids)
        now = self.now()

        try:
            with transaction(db):
                for member_id in member_ids:
                    current = db.execute(
                        select(self.model.group_id)
                        .where(self.model.id == member_id)
                        .with_for_update()
                    ).first()

                    if current is None:
                        raise store_error(ErrorKind.CONFLICT,
                                          message=f"{self.kind.value} {member_id} does not exist")
                    if current.group_id is not None:
                        raise store_error(self.already_assigned, member_id=member_id,
                                          group_id=current.group_id)

                    db.execute(
                        update(self.model)
                        .where(self.model.id == member_id)
                        .values(group_id=group_id, updated_at=now)
                    )
        except IntegrityError as e:
            raise translate_integrity_error(e, {
                FOREIGN_KEY_VIOLATION: ErrorKind.CONFLICT,
            }, ErrorKind.CREATE_ENTITY)

        self._log_bulk(f"Assigned to group {group_id}:", member_ids)

    @store_operation(ErrorKind.REMOVE_ENTITY)
    def unassign(self, db: Session, group_id: str, *member_ids: str) -> None:
        require_ids(ErrorKind.MALFORMED_ENTITY, group_id, *member_ids)

        with transaction(db):
            db.execute(
                update(self.model)
                .where(self.model.group_id == group_id, self.model.id.in_(member_ids))
                .values(group_id=None, updated_at=self.now())
            )

        self._log_bulk(f"Unassigned from group {group_id}:", member_ids)

    @store_operation(ErrorKind.RETRIEVE_ENTITY)
    def retrieve_members_of_group(self, db: Session, group_id: str, pm: PageMetadata) -> ResourcePage:
        spec = compose(self.columns, pm)
        stmt = select(self.model).where(self.model.group_id == group_id)
        rows, total = fetch_page(db, stmt, spec)
        return self._resource_page(rows, total, pm)

    @store_operation(ErrorKind.RETRIEVE_ENTITY)
    def retrieve_membership_of(self, db: Session, member_id: str, pm: PageMetadata) -> GroupPage:
        spec = compose(GROUP_COLUMNS, pm)
        stmt = (
            select(GroupModel)
            .join(self.model, self.model.group_id == GroupModel.id)
            .where(self.model.id == member_id)
        )
        rows, total = fetch_page(db, stmt, spec)
        return group_page(rows, total, spec, pm)

    @store_operation(ErrorKind.RETRIEVE_ENTITY)
    def retrieve_unassigned(self, db: Session, pm: PageMetadata) -> ResourcePage:
        spec = compose(self.columns, pm)
        stmt = select(self.model).where(self.model.group_id.is_(None))
        rows, total = fetch_page(db, stmt, spec)
        return self._resource_page(rows, total, pm)

    @store_operation(ErrorKind.RETRIEVE_ENTITY)
    def retrieve_membership_of_single(self, db: Session, member_id: str) -> str:
        self._check_single(member_id)
        group_id = db.execute(
            select(self.model.group_id).where(self.model.id == member_id)
        ).scalar_one_or_none()
        return group_id or ""

    @store_operation(ErrorKind.RETRIEVE_ENTITY)
    def backup_all(self, db: Session) -> List[GroupRelation]:
        stmt = select(self.model).where(self.model.group_id.isnot(None)).order_by(self.model.id)
        return [self._to_relation(row) for row in db.execute(stmt).scalars().all()]

    @store_operation(ErrorKind.RETRIEVE_ENTITY)
    def backup_by_group(self, db: Session, group_id: str) -> List[GroupRelation]:
        stmt = select(self.model).where(self.model.group_id == group_id).order_by(self.model.id)
        return [self._to_relation(row) for row in db.execute(stmt).scalars().all()]

    def _to_relation(self, row) -> GroupRelation:
        return GroupRelation(
            group_id=row.group_id,
            member_id=row.id,
            # The member row only records when it was last (re)assigned
            created_at=None,
            updated_at=row.updated_at,
        )


class JoinTableRelationStore(RelationStore):
    """Members are bound to groups through an association table."""

    @store_operation(ErrorKind.CREATE_ENTITY)
    def assign(self, db: Session, group_id: str, *member_ids: str) -> None:
        require_ids(ErrorKind.MALFORMED_ENTITY, group_id, *member_ids)
        now = self.now()

        try:
            with transaction(db):
                for member_id in member_ids:
                    db.execute(insert(self.table).values(
                        group_id=group_id,
                        member_id=member_id,
                        created_at=now,
                        updated_at=now,
                    ))
        except IntegrityError as e:
            raise translate_integrity_error(e, {
                UNIQUE_VIOLATION: self.already_assigned,
                FOREIGN_KEY_VIOLATION: ErrorKind.CONFLICT,
            }, ErrorKind.CREATE_ENTITY)

        self._log_bulk(f"Assigned to group {group_id}:", member_ids)

    @store_operation(ErrorKind.REMOVE_ENTITY)
    def unassign(self, db: Session, group_id: str, *member_ids: str) -> None:
        require_ids(ErrorKind.MALFORMED_ENTITY, group_id, *member_ids)

        with transaction(db):
            db.execute(
                delete(self.table)
                .where(self.table.c.group_id == group_id, self.table.c.member_id.in_(member_ids))
            )

        self._log_bulk(f"Unassigned from group {group_id}:", member_ids)

    @store_operation(ErrorKind.RETRIEVE_ENTITY)
    def retrieve_members_of_group(self, db: Session, group_id: str, pm: PageMetadata) -> ResourcePage:
        spec = compose(self.columns, pm)
        stmt = (
            select(self.model)
            .join(self.table, self.table.c.member_id == self.model.id)
            .where(self.table.c.group_id == group_id)
        )
        rows, total = fetch_page(db, stmt, spec)
        return self._resource_page(rows, total, pm, group_id=group_id)

    @store_operation(ErrorKind.RETRIEVE_ENTITY)
    def retrieve_membership_of(self, db: Session, member_id: str, pm: PageMetadata) -> GroupPage:
        spec = compose(GROUP_COLUMNS, pm)
        stmt = (
            select(GroupModel)
            .join(self.table, self.table.c.group_id == GroupModel.id)
            .where(self.table.c.member_id == member_id)
        )
        rows, total = fetch_page(db, stmt, spec)
        return group_page(rows, total, spec, pm)

    @store_operation(ErrorKind.RETRIEVE_ENTITY)
    def retrieve_unassigned(self, db: Session, pm: PageMetadata) -> ResourcePage:
        spec = compose(self.columns, pm)
        stmt = select(self.model).where(self.model.id.not_in(select(self.table.c.member_id)))
        rows, total = fetch_page(db, stmt, spec)
        return self._resource_page(rows, total, pm, group_id="")

    @store_operation(ErrorKind.RETRIEVE_ENTITY)
    def retrieve_membership_of_single(self, db: Session, member_id: str) -> str:
        self._check_single(member_id)
        group_id = db.execute(
            select(self.table.c.group_id)
            .where(self.table.c.member_id == member_id)
            .order_by(self.table.c.created_at, self.table.c.group_id)
            .limit(1)
        ).scalar_one_or_none()
        return group_id or ""

    @store_operation(ErrorKind.RETRIEVE_ENTITY)
    def backup_all(self, db: Session) -> List[GroupRelation]:
        stmt = select(self.table).order_by(self.table.c.group_id, self.table.c.member_id)
        return [self._to_relation(row) for row in db.execute(stmt).all()]

    @store_operation(ErrorKind.RETRIEVE_ENTITY)
    def backup_by_group(self, db: Session, group_id: str) -> List[GroupRelation]:
        stmt = (
            select(self.table)
            .where(self.table.c.group_id == group_id)
            .order_by(self.table.c.member_id)
        )
        return [self._to_relation(row) for row in db.execute(stmt).all()]

    def _to_relation(self, row) -> GroupRelation:
        return GroupRelation(
            group_id=row.group_id,
            member_id=row.member_id,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )


_VARIANTS = {
    RelationVariant.FOREIGN_KEY: ForeignKeyRelationStore,
    RelationVariant.JOIN_TABLE: JoinTableRelationStore,
}


def new_relation_store(kind: ResourceKind, variant: str = None, clock: Clock = None) -> RelationStore:
    """Create the relation store for a resource kind using the configured strategy."""
    variant = RelationVariant(variant or settings.relation_variant)
    return _VARIANTS[variant](kind, clock)
