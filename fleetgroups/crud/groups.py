"""
Group store.

CRUD over the groups table. Names are unique within an organization and a
group that is still referenced by a relation, membership or invite can
not be removed.
"""

import json
from typing import List

from sqlalchemy import delete, select, update
from sqlalchemy.exc import DataError, IntegrityError
from sqlalchemy.orm import Session

from fleetgroups.config.settings import settings
from fleetgroups.core.database import transaction
from fleetgroups.core.errors import ErrorKind, store_error
from fleetgroups.crud.base import (
    CRUDBase, Clock, DATA_EXCEPTION, FOREIGN_KEY_VIOLATION, UNIQUE_VIOLATION,
    require_ids, store_operation, translate_integrity_error, valid_id
)
from fleetgroups.crud.query import PageColumns, compose, fetch_page
from fleetgroups.models.groups import Group as GroupModel
from fleetgroups.schemas.groups import Group, GroupPage
from fleetgroups.schemas.pages import PageMetadata

GROUP_COLUMNS = PageColumns(
    id=GroupModel.id,
    name=GroupModel.name,
    metadata=GroupModel.metadata_,
    owner_id=GroupModel.owner_id,
    org_id=GroupModel.org_id,
    orders={
        "id": GroupModel.id,
        "name": GroupModel.name,
        "created_at": GroupModel.created_at,
        "updated_at": GroupModel.updated_at,
    },
)


def to_group(row: GroupModel) -> Group:
    return Group(
        id=row.id,
        org_id=row.org_id,
        owner_id=row.owner_id,
        name=row.name,
        description=row.description,
        metadata=row.metadata_ or {},
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def group_page(rows, total: int, spec, pm: PageMetadata) -> GroupPage:
    return GroupPage(
        total=total,
        offset=pm.offset,
        limit=pm.limit,
        order=spec.order,
        dir=spec.dir,
        groups=[to_group(row) for row in rows],
    )


class GroupStore(CRUDBase):
    """Persistence for groups."""

    def __init__(self, clock: Clock = None):
        super().__init__("GroupStore", clock)

    def _validate(self, group: Group, with_owner: bool = True) -> None:
        ids = [group.id, group.org_id, group.owner_id] if with_owner else [group.id]
        require_ids(ErrorKind.MALFORMED_ENTITY, *ids)

        if not group.name or len(group.name) > settings.name_max_length:
            raise store_error(ErrorKind.MALFORMED_ENTITY, message="invalid name size")
        if group.description and len(group.description) > settings.description_max_length:
            raise store_error(ErrorKind.MALFORMED_ENTITY, message="invalid description size")
        try:
            json.dumps(group.metadata)
        except (TypeError, ValueError) as e:
            raise store_error(ErrorKind.MALFORMED_ENTITY, cause=e, message="invalid metadata")

    @store_operation(ErrorKind.CREATE_ENTITY)
    def save(self, db: Session, group: Group) -> Group:
        """Insert a group, assigning its timestamps."""
        self._validate(group)

        created = self.now()
        row = GroupModel(
            id=group.id,
            org_id=group.org_id,
            owner_id=group.owner_id,
            name=group.name,
            description=group.description,
            metadata_=group.metadata,
            created_at=created,
            updated_at=created,
        )

        try:
            with transaction(db):
                db.add(row)
                db.flush()
        except (IntegrityError, DataError) as e:
            raise translate_integrity_error(e, {
                UNIQUE_VIOLATION: ErrorKind.CONFLICT,
                DATA_EXCEPTION: ErrorKind.MALFORMED_ENTITY,
            }, ErrorKind.CREATE_ENTITY)

        self.logger.info(f"Group created: {group.name} (ID: {group.id})")
        return self.retrieve_by_id(db, group.id)

    @store_operation(ErrorKind.UPDATE_ENTITY)
    def update(self, db: Session, group: Group) -> Group:
        """Update name, description and metadata of an existing group."""
        self._validate(group, with_owner=False)

        stmt = (
            update(GroupModel)
            .where(GroupModel.id == group.id)
            .values(
                name=group.name,
                description=group.description,
                metadata_=group.metadata,
                updated_at=self.now(),
            )
        )

        try:
            with transaction(db):
                result = db.execute(stmt)
                if result.rowcount == 0:
                    raise store_error(ErrorKind.UPDATE_ENTITY, message=f"group {group.id} does not exist")
        except (IntegrityError, DataError) as e:
            raise translate_integrity_error(e, {
                UNIQUE_VIOLATION: ErrorKind.CONFLICT,
                DATA_EXCEPTION: ErrorKind.MALFORMED_ENTITY,
            }, ErrorKind.UPDATE_ENTITY)

        return self.retrieve_by_id(db, group.id)

    @store_operation(ErrorKind.REMOVE_ENTITY)
    def remove(self, db: Session, *ids: str) -> None:
        """
        Delete groups by id in one transaction.

        Fails with GroupNotEmpty when anything still references a group;
        in that case none of the groups are removed.
        """
        require_ids(ErrorKind.MALFORMED_ENTITY, *ids)

        try:
            with transaction(db):
                for group_id in ids:
                    result = db.execute(delete(GroupModel).where(GroupModel.id == group_id))
                    if result.rowcount != 1:
                        raise store_error(ErrorKind.REMOVE_ENTITY, message=f"group {group_id} does not exist")
        except IntegrityError as e:
            raise translate_integrity_error(e, {
                FOREIGN_KEY_VIOLATION: ErrorKind.GROUP_NOT_EMPTY,
            }, ErrorKind.REMOVE_ENTITY)

        self._log_bulk("Groups removed:", ids)

    @store_operation(ErrorKind.RETRIEVE_ENTITY)
    def retrieve_by_id(self, db: Session, group_id: str) -> Group:
        if not valid_id(group_id):
            raise store_error(ErrorKind.NOT_FOUND, message=f"invalid group id: {group_id!r}")

        row = db.execute(select(GroupModel).where(GroupModel.id == group_id)).scalar_one_or_none()
        if row is None:
            raise store_error(ErrorKind.NOT_FOUND, message=f"group {group_id} not found")

        return to_group(row)

    @store_operation(ErrorKind.RETRIEVE_ENTITY)
    def retrieve_by_ids(self, db: Session, ids: List[str], pm: PageMetadata) -> GroupPage:
        """Retrieve groups among ids. An empty id list returns an empty page."""
        return self._retrieve(db, pm.copy(update={"ids": list(ids)}))

    @store_operation(ErrorKind.RETRIEVE_ENTITY)
    def retrieve_by_owner(self, db: Session, owner_id: str, pm: PageMetadata) -> GroupPage:
        return self._retrieve(db, pm.copy(update={"owner_id": owner_id}))

    @store_operation(ErrorKind.RETRIEVE_ENTITY)
    def retrieve_by_org(self, db: Session, org_id: str, pm: PageMetadata) -> GroupPage:
        return self._retrieve(db, pm.copy(update={"org_id": org_id}))

    @store_operation(ErrorKind.RETRIEVE_ENTITY)
    def retrieve_all(self, db: Session, pm: PageMetadata) -> GroupPage:
        return self._retrieve(db, pm)

    @store_operation(ErrorKind.RETRIEVE_ENTITY)
    def retrieve_ids_by_org(self, db: Session, org_id: str) -> List[str]:
        stmt = select(GroupModel.id).where(GroupModel.org_id == org_id).order_by(GroupModel.id)
        return list(db.execute(stmt).scalars().all())

    @store_operation(ErrorKind.RETRIEVE_ENTITY)
    def backup_all(self, db: Session) -> List[Group]:
        rows = db.execute(select(GroupModel).order_by(GroupModel.id)).scalars().all()
        return [to_group(row) for row in rows]

    def _retrieve(self, db: Session, pm: PageMetadata) -> GroupPage:
        spec = compose(GROUP_COLUMNS, pm)
        rows, total = fetch_page(db, select(GroupModel), spec)
        return group_page(rows, total, spec, pm)


groups = GroupStore()
