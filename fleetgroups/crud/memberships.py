"""
Membership store: users bound to groups with a role.
"""

from typing import List, Sequence

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fleetgroups.config.settings import settings
from fleetgroups.core.database import transaction
from fleetgroups.core.errors import ErrorKind, store_error
from fleetgroups.crud.base import (
    CRUDBase, Clock, FOREIGN_KEY_VIOLATION, UNIQUE_VIOLATION,
    require_ids, store_operation, translate_integrity_error, valid_id
)
from fleetgroups.crud.query import PageColumns, compose, fetch_page
from fleetgroups.models.groups import GroupMembership as MembershipModel
from fleetgroups.schemas.groups import GroupMembership, GroupMembershipsPage
from fleetgroups.schemas.pages import PageMetadata

MEMBERSHIP_COLUMNS = PageColumns(
    id=MembershipModel.member_id,
    orders={
        "id": MembershipModel.member_id,
        "member_id": MembershipModel.member_id,
        "role": MembershipModel.role,
    },
)


def to_membership(row) -> GroupMembership:
    return GroupMembership(group_id=row.group_id, member_id=row.member_id, role=row.role)


class GroupMembershipStore(CRUDBase):
    """Persistence for group memberships."""

    def __init__(self, roles: Sequence[str] = None, clock: Clock = None):
        super().__init__("GroupMembershipStore", clock)
        self._roles = roles

    @property
    def roles(self) -> Sequence[str]:
        return self._roles if self._roles is not None else settings.group_roles

    def _validate(self, gms: Sequence[GroupMembership]) -> None:
        for gm in gms:
            require_ids(ErrorKind.MALFORMED_ENTITY, gm.group_id, gm.member_id)
            if gm.role not in self.roles:
                raise store_error(ErrorKind.MALFORMED_ENTITY, message=f"invalid role: {gm.role!r}")

    @store_operation(ErrorKind.CREATE_ENTITY)
    def save(self, db: Session, *gms: GroupMembership) -> None:
        """Insert memberships; the whole batch is rejected on the first failing row."""
        self._validate(gms)

        try:
            with transaction(db):
                for gm in gms:
                    db.execute(insert(MembershipModel).values(
                        member_id=gm.member_id,
                        group_id=gm.group_id,
                        role=gm.role,
                    ))
        except IntegrityError as e:
            raise translate_integrity_error(e, {
                UNIQUE_VIOLATION: ErrorKind.GROUP_MEMBERSHIP_EXISTS,
                FOREIGN_KEY_VIOLATION: ErrorKind.CONFLICT,
            }, ErrorKind.CREATE_ENTITY)

        self._log_bulk("Group memberships saved:", gms)

    @store_operation(ErrorKind.UPDATE_ENTITY)
    def update(self, db: Session, *gms: GroupMembership) -> None:
        """Change the role of existing memberships."""
        self._validate(gms)

        with transaction(db):
            for gm in gms:
                result = db.execute(
                    update(MembershipModel)
                    .where(MembershipModel.member_id == gm.member_id,
                           MembershipModel.group_id == gm.group_id)
                    .values(role=gm.role)
                )
                if result.rowcount == 0:
                    raise store_error(ErrorKind.NOT_FOUND,
                                      message=f"membership of {gm.member_id} in group {gm.group_id} not found")

        self._log_bulk("Group memberships updated:", gms)

    @store_operation(ErrorKind.REMOVE_ENTITY)
    def remove(self, db: Session, group_id: str, *member_ids: str) -> None:
        require_ids(ErrorKind.MALFORMED_ENTITY, group_id, *member_ids)

        with transaction(db):
            db.execute(
                delete(MembershipModel)
                .where(MembershipModel.group_id == group_id,
                       MembershipModel.member_id.in_(member_ids))
            )

        self._log_bulk(f"Group memberships removed from {group_id}:", member_ids)

    @store_operation(ErrorKind.RETRIEVE_ENTITY)
    def retrieve_role(self, db: Session, gm: GroupMembership) -> str:
        if not (valid_id(gm.member_id) and valid_id(gm.group_id)):
            raise store_error(ErrorKind.NOT_FOUND, message="invalid membership identifiers")

        role = db.execute(
            select(MembershipModel.role)
            .where(MembershipModel.member_id == gm.member_id,
                   MembershipModel.group_id == gm.group_id)
        ).scalar_one_or_none()

        if role is None:
            raise store_error(ErrorKind.NOT_FOUND,
                              message=f"membership of {gm.member_id} in group {gm.group_id} not found")
        return role

    @store_operation(ErrorKind.RETRIEVE_ENTITY)
    def retrieve_by_group(self, db: Session, group_id: str, pm: PageMetadata) -> GroupMembershipsPage:
        spec = compose(MEMBERSHIP_COLUMNS, pm)
        stmt = select(MembershipModel).where(MembershipModel.group_id == group_id)
        rows, total = fetch_page(db, stmt, spec)
        return GroupMembershipsPage(
            total=total,
            offset=pm.offset,
            limit=pm.limit,
            group_memberships=[to_membership(row) for row in rows],
        )

    @store_operation(ErrorKind.RETRIEVE_ENTITY)
    def retrieve_group_ids_by_member(self, db: Session, member_id: str) -> List[str]:
        stmt = (
            select(MembershipModel.group_id)
            .where(MembershipModel.member_id == member_id)
            .order_by(MembershipModel.group_id)
        )
        return list(db.execute(stmt).scalars().all())

    @store_operation(ErrorKind.RETRIEVE_ENTITY)
    def backup_all(self, db: Session) -> List[GroupMembership]:
        stmt = select(MembershipModel).order_by(MembershipModel.group_id, MembershipModel.member_id)
        return [to_membership(row) for row in db.execute(stmt).scalars().all()]

    @store_operation(ErrorKind.RETRIEVE_ENTITY)
    def backup_by_group(self, db: Session, group_id: str) -> List[GroupMembership]:
        stmt = (
            select(MembershipModel)
            .where(MembershipModel.group_id == group_id)
            .order_by(MembershipModel.member_id)
        )
        return [to_membership(row) for row in db.execute(stmt).scalars().all()]


group_memberships = GroupMembershipStore()
