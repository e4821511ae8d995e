"""
Invite store and the dormant invite activation handshake.

An invite saved with an invitee is active right away. One saved without
an invitee is dormant: it is parked behind an organization invite through
dormant_group_invites and becomes active when activate_group_invites()
binds it to the user who accepted the organization invite.

Expiry is derived: any open invite whose expires_at has passed is reported
as expired on read. Stale open rows are only written as expired right
before a new invite for the same (inviter, invitee, group) is inserted, so
the uniqueness constraint over open invites never blocks re-invitation.
"""

from datetime import datetime
from typing import List, Sequence

from sqlalchemy import and_, delete, insert, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fleetgroups.config.settings import settings
from fleetgroups.core.database import transaction
from fleetgroups.core.errors import ErrorKind, store_error
from fleetgroups.crud.base import (
    CRUDBase, Clock, FOREIGN_KEY_VIOLATION, UNIQUE_VIOLATION,
    naive_utc, require_ids, store_operation, translate_integrity_error
)
from fleetgroups.crud.query import PageColumns, compose, fetch_page
from fleetgroups.models.invites import (
    DormantGroupInvite, GroupInvite as InviteModel, InviteState, OPEN_STATES
)
from fleetgroups.schemas.invites import GroupInvite, GroupInvitesPage
from fleetgroups.schemas.pages import PageMetadataInvites

INVITEE = "invitee"
INVITER = "inviter"

INVITE_COLUMNS = PageColumns(
    id=InviteModel.id,
    orders={
        "id": InviteModel.id,
        "created_at": InviteModel.created_at,
        "expires_at": InviteModel.expires_at,
    },
)


def effective_state(state: str, expires_at: datetime, now: datetime) -> str:
    """Stored state, except that open invites past their expiry read as expired."""
    if state in OPEN_STATES and expires_at is not None and expires_at < now:
        return InviteState.EXPIRED.value
    return state


class GroupInviteStore(CRUDBase):
    """Persistence for group invites and their links to organization invites."""

    def __init__(self, roles: Sequence[str] = None, clock: Clock = None):
        super().__init__("GroupInviteStore", clock)
        self._roles = roles

    @property
    def roles(self) -> Sequence[str]:
        return self._roles if self._roles is not None else settings.group_roles

    def _to_invite(self, row, now: datetime) -> GroupInvite:
        return GroupInvite(
            id=row.id,
            invitee_id=row.invitee_id,
            inviter_id=row.inviter_id,
            group_id=row.group_id,
            invitee_role=row.invitee_role,
            created_at=row.created_at,
            expires_at=row.expires_at,
            state=effective_state(row.state, row.expires_at, now),
        )

    def _validate(self, invite: GroupInvite) -> None:
        require_ids(ErrorKind.MALFORMED_ENTITY, invite.id, invite.group_id, invite.inviter_id)
        if invite.invitee_id is not None:
            require_ids(ErrorKind.MALFORMED_ENTITY, invite.invitee_id)
        if invite.invitee_role not in self.roles:
            raise store_error(ErrorKind.MALFORMED_ENTITY, message=f"invalid role: {invite.invitee_role!r}")
        if invite.expires_at is None:
            raise store_error(ErrorKind.MALFORMED_ENTITY, message="missing invite expiration time")

    def _expire_stale(self, db: Session, inviter_id: str, invitee_id: str, group_id: str,
                      now: datetime) -> None:
        """Write the expired state for open invites of a tuple that are past their expiry."""
        db.execute(
            update(InviteModel)
            .where(
                InviteModel.inviter_id == inviter_id,
                InviteModel.invitee_id == invitee_id,
                InviteModel.group_id == group_id,
                InviteModel.state.in_(OPEN_STATES),
                InviteModel.expires_at < now,
            )
            .values(state=InviteState.EXPIRED.value)
        )

    @store_operation(ErrorKind.CREATE_ENTITY)
    def save_invites(self, db: Session, *invites: GroupInvite) -> List[GroupInvite]:
        """
        Insert invites in one transaction.

        Invites with an invitee are stored active, the others pending
        (dormant). A live invite for the same inviter, invitee and group
        makes the whole batch fail with Conflict.
        """
        for invite in invites:
            self._validate(invite)

        now = self.now()
        saved = []

        try:
            with transaction(db):
                for invite in invites:
                    state = InviteState.PENDING if invite.is_dormant else InviteState.ACTIVE
                    if not invite.is_dormant:
                        self._expire_stale(db, invite.inviter_id, invite.invitee_id, invite.group_id, now)

                    values = dict(
                        id=invite.id,
                        invitee_id=invite.invitee_id,
                        inviter_id=invite.inviter_id,
                        group_id=invite.group_id,
                        invitee_role=invite.invitee_role,
                        created_at=naive_utc(invite.created_at) or now,
                        expires_at=naive_utc(invite.expires_at),
                        state=state.value,
                    )
                    db.execute(insert(InviteModel).values(**values))
                    saved.append(GroupInvite(**values))
        except IntegrityError as e:
            raise translate_integrity_error(e, {
                UNIQUE_VIOLATION: ErrorKind.CONFLICT,
                FOREIGN_KEY_VIOLATION: ErrorKind.CONFLICT,
            }, ErrorKind.CREATE_ENTITY)

        self._log_bulk("Group invites saved:", invites)
        return [self._with_effective_state(invite, now) for invite in saved]

    def _with_effective_state(self, invite: GroupInvite, now: datetime) -> GroupInvite:
        return invite.copy(update={"state": effective_state(invite.state, invite.expires_at, now)})

    @store_operation(ErrorKind.RETRIEVE_ENTITY)
    def retrieve_invite_by_id(self, db: Session, invite_id: str) -> GroupInvite:
        require_ids(ErrorKind.MALFORMED_ENTITY, invite_id)

        row = db.execute(select(InviteModel).where(InviteModel.id == invite_id)).scalar_one_or_none()
        if row is None:
            raise store_error(ErrorKind.NOT_FOUND, message=f"invite {invite_id} not found")

        return self._to_invite(row, self.now())

    @store_operation(ErrorKind.RETRIEVE_ENTITY)
    def retrieve_invites_by_user(self, db: Session, user_type: str, user_id: str,
                                 pm: PageMetadataInvites) -> GroupInvitesPage:
        """List invites sent by (inviter) or addressed to (invitee) a user."""
        if user_type == INVITEE:
            column = InviteModel.invitee_id
        elif user_type == INVITER:
            column = InviteModel.inviter_id
        else:
            raise store_error(ErrorKind.MALFORMED_ENTITY, message=f"invalid invite user type: {user_type!r}")
        require_ids(ErrorKind.MALFORMED_ENTITY, user_id)

        return self._retrieve(db, select(InviteModel).where(column == user_id), pm)

    @store_operation(ErrorKind.RETRIEVE_ENTITY)
    def retrieve_invites_by_group(self, db: Session, group_id: str,
                                  pm: PageMetadataInvites) -> GroupInvitesPage:
        require_ids(ErrorKind.MALFORMED_ENTITY, group_id)
        return self._retrieve(db, select(InviteModel).where(InviteModel.group_id == group_id), pm)

    def _retrieve(self, db: Session, stmt, pm: PageMetadataInvites) -> GroupInvitesPage:
        now = self.now()
        if pm.state:
            stmt = stmt.where(self._state_predicate(pm.state, now))

        spec = compose(INVITE_COLUMNS, pm)
        rows, total = fetch_page(db, stmt, spec)
        return GroupInvitesPage(
            total=total,
            offset=pm.offset,
            limit=pm.limit,
            invites=[self._to_invite(row, now) for row in rows],
        )

    def _state_predicate(self, state: str, now: datetime):
        """Filter on the effective state of invites."""
        try:
            state = InviteState(state)
        except ValueError:
            raise store_error(ErrorKind.MALFORMED_ENTITY, message=f"invalid invite state: {state!r}")

        if state == InviteState.EXPIRED:
            return or_(
                InviteModel.state == InviteState.EXPIRED.value,
                and_(InviteModel.state.in_(OPEN_STATES), InviteModel.expires_at < now),
            )
        if state.value in OPEN_STATES:
            return and_(InviteModel.state == state.value, InviteModel.expires_at >= now)
        return InviteModel.state == state.value

    @store_operation(ErrorKind.UPDATE_ENTITY)
    def update_invite_state(self, db: Session, invite_id: str, state: str) -> None:
        """Record a response to an invite (accepted, declined, ...)."""
        require_ids(ErrorKind.MALFORMED_ENTITY, invite_id)
        try:
            state = InviteState(state)
        except ValueError:
            raise store_error(ErrorKind.MALFORMED_ENTITY, message=f"invalid invite state: {state!r}")

        with transaction(db):
            result = db.execute(
                update(InviteModel).where(InviteModel.id == invite_id).values(state=state.value)
            )
            if result.rowcount == 0:
                raise store_error(ErrorKind.NOT_FOUND, message=f"invite {invite_id} not found")

    @store_operation(ErrorKind.REMOVE_ENTITY)
    def remove_invite(self, db: Session, invite_id: str) -> None:
        require_ids(ErrorKind.MALFORMED_ENTITY, invite_id)

        with transaction(db):
            result = db.execute(delete(InviteModel).where(InviteModel.id == invite_id))
            if result.rowcount != 1:
                raise store_error(ErrorKind.REMOVE_ENTITY, message=f"invite {invite_id} does not exist")

    @store_operation(ErrorKind.CREATE_ENTITY)
    def save_dormant_invite_relations(self, db: Session, org_invite_id: str, *group_invite_ids: str) -> None:
        """Park group invites behind an organization invite."""
        require_ids(ErrorKind.MALFORMED_ENTITY, org_invite_id, *group_invite_ids)

        try:
            with transaction(db):
                for group_invite_id in group_invite_ids:
                    db.execute(insert(DormantGroupInvite).values(
                        org_invite_id=org_invite_id,
                        group_invite_id=group_invite_id,
                    ))
        except IntegrityError as e:
            raise translate_integrity_error(e, {
                UNIQUE_VIOLATION: ErrorKind.CONFLICT,
                FOREIGN_KEY_VIOLATION: ErrorKind.CONFLICT,
            }, ErrorKind.CREATE_ENTITY)

        self._log_bulk(f"Dormant invites linked to org invite {org_invite_id}:", group_invite_ids)

    @store_operation(ErrorKind.UPDATE_ENTITY)
    def activate_group_invites(self, db: Session, org_invite_id: str, user_id: str,
                               expires_at: datetime) -> List[GroupInvite]:
        """
        Activate every dormant invite linked to an organization invite.

        In one transaction the linked invites get ``user_id`` as invitee,
        the new expiry and the active state, and the links are deleted.
        Returns the activated invites; an empty list means nothing was
        dormant for this organization invite, which is also what a repeated
        call observes.
        """
        require_ids(ErrorKind.MALFORMED_ENTITY, org_invite_id, user_id)
        expires_at = naive_utc(expires_at)
        now = self.now()

        try:
            with transaction(db):
                invite_ids = list(db.execute(
                    select(DormantGroupInvite.group_invite_id)
                    .where(DormantGroupInvite.org_invite_id == org_invite_id)
                    .with_for_update()
                ).scalars().all())

                rows = []
                if invite_ids:
                    targets = db.execute(
                        select(InviteModel.inviter_id, InviteModel.group_id)
                        .where(InviteModel.id.in_(invite_ids))
                        .distinct()
                    ).all()
                    for inviter_id, group_id in targets:
                        self._expire_stale(db, inviter_id, user_id, group_id, now)

                    db.execute(
                        update(InviteModel)
                        .where(InviteModel.id.in_(invite_ids))
                        .values(
                            invitee_id=user_id,
                            expires_at=expires_at,
                            state=InviteState.ACTIVE.value,
                        )
                        .execution_options(synchronize_session=False)
                    )
                    rows = db.execute(
                        select(InviteModel)
                        .where(InviteModel.id.in_(invite_ids))
                        .order_by(InviteModel.created_at, InviteModel.id)
                        .execution_options(populate_existing=True)
                    ).scalars().all()
                    activated = [self._to_invite(row, now) for row in rows]
                else:
                    activated = []

                db.execute(
                    delete(DormantGroupInvite)
                    .where(DormantGroupInvite.org_invite_id == org_invite_id)
                )
        except IntegrityError as e:
            raise translate_integrity_error(e, {
                UNIQUE_VIOLATION: ErrorKind.CONFLICT,
            }, ErrorKind.UPDATE_ENTITY)

        self.logger.info(f"Activated {len(activated)} group invite(s) for org invite {org_invite_id}")
        return activated


group_invites = GroupInviteStore()
