"""
Group invite SQLAlchemy models.

An invite with no invitee is dormant: it waits for the organization invite
it is linked to through dormant_group_invites to be accepted.
"""

import enum

from sqlalchemy import Column, String, DateTime, ForeignKey, Index, text
from sqlalchemy.sql import func

from fleetgroups.core.database import Base


class InviteState(str, enum.Enum):
    """Stored invite states. Expiry is also derived on read."""
    PENDING = "pending"
    ACTIVE = "active"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"


# States in which an invite can still be acted upon
OPEN_STATES = (InviteState.PENDING.value, InviteState.ACTIVE.value)

_open_predicate = text("state IN ('pending', 'active')")


class GroupInvite(Base):
    """Time-bounded offer of group membership at a given role."""
    __tablename__ = "group_invites"
    __table_args__ = (
        # Only one live invite per (inviter, invitee, group); expired,
        # accepted and declined rows never block a new one
        Index(
            "uq_group_invites_open",
            "inviter_id", "invitee_id", "group_id",
            unique=True,
            postgresql_where=_open_predicate,
            sqlite_where=_open_predicate,
        ),
    )

    id = Column(String(36), primary_key=True)
    invitee_id = Column(String(36), nullable=True, index=True)
    inviter_id = Column(String(36), nullable=False, index=True)
    group_id = Column(String(36), ForeignKey("groups.id"), nullable=False, index=True)
    invitee_role = Column(String(15), nullable=False)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    state = Column(String(15), nullable=False, default=InviteState.PENDING.value)

    def __repr__(self):
        return f"<GroupInvite(id='{self.id}', group_id='{self.group_id}', state='{self.state}')>"


class DormantGroupInvite(Base):
    """Link between an external organization invite and a dormant group invite."""
    __tablename__ = "dormant_group_invites"

    org_invite_id = Column(String(36), primary_key=True)
    group_invite_id = Column(
        String(36),
        ForeignKey("group_invites.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )

    def __repr__(self):
        return f"<DormantGroupInvite(org_invite_id='{self.org_invite_id}', group_invite_id='{self.group_invite_id}')>"
