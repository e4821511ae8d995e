"""
Pydantic schemas for group invites and the dormant invite handshake.
"""

from pydantic import BaseModel, validator
from typing import List, Optional
from datetime import datetime

from fleetgroups.models.invites import InviteState

RESPONSE_STATES = (InviteState.ACCEPTED, InviteState.DECLINED)


class GroupInvite(BaseModel):
    """
    Time-bounded offer of group membership.

    ``state`` is the effective state: an open invite past its expiry
    is reported as expired whatever the stored value.
    """
    id: str = ""
    invitee_id: Optional[str] = None
    inviter_id: str = ""
    group_id: str = ""
    invitee_role: str = ""
    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    state: str = InviteState.PENDING.value

    @property
    def is_dormant(self) -> bool:
        return self.invitee_id is None


class GroupInvitesPage(BaseModel):
    total: int = 0
    offset: int = 0
    limit: int = 0
    invites: List[GroupInvite] = []


# Request schemas
class GroupInviteCreate(BaseModel):
    """Schema for inviting a known user, or a dormant invite when invitee_id is omitted."""
    inviter_id: str
    invitee_id: Optional[str] = None
    invitee_role: str
    expires_at: Optional[datetime] = None


class DormantInvitesRequest(BaseModel):
    """Group invites to park behind an organization invite."""
    group_invite_ids: List[str]


class ActivateInvitesRequest(BaseModel):
    user_id: str
    expires_at: Optional[datetime] = None


class InviteStateUpdate(BaseModel):
    """Response of the invitee: accepted or declined."""
    state: InviteState

    @validator("state")
    def response_state(cls, v):
        if v not in RESPONSE_STATES:
            raise ValueError(f"must be one of: {', '.join(s.value for s in RESPONSE_STATES)}")
        return v
