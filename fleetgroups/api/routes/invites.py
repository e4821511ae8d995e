"""
Group invite API endpoints.

Covers direct invites, dormant invites parked behind an organization
invite, and the activation endpoint called when that organization invite
is accepted.
"""

from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session
from typing import List

from fleetgroups.config.settings import settings
from fleetgroups.core.dependencies import get_database, get_page_metadata
from fleetgroups.crud.base import new_id, utcnow
from fleetgroups.crud.invites import INVITEE, INVITER, group_invites
from fleetgroups.models.invites import OPEN_STATES
from fleetgroups.schemas.invites import (
    ActivateInvitesRequest, DormantInvitesRequest, GroupInvite, GroupInviteCreate,
    GroupInvitesPage, InviteStateUpdate
)
from fleetgroups.schemas.pages import PageMetadata, PageMetadataInvites

router = APIRouter()


def _default_expiry():
    return utcnow() + timedelta(hours=settings.invite_ttl_hours)


def _invite_page(pm: PageMetadata, state: str) -> PageMetadataInvites:
    return PageMetadataInvites(**pm.dict(), state=state)


@router.post("/groups/{group_id}/invites", response_model=List[GroupInvite],
             status_code=status.HTTP_201_CREATED)
async def create_invites(
    group_id: str,
    invites: List[GroupInviteCreate],
    db: Session = Depends(get_database)
):
    """
    Invite users to a group.

    Invites without an invitee are dormant and must be linked to an
    organization invite. A live invite for the same inviter, invitee and
    group is rejected with 409.
    """
    records = [
        GroupInvite(
            id=new_id(),
            group_id=group_id,
            created_at=utcnow(),
            **{**invite.dict(), "expires_at": invite.expires_at or _default_expiry()},
        )
        for invite in invites
    ]
    return group_invites.save_invites(db, *records)


@router.get("/groups/{group_id}/invites", response_model=GroupInvitesPage)
async def list_group_invites(
    group_id: str,
    state: str = Query("", description="Effective state filter"),
    pm: PageMetadata = Depends(get_page_metadata),
    db: Session = Depends(get_database)
):
    return group_invites.retrieve_invites_by_group(db, group_id, _invite_page(pm, state))


@router.get("/users/{user_id}/invites", response_model=GroupInvitesPage)
async def list_user_invites(
    user_id: str,
    user_type: str = Query(INVITEE, description=f"{INVITEE} or {INVITER}"),
    state: str = Query("", description="Effective state filter"),
    pm: PageMetadata = Depends(get_page_metadata),
    db: Session = Depends(get_database)
):
    """Invites addressed to a user, or sent by them with user_type=inviter."""
    return group_invites.retrieve_invites_by_user(db, user_type, user_id, _invite_page(pm, state))


@router.get("/invites/{invite_id}", response_model=GroupInvite)
async def get_invite(invite_id: str, db: Session = Depends(get_database)):
    return group_invites.retrieve_invite_by_id(db, invite_id)


@router.put("/invites/{invite_id}/state", status_code=status.HTTP_204_NO_CONTENT)
async def update_invite_state(
    invite_id: str,
    request: InviteStateUpdate,
    db: Session = Depends(get_database)
):
    """Record the response to an invite."""
    invite = group_invites.retrieve_invite_by_id(db, invite_id)
    if invite.state not in OPEN_STATES:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Invite {invite_id} is {invite.state}"
        )
    group_invites.update_invite_state(db, invite_id, request.state.value)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/invites/{invite_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_invite(invite_id: str, db: Session = Depends(get_database)):
    group_invites.remove_invite(db, invite_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/org-invites/{org_invite_id}/dormant", status_code=status.HTTP_204_NO_CONTENT)
async def link_dormant_invites(
    org_invite_id: str,
    request: DormantInvitesRequest,
    db: Session = Depends(get_database)
):
    """Park dormant group invites behind an organization invite."""
    group_invites.save_dormant_invite_relations(db, org_invite_id, *request.group_invite_ids)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/org-invites/{org_invite_id}/activate", response_model=List[GroupInvite])
async def activate_invites(
    org_invite_id: str,
    request: ActivateInvitesRequest,
    db: Session = Depends(get_database)
):
    """
    Activate the dormant group invites of an accepted organization invite.

    Returns the activated invites; a second call returns an empty list.
    """
    expires_at = request.expires_at or _default_expiry()
    return group_invites.activate_group_invites(db, org_invite_id, request.user_id, expires_at)
