"""
Group membership API endpoints.

Users are bound to groups with a role; these routes manage those bindings.
"""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from typing import List

from fleetgroups.core.dependencies import get_database, get_page_metadata
from fleetgroups.crud.memberships import group_memberships
from fleetgroups.schemas.groups import (
    GroupMembership, GroupMembershipsPage, GroupMembershipsRequest, RemoveMembershipsRequest
)
from fleetgroups.schemas.pages import PageMetadata

router = APIRouter()


def _bind(group_id: str, request: GroupMembershipsRequest) -> List[GroupMembership]:
    return [gm.copy(update={"group_id": group_id}) for gm in request.group_memberships]


@router.post("/{group_id}/memberships", status_code=status.HTTP_201_CREATED)
async def create_memberships(
    group_id: str,
    request: GroupMembershipsRequest,
    db: Session = Depends(get_database)
):
    """Add users to a group. An existing membership rejects the whole request with 409."""
    group_memberships.save(db, *_bind(group_id, request))
    return Response(status_code=status.HTTP_201_CREATED)


@router.put("/{group_id}/memberships", status_code=status.HTTP_204_NO_CONTENT)
async def update_memberships(
    group_id: str,
    request: GroupMembershipsRequest,
    db: Session = Depends(get_database)
):
    """Change the roles of existing memberships."""
    group_memberships.update(db, *_bind(group_id, request))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{group_id}/memberships/remove", status_code=status.HTTP_204_NO_CONTENT)
async def remove_memberships(
    group_id: str,
    request: RemoveMembershipsRequest,
    db: Session = Depends(get_database)
):
    group_memberships.remove(db, group_id, *request.member_ids)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{group_id}/memberships", response_model=GroupMembershipsPage)
async def list_memberships(
    group_id: str,
    pm: PageMetadata = Depends(get_page_metadata),
    db: Session = Depends(get_database)
):
    return group_memberships.retrieve_by_group(db, group_id, pm)


@router.get("/{group_id}/memberships/{member_id}/role")
async def get_membership_role(group_id: str, member_id: str, db: Session = Depends(get_database)):
    """Role of a user in a group."""
    role = group_memberships.retrieve_role(db, GroupMembership(group_id=group_id, member_id=member_id))
    return {"group_id": group_id, "member_id": member_id, "role": role}
