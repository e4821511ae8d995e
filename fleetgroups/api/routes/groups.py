"""
Group management API endpoints.

This module provides REST API endpoints for group CRUD operations and
filtered, paginated group listings.
"""

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from typing import List, Optional

from fleetgroups.core.dependencies import get_database, get_page_metadata
from fleetgroups.crud.base import new_id
from fleetgroups.crud.groups import groups as group_store
from fleetgroups.schemas.groups import Group, GroupCreate, GroupPage, GroupUpdate
from fleetgroups.schemas.pages import PageMetadata

router = APIRouter()


@router.get("/", response_model=GroupPage)
async def list_groups(
    org_id: Optional[str] = Query(None, description="Restrict to one organization"),
    owner_id: Optional[str] = Query(None, description="Restrict to one owner"),
    ids: Optional[List[str]] = Query(None, description="Restrict to these group ids"),
    pm: PageMetadata = Depends(get_page_metadata),
    db: Session = Depends(get_database)
):
    """
    Retrieve a page of groups.

    - **org_id** / **owner_id** / **ids**: scope of the listing
    - **offset** / **limit**: window, a limit of 0 returns everything
    - **order** / **dir**: sort field (id, name, created_at, updated_at) and direction
    - **name** / **metadata**: name substring and metadata containment filters
    """
    if ids is not None:
        return group_store.retrieve_by_ids(db, ids, pm.copy(update={"org_id": org_id or "", "owner_id": owner_id or ""}))
    if org_id:
        return group_store.retrieve_by_org(db, org_id, pm.copy(update={"owner_id": owner_id or ""}))
    if owner_id:
        return group_store.retrieve_by_owner(db, owner_id, pm)
    return group_store.retrieve_all(db, pm)


@router.get("/orgs/{org_id}/ids", response_model=List[str])
async def list_group_ids_of_org(org_id: str, db: Session = Depends(get_database)):
    """Ids of every group in an organization."""
    return group_store.retrieve_ids_by_org(db, org_id)


@router.get("/{group_id}", response_model=Group)
async def get_group(group_id: str, db: Session = Depends(get_database)):
    """Retrieve a specific group by ID."""
    return group_store.retrieve_by_id(db, group_id)


@router.post("/", response_model=Group, status_code=status.HTTP_201_CREATED)
async def create_group(group_data: GroupCreate, db: Session = Depends(get_database)):
    """
    Create a new group.

    The group name must be unique within its organization.
    """
    group = Group(id=new_id(), **group_data.dict())
    return group_store.save(db, group)


@router.put("/{group_id}", response_model=Group)
async def update_group(group_id: str, group_data: GroupUpdate, db: Session = Depends(get_database)):
    """Update name, description and metadata of an existing group."""
    return group_store.update(db, Group(id=group_id, **group_data.dict()))


@router.delete("/{group_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_group(group_id: str, db: Session = Depends(get_database)):
    """
    Delete a group.

    Fails with 409 while any member, membership or invite still references it.
    """
    group_store.remove(db, group_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
