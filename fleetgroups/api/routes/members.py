"""
Group member API endpoints.

Assigns things, channels and profiles to groups and lists them. The
resource kind is part of the path and selects the relation store.
"""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from fleetgroups.core.dependencies import get_database, get_page_metadata, get_relation_store
from fleetgroups.crud.relations import RelationStore, ResourceKind
from fleetgroups.schemas.groups import GroupPage, MembersRequest, ResourcePage
from fleetgroups.schemas.pages import PageMetadata

router = APIRouter()


@router.post("/groups/{group_id}/{kind}/assign", status_code=status.HTTP_204_NO_CONTENT)
async def assign_members(
    group_id: str,
    kind: ResourceKind,
    request: MembersRequest,
    store: RelationStore = Depends(get_relation_store),
    db: Session = Depends(get_database)
):
    """Assign members of one kind to a group. Either all are assigned or none."""
    store.assign(db, group_id, *request.member_ids)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/groups/{group_id}/{kind}/unassign", status_code=status.HTTP_204_NO_CONTENT)
async def unassign_members(
    group_id: str,
    kind: ResourceKind,
    request: MembersRequest,
    store: RelationStore = Depends(get_relation_store),
    db: Session = Depends(get_database)
):
    store.unassign(db, group_id, *request.member_ids)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/groups/{group_id}/{kind}", response_model=ResourcePage)
async def list_members(
    group_id: str,
    kind: ResourceKind,
    pm: PageMetadata = Depends(get_page_metadata),
    store: RelationStore = Depends(get_relation_store),
    db: Session = Depends(get_database)
):
    """Retrieve a page of the members of one kind bound to a group."""
    return store.retrieve_members_of_group(db, group_id, pm)


@router.get("/members/{kind}/unassigned", response_model=ResourcePage)
async def list_unassigned(
    kind: ResourceKind,
    owner_id: str = "",
    pm: PageMetadata = Depends(get_page_metadata),
    store: RelationStore = Depends(get_relation_store),
    db: Session = Depends(get_database)
):
    """Retrieve members of one kind that belong to no group."""
    return store.retrieve_unassigned(db, pm.copy(update={"owner_id": owner_id}))


@router.get("/members/{kind}/{member_id}/groups", response_model=GroupPage)
async def list_groups_of_member(
    kind: ResourceKind,
    member_id: str,
    pm: PageMetadata = Depends(get_page_metadata),
    store: RelationStore = Depends(get_relation_store),
    db: Session = Depends(get_database)
):
    return store.retrieve_membership_of(db, member_id, pm)


@router.get("/members/{kind}/{member_id}/group")
async def get_group_of_member(
    kind: ResourceKind,
    member_id: str,
    store: RelationStore = Depends(get_relation_store),
    db: Session = Depends(get_database)
):
    """Id of the group a member belongs to, empty when unassigned."""
    return {"group_id": store.retrieve_membership_of_single(db, member_id)}
