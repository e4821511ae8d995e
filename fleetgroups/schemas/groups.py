"""
Pydantic schemas for groups, member resources, relations and memberships.

These are the values stores accept and return, plus the request bodies
used by the HTTP routes.
"""

from pydantic import BaseModel
from typing import Any, Dict, List, Optional
from datetime import datetime


class Group(BaseModel):
    """A named, org-scoped container for member resources."""
    id: str = ""
    org_id: str = ""
    owner_id: str = ""
    name: str = ""
    description: Optional[str] = None
    metadata: Dict[str, Any] = {}
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class GroupPage(BaseModel):
    """Groups matching a page request together with the full match count."""
    total: int = 0
    offset: int = 0
    limit: int = 0
    order: str = ""
    dir: str = ""
    groups: List[Group] = []


class Resource(BaseModel):
    """A member resource (thing, channel or profile) seen through its group affiliation."""
    id: str
    owner_id: str = ""
    group_id: Optional[str] = None
    name: Optional[str] = None
    metadata: Dict[str, Any] = {}


class ResourcePage(BaseModel):
    total: int = 0
    offset: int = 0
    limit: int = 0
    members: List[Resource] = []


class GroupRelation(BaseModel):
    """Binding of a member resource to a group."""
    group_id: str
    member_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class GroupMembership(BaseModel):
    """Binding of a user to a group with a role."""
    group_id: str = ""
    member_id: str = ""
    role: str = ""

    class Config:
        from_attributes = True


class GroupMembershipsPage(BaseModel):
    total: int = 0
    offset: int = 0
    limit: int = 0
    group_memberships: List[GroupMembership] = []


# Request schemas (for creating/updating)
class GroupCreate(BaseModel):
    """Schema for creating a new group."""
    org_id: str
    owner_id: str
    name: str
    description: Optional[str] = None
    metadata: Dict[str, Any] = {}


class GroupUpdate(BaseModel):
    """Schema for updating an existing group."""
    name: str
    description: Optional[str] = None
    metadata: Dict[str, Any] = {}


class MembersRequest(BaseModel):
    """Member ids to assign to or unassign from a group."""
    member_ids: List[str]


class GroupMembershipsRequest(BaseModel):
    group_memberships: List[GroupMembership]


class RemoveMembershipsRequest(BaseModel):
    member_ids: List[str]
