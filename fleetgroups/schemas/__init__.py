"""
Pydantic schemas package.

This module imports all Pydantic schemas used as store values and API
request/response bodies and provides a centralized place to access them.
"""

# Page request schemas
from fleetgroups.schemas.pages import PageMetadata, PageMetadataInvites

# Group, resource and membership schemas
from fleetgroups.schemas.groups import (
    Group, GroupPage, Resource, ResourcePage, GroupRelation,
    GroupMembership, GroupMembershipsPage,
    GroupCreate, GroupUpdate, MembersRequest,
    GroupMembershipsRequest, RemoveMembershipsRequest
)

# Invite schemas
from fleetgroups.schemas.invites import (
    GroupInvite, GroupInvitesPage, GroupInviteCreate,
    DormantInvitesRequest, ActivateInvitesRequest, InviteStateUpdate
)

# Export all schemas
__all__ = [
    # Page requests
    "PageMetadata", "PageMetadataInvites",

    # Group schemas
    "Group", "GroupPage", "GroupCreate", "GroupUpdate",

    # Relation schemas
    "Resource", "ResourcePage", "GroupRelation", "MembersRequest",

    # Membership schemas
    "GroupMembership", "GroupMembershipsPage",
    "GroupMembershipsRequest", "RemoveMembershipsRequest",

    # Invite schemas
    "GroupInvite", "GroupInvitesPage", "GroupInviteCreate",
    "DormantInvitesRequest", "ActivateInvitesRequest", "InviteStateUpdate"
]
