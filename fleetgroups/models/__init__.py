"""
Database models package.

This module imports all SQLAlchemy models to ensure they are
registered with the database metadata for table creation.
"""

# Import all models to register them with SQLAlchemy
from fleetgroups.models.groups import Group, GroupMembership
from fleetgroups.models.resources import (
    Thing, Channel, Profile, group_things, group_channels, group_profiles
)
from fleetgroups.models.invites import GroupInvite, DormantGroupInvite, InviteState, OPEN_STATES

# Export all models for easy importing
__all__ = [
    # Group models
    "Group",
    "GroupMembership",

    # Member resource models
    "Thing",
    "Channel",
    "Profile",
    "group_things",
    "group_channels",
    "group_profiles",

    # Invite models
    "GroupInvite",
    "DormantGroupInvite",

    # Enums
    "InviteState",
    "OPEN_STATES"
]
