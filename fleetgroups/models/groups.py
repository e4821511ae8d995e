"""
Group and group membership SQLAlchemy models.

A group is a named, organization-scoped container. Relations, memberships
and invites reference it with restricting foreign keys, so a group that is
still in use can not be deleted.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from fleetgroups.core.database import Base


# JSONB on PostgreSQL, plain JSON elsewhere
MetadataType = JSON().with_variant(JSONB(), "postgresql")


class Group(Base):
    """
    Group model representing an org-scoped container of devices,
    channels and profiles.
    """
    __tablename__ = "groups"
    __table_args__ = (
        UniqueConstraint("org_id", "name", name="uq_groups_org_id_name"),
    )

    # Primary identification
    id = Column(String(36), primary_key=True)
    org_id = Column(String(36), nullable=False, index=True)
    owner_id = Column(String(36), nullable=False, index=True)

    # Descriptive attributes
    name = Column(String(254), nullable=False)
    description = Column(String(1024), nullable=True)

    # "metadata" is reserved on declarative classes
    metadata_ = Column("metadata", MetadataType, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Group(id='{self.id}', name='{self.name}', org_id='{self.org_id}')>"


class GroupMembership(Base):
    """Binding of a user to a group with a role."""
    __tablename__ = "group_memberships"

    member_id = Column(String(36), primary_key=True)
    group_id = Column(String(36), ForeignKey("groups.id"), primary_key=True, index=True)
    role = Column(String(15), nullable=False)

    def __repr__(self):
        return f"<GroupMembership(member_id='{self.member_id}', group_id='{self.group_id}', role='{self.role}')>"
