"""
Member resource models: things (devices), channels and profiles.

Only their group affiliation matters here. In the canonical layout a
resource belongs to at most one group through its own group_id column.
The join tables back the alternative layout where a resource may belong
to several groups.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, Table
from sqlalchemy.sql import func

from fleetgroups.core.database import Base
from fleetgroups.models.groups import MetadataType


class Thing(Base):
    """A device registered within an organization."""
    __tablename__ = "things"

    id = Column(String(36), primary_key=True)
    owner_id = Column(String(36), nullable=False, index=True)
    group_id = Column(String(36), ForeignKey("groups.id"), nullable=True, index=True)
    name = Column(String(1024), nullable=True)
    metadata_ = Column("metadata", MetadataType, nullable=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Thing(id='{self.id}', group_id='{self.group_id}')>"


class Channel(Base):
    """A message channel things publish to."""
    __tablename__ = "channels"

    id = Column(String(36), primary_key=True)
    owner_id = Column(String(36), nullable=False, index=True)
    group_id = Column(String(36), ForeignKey("groups.id"), nullable=True, index=True)
    name = Column(String(1024), nullable=True)
    metadata_ = Column("metadata", MetadataType, nullable=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Channel(id='{self.id}', group_id='{self.group_id}')>"


class Profile(Base):
    """A configuration profile shared by things."""
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True)
    owner_id = Column(String(36), nullable=False, index=True)
    group_id = Column(String(36), ForeignKey("groups.id"), nullable=True, index=True)
    name = Column(String(1024), nullable=True)
    metadata_ = Column("metadata", MetadataType, nullable=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Profile(id='{self.id}', group_id='{self.group_id}')>"


def _relation_table(name: str, member_table: str) -> Table:
    return Table(
        name,
        Base.metadata,
        Column("group_id", String(36), ForeignKey("groups.id"), primary_key=True),
        Column("member_id", String(36), ForeignKey(f"{member_table}.id", ondelete="CASCADE"),
               primary_key=True, index=True),
        Column("created_at", DateTime, default=func.now(), nullable=False),
        Column("updated_at", DateTime, default=func.now(), nullable=False),
    )


# Association tables for the many-to-many layout
group_things = _relation_table("group_things", "things")
group_channels = _relation_table("group_channels", "channels")
group_profiles = _relation_table("group_profiles", "profiles")
