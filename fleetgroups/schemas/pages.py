"""
Page request schemas shared by every listing operation.
"""

from pydantic import BaseModel, validator
from typing import Any, Dict, List, Optional


class PageMetadata(BaseModel):
    """
    Filter, sort and pagination request.

    A limit of 0 means no limit. ``ids`` set to an empty list selects
    nothing, while ``None`` leaves the id filter off.
    """
    total: int = 0
    offset: int = 0
    limit: int = 0
    order: str = ""
    dir: str = ""
    name: str = ""
    metadata: Dict[str, Any] = {}
    ids: Optional[List[str]] = None
    owner_id: str = ""
    org_id: str = ""

    @validator("offset", "limit")
    def non_negative(cls, v):
        """Reject negative offsets and limits."""
        if v < 0:
            raise ValueError("must not be negative")
        return v

    @validator("dir")
    def lower_dir(cls, v):
        return v.lower() if v else v


class PageMetadataInvites(PageMetadata):
    """Page request for invites with an optional state filter."""
    state: str = ""
