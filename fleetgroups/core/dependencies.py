"""
FastAPI dependency injection functions.

This module provides dependency functions that can be injected into
FastAPI route handlers for database sessions and stores.
"""

import json
from typing import Generator, Optional

from fastapi import HTTPException, Path, Query, status
from sqlalchemy.orm import Session

from fleetgroups.core.database import get_db
from fleetgroups.crud.relations import RelationStore, ResourceKind, new_relation_store
from fleetgroups.schemas.pages import PageMetadata


# Re-export database dependency
def get_database() -> Generator[Session, None, None]:
    """
    FastAPI dependency for database session.

    Yields:
        Session: SQLAlchemy database session
    """
    yield from get_db()


def get_relation_store(kind: ResourceKind = Path(..., description="Member resource kind")) -> RelationStore:
    """
    FastAPI dependency resolving the relation store for the kind in the path.

    Returns:
        RelationStore: store using the configured relation variant
    """
    return new_relation_store(kind)


def get_page_metadata(
    offset: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(0, ge=0, description="Maximum number of records to return, 0 for all"),
    order: str = Query("", description="Sort field"),
    dir: str = Query("", description="Sort direction, asc or desc"),
    name: str = Query("", description="Case-insensitive name substring"),
    metadata: Optional[str] = Query(None, description="JSON document the metadata must contain"),
) -> PageMetadata:
    """
    FastAPI dependency building a page request from query parameters.

    Raises:
        HTTPException: 400 when the metadata filter is not a JSON object
    """
    document = {}
    if metadata:
        try:
            document = json.loads(metadata)
        except ValueError:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="metadata must be valid JSON")
        if not isinstance(document, dict):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="metadata must be a JSON object")

    return PageMetadata(offset=offset, limit=limit, order=order, dir=dir, name=name, metadata=document)
