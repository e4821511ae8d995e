"""
Shared fixtures: an isolated in-memory SQLite database per test, a
controllable clock, and small factories for groups and member resources.
"""

import os
from datetime import datetime, timedelta

# Keep the application engine off the working directory
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fleetgroups.core.database import create_tables, make_engine
from fleetgroups.crud.base import new_id
from fleetgroups.crud.groups import GroupStore
from fleetgroups.models.resources import Channel, Profile, Thing
from fleetgroups.schemas.groups import Group

T0 = datetime(2024, 1, 1, 12, 0, 0)


class FakeClock:
    """Clock returning a fixed instant that tests move forward explicitly."""

    def __init__(self, start: datetime = T0):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


@pytest.fixture
def engine():
    engine = make_engine("sqlite://", poolclass=StaticPool)
    create_tables(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def group_store(clock):
    return GroupStore(clock=clock)


@pytest.fixture
def org_id():
    return new_id()


@pytest.fixture
def owner_id():
    return new_id()


@pytest.fixture
def make_group(db, group_store, org_id, owner_id):
    """Save a group with sensible defaults and return it."""

    def _make(name=None, **fields):
        group = Group(
            id=new_id(),
            org_id=fields.pop("org_id", org_id),
            owner_id=fields.pop("owner_id", owner_id),
            name=name or f"group-{new_id()[:8]}",
            **fields,
        )
        return group_store.save(db, group)

    return _make


@pytest.fixture
def make_member(db, owner_id):
    """Insert a member resource of the given kind and return its id."""
    models = {"thing": Thing, "channel": Channel, "profile": Profile}

    def _make(kind="thing", name=None, metadata=None, **fields):
        member_id = new_id()
        db.add(models[kind](
            id=member_id,
            owner_id=fields.pop("owner_id", owner_id),
            name=name or f"{kind}-{member_id[:8]}",
            metadata_=metadata or {},
        ))
        db.commit()
        return member_id

    return _make
