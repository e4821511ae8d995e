"""
Database configuration and setup for SQLAlchemy.

This module handles database connection management, session creation,
transaction scoping and provides the foundation for all store operations.
"""

from contextlib import contextmanager
from sqlalchemy import create_engine, event, MetaData
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from typing import Generator, Iterator

from fleetgroups.config.settings import settings


# Constraint names are stable so integrity errors can be traced to their table
naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def make_engine(url: str, **kwargs) -> Engine:
    """
    Create an engine for the given URL.

    SQLite connections get foreign key enforcement switched on, otherwise
    the group deletion guard would silently pass.
    """
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})

    engine = create_engine(url, **kwargs)

    if engine.dialect.name == "sqlite":
        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_conn, conn_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


# Create SQLAlchemy engine
engine = make_engine(
    settings.database_url,
    echo=settings.debug  # Log SQL queries when in debug mode
)

# Create SessionLocal class for database sessions
# Each instance will be a database session
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for all SQLAlchemy models
# All models will inherit from this base class
Base = declarative_base(metadata=MetaData(naming_convention=naming_convention))


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency function to get database session.

    This function creates a new database session for each request
    and ensures it's properly closed after the request completes.

    Yields:
        Session: SQLAlchemy database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """
    Run a block of statements as one unit of work.

    Commits when the block completes and rolls back on any exception,
    including interrupts, before re-raising it.
    """
    try:
        yield db
        db.commit()
    except BaseException:
        db.rollback()
        raise


def create_tables(bind: Engine = None):
    """
    Create all database tables.

    This function creates all tables defined by SQLAlchemy models
    that inherit from Base. Used for initial database setup.
    """
    import fleetgroups.models  # noqa: F401  register models with metadata

    Base.metadata.create_all(bind=bind or engine)


def drop_tables(bind: Engine = None):
    """
    Drop all database tables.

    This function drops all tables defined by SQLAlchemy models.
    Useful for testing or resetting the database.
    """
    import fleetgroups.models  # noqa: F401

    Base.metadata.drop_all(bind=bind or engine)
