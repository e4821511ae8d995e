#!/usr/bin/env python3
"""
Database setup script for the Fleet Groups store.

This script initializes the database, creates all tables,
and provides options for resetting or verifying the schema.
"""

import argparse
import sys

from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError

from fleetgroups.core.database import Base, engine, create_tables, drop_tables
from fleetgroups.config.settings import settings
import fleetgroups.models  # noqa: F401  register models with metadata


def check_database_connection():
    """Check if database connection is working."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            print("✅ Database connection successful")
            return True
    except SQLAlchemyError as e:
        print(f"❌ Database connection failed: {e}")
        return False


def create_database_tables():
    """Create all database tables."""
    try:
        print("📝 Creating database tables...")
        create_tables()
        print("✅ Database tables created successfully")

        print(f"📋 Tables: {', '.join(sorted(inspect(engine).get_table_names()))}")
        return True
    except SQLAlchemyError as e:
        print(f"❌ Failed to create tables: {e}")
        return False


def reset_database():
    """Drop and recreate all database tables."""
    try:
        print("⚠️  Dropping all existing tables...")
        drop_tables()
        print("✅ Tables dropped successfully")

        print("📝 Recreating database tables...")
        create_tables()
        print("✅ Database reset completed")
        return True
    except SQLAlchemyError as e:
        print(f"❌ Failed to reset database: {e}")
        return False


def verify_tables():
    """Verify that every table declared by the models exists and is readable."""
    existing = set(inspect(engine).get_table_names())
    ok = True

    with engine.connect() as conn:
        for table_name in sorted(Base.metadata.tables):
            if table_name not in existing:
                print(f"❌ Table '{table_name}': missing")
                ok = False
                continue
            count = conn.execute(text(f"SELECT COUNT(*) FROM {table_name}")).scalar()
            print(f"✅ Table '{table_name}': {count} records")

    return ok


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Set up the Fleet Groups database.")
    parser.add_argument(
        "command",
        nargs="?",
        default="create",
        choices=["create", "reset", "verify"],
        help="create missing tables (default), drop and recreate them, or verify them",
    )
    parser.add_argument("--yes", action="store_true", help="do not ask before resetting")
    return parser.parse_args(argv)


def main(argv=None):
    """Main setup function."""
    args = parse_args(argv)

    print("🚀 Fleet Groups Database Setup")
    print("=" * 40)
    print(f"Database URL: {settings.database_url}")
    print()

    if not check_database_connection():
        print("❌ Cannot proceed without database connection")
        sys.exit(1)

    if args.command == "reset":
        print("⚠️  WARNING: This will delete all existing data!")
        if not args.yes:
            response = input("Are you sure you want to reset the database? (yes/no): ")
            if response.lower() != "yes":
                print("❌ Database reset cancelled")
                sys.exit(0)
        if not reset_database():
            sys.exit(1)

    elif args.command == "create":
        if not create_database_tables():
            print("❌ Database setup failed")
            sys.exit(1)

    print()
    print("🔍 Verifying database tables...")
    if not verify_tables():
        print("❌ Table verification failed")
        sys.exit(1)

    print("✅ Database ready")
    print("Start the API with: uvicorn fleetgroups.main:app --reload")


if __name__ == "__main__":
    main()
