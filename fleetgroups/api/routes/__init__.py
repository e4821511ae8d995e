"""
API routes package.

This package contains all FastAPI route modules organized by domain.
Each module maps requests onto one of the stores.
"""

# Import all route modules for easy access
from fleetgroups.api.routes import groups, members, memberships, invites

__all__ = [
    "groups",
    "members",
    "memberships",
    "invites",
]
