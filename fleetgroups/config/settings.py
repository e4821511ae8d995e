"""
Application settings and configuration management.

This module centralizes all configuration of the group relationship and
invitation subsystem using Pydantic settings for type validation and
environment variable handling.
"""

from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """
    Main application settings class.

    Uses Pydantic BaseSettings to automatically load configuration from:
    1. Environment variables
    2. .env file
    3. Default values defined here
    """

    # Database Configuration
    database_url: str = "sqlite:///./fleetgroups.db"

    # Application Configuration
    debug: bool = False
    log_level: str = "INFO"

    # API Configuration
    api_v1_str: str = "/api/v1"
    project_name: str = "Fleet Groups"

    # Relation storage strategy: "foreign_key" (one group per member)
    # or "join_table" (members may belong to several groups)
    relation_variant: str = "foreign_key"

    # Roles a group membership or invite may carry
    group_roles: List[str] = ["admin", "editor", "viewer"]

    # Invite lifetime used when the caller does not supply an expiry
    invite_ttl_hours: int = 168

    # Field limits enforced at the store boundary
    name_max_length: int = 254
    description_max_length: int = 1024

    class Config:
        """Pydantic configuration for settings loading."""
        env_file = ".env"
        case_sensitive = False


# Global settings instance
# This will be imported throughout the application for configuration access
settings = Settings()
