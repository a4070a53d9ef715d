"""
Configuration module.

Exports:
    settings: Application settings instance
    get_settings: Cached settings factory
    get_supabase_client: Cached Supabase client
    check_connection: Health check used at startup and by /health
"""

from config.settings import settings, get_settings, Settings
from config.database import (
    get_supabase_client,
    check_connection,
    StoreConnectionError,
)

__all__ = [
    "settings",
    "get_settings",
    "Settings",
    "get_supabase_client",
    "check_connection",
    "StoreConnectionError",
]
