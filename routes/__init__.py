"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.integrations import router as integrations_router

__all__ = [
    "integrations_router",
]
