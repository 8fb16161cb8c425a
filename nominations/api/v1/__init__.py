"""
API v1 package.

Contains versioned API routes for nominator registration and the dashboard.
"""

from nominations.api.v1.routes import router

__all__ = ["router"]
