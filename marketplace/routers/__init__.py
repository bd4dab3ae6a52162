"""
API routers for v1 endpoints.
"""

from marketplace.routers.admin_listings import router as admin_listings_router
from marketplace.routers.cron import router as cron_router

__all__ = [
    "admin_listings_router",
    "cron_router",
]
