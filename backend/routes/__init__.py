# Consolidated route imports
from .health import router as health_router
from .sync import router as sync_router

# Export all routers for easy importing
__all__ = [
    "health_router",
    "sync_router",
]
