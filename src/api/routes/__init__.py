"""
API routes module.
"""

from src.api.routes.auth import router as auth_router
from src.api.routes.delayed import router as delayed_router
from src.api.routes.health import router as health_router

__all__ = ["delayed_router", "auth_router", "health_router"]
