"""API routers package."""

from .plugin_execution import router as plugin_execution_router
from .plugins import router as plugins_router

__all__ = ["plugin_execution_router", "plugins_router"]
