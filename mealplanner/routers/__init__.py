from .recipes import router as recipes_router
from .health import router as health_router

__all__ = ["recipes_router", "health_router"]
