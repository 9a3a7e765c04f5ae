"""Route modules."""

from .health import router as health_router
from .subtitles import router as subtitles_router

__all__ = ["health_router", "subtitles_router"]
