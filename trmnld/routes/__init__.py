"""FastAPI routers for the trmnld server."""

from .api import router as api_router
from .images import router as image_router

__all__ = ['api_router', 'image_router']
