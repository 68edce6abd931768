"""JSON API for creating and inspecting links."""

from .routes import router as api_router

__all__ = ["api_router"]
