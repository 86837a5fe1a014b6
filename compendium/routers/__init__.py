"""API routers."""

from .laws import router as laws_router

__all__ = ["laws_router"]
