"""HTTP API."""

from parcelsync.api.routes import router

__all__ = ["router"]
