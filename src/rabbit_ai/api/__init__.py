"""HTTP API: FastAPI application, routers and dependencies."""

from rabbit_ai.api.app import create_app

__all__ = ["create_app"]
