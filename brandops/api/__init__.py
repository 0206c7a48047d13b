"""HTTP layer (FastAPI)."""

from brandops.api.app import create_app

__all__ = ["create_app"]
