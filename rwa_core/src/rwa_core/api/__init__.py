"""HTTP surface of RWA-Core."""

from rwa_core.api.app import create_app

__all__ = ["create_app"]
