"""HTTP server for the FaaSr backend."""

from faasr_backend.server.app import create_app

__all__ = ["create_app"]
