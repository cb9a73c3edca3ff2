"""
HTTP Surface
============
FastAPI router exposing the auth flows.
"""

from .routes import create_auth_router, error_response, STATUS_BY_ERROR

__all__ = [
    "create_auth_router",
    "error_response",
    "STATUS_BY_ERROR",
]
