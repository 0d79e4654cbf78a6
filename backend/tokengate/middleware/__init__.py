"""Middleware module for Tokengate."""

from tokengate.middleware.bearer_auth import BearerAuthMiddleware, is_protected_path

__all__ = [
    "BearerAuthMiddleware",
    "is_protected_path",
]
