"""Session authentication.

This module contains:
- AuthProvider: interface for the session's user and password checks
- InMemoryAuthProvider for development and testing
- RestAuthProvider for the hosted backend's auth API
"""

from src.auth.base import AuthProvider, AuthUser, InMemoryAuthProvider, hash_password
from src.auth.rest import RestAuthProvider

__all__ = [
    "AuthProvider",
    "AuthUser",
    "InMemoryAuthProvider",
    "RestAuthProvider",
    "hash_password",
]
