"""Backing-store access.

This module contains:
- Store: the interface the order console uses for persistence
- InMemoryStore for development and testing
- RestStore for the hosted backend's PostgREST API
- Profile, WebhookSetting records
"""

from src.storage.base import STAFF_ROLES, Profile, ProfileRole, Store, WebhookSetting
from src.storage.memory import InMemoryStore
from src.storage.rest import RestStore

__all__ = [
    # Records
    "Profile",
    "ProfileRole",
    "STAFF_ROLES",
    "WebhookSetting",
    # Stores
    "Store",
    "InMemoryStore",
    "RestStore",
]
