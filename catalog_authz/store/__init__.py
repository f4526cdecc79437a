"""
Privilege store access.

The store is the only source of truth for grants; nothing here persists them.
"""

from catalog_authz.store.base import Grant, ListPrivilegesResponse, PrivilegeStore
from catalog_authz.store.client import ConnectionManager, ConnectionState

__all__ = ["Grant", "ListPrivilegesResponse", "PrivilegeStore", "ConnectionManager", "ConnectionState"]
