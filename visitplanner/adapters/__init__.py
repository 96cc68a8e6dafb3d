"""
Adapters layer - Persistence and entitlement integrations.
"""

from .entitlements import StaticEntitlements
from .sqlite_store import SQLiteVisitStore

__all__ = ["SQLiteVisitStore", "StaticEntitlements"]
