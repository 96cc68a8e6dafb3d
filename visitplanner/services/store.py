"""
Protocols describing the collaborators the services depend on.
"""

from __future__ import annotations

from typing import Any, ContextManager, Dict, List, Mapping, Optional, Protocol, Sequence

from ..domain.models import Entity


class VisitStore(Protocol):
    """Generic record store. Every method raises StoreError on failure."""

    def find(
        self,
        entity: Entity,
        filters: Mapping[str, Any] | None = None,
        order_by: Sequence[str] = (),
    ) -> List[Dict[str, Any]]:
        """Return records whose columns equal (or, for lists, are in) the filters."""

    def find_one(
        self,
        entity: Entity,
        filters: Mapping[str, Any] | None = None,
    ) -> Optional[Dict[str, Any]]:
        """Return one matching record or None."""

    def insert(self, entity: Entity, record: Mapping[str, Any]) -> Dict[str, Any]:
        """Store a record and return it with its id."""

    def insert_many(self, entity: Entity, records: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        """Store several records in one transaction."""

    def update(self, entity: Entity, record_id: str, patch: Mapping[str, Any]) -> bool:
        """Apply a partial update."""

    def delete(self, entity: Entity, filters: Mapping[str, Any]) -> int:
        """Delete matching records."""

    def transaction(self) -> ContextManager[None]:
        """Serialize the enclosed reads and writes against other writers."""


class EntitlementProvider(Protocol):
    """Answers whether a caregiver account is on the premium plan."""

    def is_premium(self, user_id: str) -> bool:
        """Return True for premium accounts."""
