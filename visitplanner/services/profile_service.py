"""
Caregiver and baby profiles. Display-only data with no booking rules.
"""

from __future__ import annotations

from typing import Optional

from ..domain.exceptions import InvalidInput, NotFound
from ..domain.models import Baby, Entity, Profile
from .store import VisitStore

GENDERS = ("male", "female")


class ProfileService:
    """Registers caregivers and records the baby they are hosting visits for."""

    def __init__(self, store: VisitStore) -> None:
        self._store = store

    def register_caregiver(self, email: str) -> Profile:
        """Create a caregiver profile, or return the existing one for the email."""
        cleaned = (email or "").strip().lower()
        if "@" not in cleaned:
            raise InvalidInput(f"Invalid email address: {email!r}")

        existing = self._store.find_one(Entity.PROFILE, {"email": cleaned})
        if existing is not None:
            return Profile.from_record(existing)

        return Profile.from_record(self._store.insert(Entity.PROFILE, {"email": cleaned}))

    def get_caregiver(self, user_id: str) -> Profile:
        record = self._store.find_one(Entity.PROFILE, {"id": user_id})
        if record is None:
            raise NotFound("Caregiver not found.")
        return Profile.from_record(record)

    def set_baby(self, user_id: str, name: Optional[str] = None, gender: Optional[str] = None) -> Baby:
        """Create or update the caregiver's baby."""
        self.get_caregiver(user_id)

        if gender is not None:
            gender = gender.strip().lower() or None
        if gender is not None and gender not in GENDERS:
            raise InvalidInput(f"Gender must be one of {', '.join(GENDERS)}.")

        fields = {"name": (name or "").strip() or None, "gender": gender}

        with self._store.transaction():
            existing = self._store.find_one(Entity.BABY, {"user_id": user_id})
            if existing is None:
                record = self._store.insert(Entity.BABY, {"user_id": user_id, **fields})
                return Baby.from_record(record)

            self._store.update(Entity.BABY, existing["id"], fields)
            return Baby.from_record({**existing, **fields})

    def get_baby(self, user_id: str) -> Optional[Baby]:
        record = self._store.find_one(Entity.BABY, {"user_id": user_id})
        return Baby.from_record(record) if record is not None else None
