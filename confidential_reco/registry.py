"""
ConfidentialReco Profile Registry

Stores confidential financial profiles keyed by sequential id. The
registry is content-agnostic: it never inspects the encrypted values.
"""

import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from .confidential import ConfidentialU32
from .errors import not_found
from .events import EventLog, EventType
from .logging_config import audit_log
from .util import now_epoch


@dataclass(frozen=True)
class Profile:
    """Immutable confidential profile."""
    id: int
    encrypted_income: ConfidentialU32
    encrypted_assets: ConfidentialU32
    encrypted_risk_tolerance: ConfidentialU32
    encrypted_goals: ConfidentialU32
    created_at: int

    def handles(self) -> Tuple[bytes, bytes, bytes, bytes]:
        """Handles in decryption order: income, assets, risk, goals."""
        return (
            self.encrypted_income.to_opaque_handle(),
            self.encrypted_assets.to_opaque_handle(),
            self.encrypted_risk_tolerance.to_opaque_handle(),
            self.encrypted_goals.to_opaque_handle(),
        )


class ProfileRegistry:
    """
    Sequential-id table of profiles.

    Id 0 is reserved as "no value"; the first profile gets id 1.
    """

    def __init__(
        self,
        events: EventLog,
        lock: Optional[threading.RLock] = None,
        clock: Callable[[], int] = now_epoch
    ):
        self._events = events
        self._lock = lock or threading.RLock()
        self._clock = clock
        self._profiles: Dict[int, Profile] = {}
        self._next_id = 1

    def submit(
        self,
        encrypted_income: ConfidentialU32,
        encrypted_assets: ConfidentialU32,
        encrypted_risk_tolerance: ConfidentialU32,
        encrypted_goals: ConfidentialU32
    ) -> int:
        """Store a new profile and return its id."""
        fields = {
            "encrypted_income": encrypted_income,
            "encrypted_assets": encrypted_assets,
            "encrypted_risk_tolerance": encrypted_risk_tolerance,
            "encrypted_goals": encrypted_goals,
        }
        for name, value in fields.items():
            if not isinstance(value, ConfidentialU32):
                raise TypeError(f"{name} must be a ConfidentialU32, got {type(value).__name__}")

        with self._lock:
            profile_id = self._next_id
            created_at = self._clock()
            self._profiles[profile_id] = Profile(id=profile_id, created_at=created_at, **fields)
            self._next_id += 1

            self._events.emit(EventType.PROFILE_SUBMITTED, id=profile_id, timestamp=created_at)
            audit_log.profile_submitted(profile_id, created_at)
            return profile_id

    def get(self, profile_id: int) -> Profile:
        with self._lock:
            profile = self._profiles.get(profile_id) if profile_id else None
        if profile is None:
            raise not_found("profile", profile_id)
        return profile

    def exists(self, profile_id: int) -> bool:
        with self._lock:
            return bool(profile_id) and profile_id in self._profiles

    def list_ids(self) -> List[int]:
        with self._lock:
            return sorted(self._profiles)

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._profiles)
