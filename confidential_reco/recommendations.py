"""
ConfidentialReco Recommendation Store

Recommendations are created only from an authenticated profile decryption.
Each one is paired with a RevealedResult that starts confidential and
becomes plaintext-visible at most once.
"""

import threading
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional, Tuple

from .confidential import ConfidentialU32
from .engine import lookup_product
from .errors import AlreadyRevealed, not_found
from .registry import ProfileRegistry
from .util import now_epoch


@dataclass(frozen=True)
class Recommendation:
    id: int
    profile_id: int
    encrypted_product_id: ConfidentialU32
    encrypted_match_score: ConfidentialU32
    generated_at: int

    def handles(self) -> Tuple[bytes, bytes]:
        """Handles in decryption order: product id, match score."""
        return (
            self.encrypted_product_id.to_opaque_handle(),
            self.encrypted_match_score.to_opaque_handle(),
        )


@dataclass(frozen=True)
class RevealedResult:
    """Plaintext view of a recommendation; zeroed until revealed."""
    product_id: int = 0
    match_score: int = 0
    is_revealed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"is_revealed": self.is_revealed}
        if self.is_revealed:
            product = lookup_product(self.product_id)
            d["product_id"] = self.product_id
            d["match_score"] = self.match_score
            d["product"] = product.to_dict() if product else None
        return d


class RecommendationStore:
    """Sequential-id table of recommendations and their reveal state."""

    def __init__(
        self,
        registry: ProfileRegistry,
        lock: Optional[threading.RLock] = None,
        clock: Callable[[], int] = now_epoch
    ):
        self._registry = registry
        self._lock = lock or threading.RLock()
        self._clock = clock
        self._recommendations: Dict[int, Recommendation] = {}
        self._revealed: Dict[int, RevealedResult] = {}
        self._next_id = 1

    def create(
        self,
        profile_id: int,
        encrypted_product_id: ConfidentialU32,
        encrypted_match_score: ConfidentialU32
    ) -> Recommendation:
        with self._lock:
            if not self._registry.exists(profile_id):
                raise not_found("profile", profile_id)
            rec = Recommendation(
                id=self._next_id,
                profile_id=profile_id,
                encrypted_product_id=encrypted_product_id,
                encrypted_match_score=encrypted_match_score,
                generated_at=self._clock(),
            )
            self._recommendations[rec.id] = rec
            self._revealed[rec.id] = RevealedResult()
            self._next_id += 1
            return rec

    def get(self, recommendation_id: int) -> Recommendation:
        with self._lock:
            rec = self._recommendations.get(recommendation_id) if recommendation_id else None
        if rec is None:
            raise not_found("recommendation", recommendation_id)
        return rec

    def get_revealed(self, recommendation_id: int) -> RevealedResult:
        with self._lock:
            result = self._revealed.get(recommendation_id) if recommendation_id else None
        if result is None:
            raise not_found("recommendation", recommendation_id)
        return result

    def is_revealed(self, recommendation_id: int) -> bool:
        return self.get_revealed(recommendation_id).is_revealed

    def reveal(self, recommendation_id: int, product_id: int, match_score: int) -> RevealedResult:
        """Set the plaintext fields and flip is_revealed. Irreversible."""
        with self._lock:
            current = self.get_revealed(recommendation_id)
            if current.is_revealed:
                raise AlreadyRevealed(
                    f"recommendation {recommendation_id} already revealed",
                    recommendation_id=recommendation_id,
                )
            result = replace(current, product_id=product_id, match_score=match_score, is_revealed=True)
            self._revealed[recommendation_id] = result
            return result

    def for_profile(self, profile_id: int) -> List[Recommendation]:
        with self._lock:
            return [r for r in self._recommendations.values() if r.profile_id == profile_id]

    def list_ids(self) -> List[int]:
        with self._lock:
            return sorted(self._recommendations)

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._recommendations)
