"""
ConfidentialReco Advisor

The single owner of all workflow state. Composes the profile registry,
the recommendation store and the decryption router behind one re-entrant
lock, so every mutation (submit, request, callback) is serialized.

Usage:
    advisor, oracle = create_local_advisor()

    profile_id = advisor.submit_plaintext_profile(150000, 10000, 10, 2)
    advisor.request_profile_decryption(profile_id)
    oracle.deliver_all()                      # oracle calls back

    rec = advisor.recommendations.for_profile(profile_id)[0]
    advisor.request_reveal(rec.id)
    oracle.deliver_all()
    advisor.get_revealed_result(rec.id)       # RevealedResult(2, 45, True)
"""

import threading
from typing import Callable, Dict, Optional, Tuple

from .confidential import ConfidentialU32, Coprocessor
from .config import CALLBACK_SELECTOR
from .engine import RecommendationEngine
from .events import EventLog
from .oracle import DecryptionOracle, LocalOracle
from .recommendations import Recommendation, RecommendationStore, RevealedResult
from .registry import Profile, ProfileRegistry
from .router import (
    AccessPolicy,
    CallbackOutcome,
    DecryptionRequestRouter,
    SubjectKind,
    allow_all,
    owner_only,
)
from .signing import OracleTrustStore
from .util import now_epoch


class ConfidentialAdvisor:
    """
    Encrypt -> request decryption -> compute -> reveal workflow.

    Access control is permissive by default: any caller may request
    decryption of any subject. Pass ``enforce_ownership=True`` to restrict
    requests to the owner recorded at submission, or supply a custom
    ``access_policy``.
    """

    def __init__(
        self,
        oracle: DecryptionOracle,
        coprocessor: Coprocessor,
        trust_store: OracleTrustStore,
        engine: Optional[RecommendationEngine] = None,
        events: Optional[EventLog] = None,
        enforce_ownership: bool = False,
        access_policy: Optional[AccessPolicy] = None,
        callback_selector: str = CALLBACK_SELECTOR,
        pending_ttl: Optional[int] = None,
        clock: Callable[[], int] = now_epoch
    ):
        self._lock = threading.RLock()
        self._oracle = oracle
        self._coprocessor = coprocessor
        self._owners: Dict[int, Optional[str]] = {}
        self.callback_selector = callback_selector

        if access_policy is None:
            access_policy = owner_only(self.owner_of) if enforce_ownership else allow_all

        self.events = events or EventLog()
        self.registry = ProfileRegistry(self.events, lock=self._lock, clock=clock)
        self.recommendations = RecommendationStore(self.registry, lock=self._lock, clock=clock)
        self.router = DecryptionRequestRouter(
            registry=self.registry,
            store=self.recommendations,
            engine=engine or RecommendationEngine(),
            oracle=oracle,
            coprocessor=coprocessor,
            trust_store=trust_store,
            events=self.events,
            lock=self._lock,
            access_policy=access_policy,
            callback_selector=callback_selector,
            pending_ttl=pending_ttl,
            clock=clock,
        )

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def submit_profile(
        self,
        encrypted_income: ConfidentialU32,
        encrypted_assets: ConfidentialU32,
        encrypted_risk_tolerance: ConfidentialU32,
        encrypted_goals: ConfidentialU32,
        owner: Optional[str] = None
    ) -> int:
        with self._lock:
            profile_id = self.registry.submit(
                encrypted_income, encrypted_assets, encrypted_risk_tolerance, encrypted_goals
            )
            self._owners[profile_id] = owner
            return profile_id

    def submit_plaintext_profile(
        self,
        income: int,
        assets: int,
        risk_tolerance: int,
        goals: int,
        owner: Optional[str] = None
    ) -> int:
        """Encrypt through the coprocessor, then submit."""
        encrypted = [
            ConfidentialU32.from_plaintext(v, self._coprocessor)
            for v in (income, assets, risk_tolerance, goals)
        ]
        return self.submit_profile(*encrypted, owner=owner)

    def get_profile(self, profile_id: int) -> Profile:
        return self.registry.get(profile_id)

    def owner_of(self, kind: SubjectKind, subject_id: int) -> Optional[str]:
        with self._lock:
            if kind == SubjectKind.RECOMMENDATION_DECRYPT:
                subject_id = self.recommendations.get(subject_id).profile_id
            return self._owners.get(subject_id)

    # ------------------------------------------------------------------
    # Decryption cycles
    # ------------------------------------------------------------------

    def request_profile_decryption(self, profile_id: int, caller: Optional[str] = None) -> int:
        return self.router.request_decrypt(profile_id, SubjectKind.PROFILE_DECRYPT, caller)

    def request_reveal(self, recommendation_id: int, caller: Optional[str] = None) -> int:
        return self.router.request_decrypt(recommendation_id, SubjectKind.RECOMMENDATION_DECRYPT, caller)

    def on_callback(self, request_id: int, cleartexts: bytes, proof: bytes) -> CallbackOutcome:
        return self.router.on_callback(request_id, cleartexts, proof)

    # ------------------------------------------------------------------
    # Recommendations
    # ------------------------------------------------------------------

    def get_recommendation(self, recommendation_id: int) -> Recommendation:
        return self.recommendations.get(recommendation_id)

    def get_revealed_result(self, recommendation_id: int) -> RevealedResult:
        return self.recommendations.get_revealed(recommendation_id)

    def is_available(self) -> bool:
        return self._oracle.is_available()


def create_local_advisor(
    oracle: Optional[LocalOracle] = None,
    quorum: Optional[int] = None,
    **kwargs
) -> Tuple[ConfidentialAdvisor, LocalOracle]:
    """Build an advisor wired to an in-process LocalOracle."""
    oracle = oracle or LocalOracle()
    advisor = ConfidentialAdvisor(oracle, oracle, oracle.trust_store(quorum), **kwargs)
    oracle.register_callback(advisor.callback_selector, advisor.on_callback)
    return advisor, oracle
