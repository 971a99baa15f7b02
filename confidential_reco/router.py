"""
ConfidentialReco Decryption Request Router

The state machine between the core and the external decryption oracle.

Per subject and kind:

    NO_REQUEST --request_decrypt--> REQUESTED --on_callback--> RESOLVED

The router:
1. Issues decryption requests for a profile's or a recommendation's handles
2. Tracks which oracle request id belongs to which subject
3. Accepts each oracle callback at most once, and only with a valid proof
4. Dispatches authenticated plaintext to the engine or to the reveal step

CRITICAL: on_callback is called by an untrusted party. Nothing about the
caller is trusted; only the proof, checked against the oracle trust store,
establishes that the cleartexts are genuine. Every check runs before any
state is touched, so a rejected callback leaves no trace except the audit
log entry.
"""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Set, Tuple

from .codec import decode_cleartexts
from .confidential import Coprocessor
from .config import CALLBACK_SELECTOR
from .engine import RecommendationEngine
from .errors import (
    AlreadyRevealed,
    ConfidentialRecoError,
    DuplicateRequestId,
    InvalidProof,
    MalformedPayload,
    RequestAlreadyPending,
    Unauthorized,
    UnknownRequest,
)
from .events import EventLog, EventType
from .logging_config import audit_log
from .oracle import DecryptionOracle
from .recommendations import RecommendationStore, RevealedResult
from .registry import ProfileRegistry
from .signing import OracleTrustStore
from .util import now_epoch


class SubjectKind(str, Enum):
    """What a decryption request is about."""
    PROFILE_DECRYPT = "ProfileDecrypt"
    RECOMMENDATION_DECRYPT = "RecommendationDecrypt"


# Number of u32 values each kind decrypts to
ARITY = {
    SubjectKind.PROFILE_DECRYPT: 4,
    SubjectKind.RECOMMENDATION_DECRYPT: 2,
}


class RequestState(str, Enum):
    NO_REQUEST = "NO_REQUEST"
    REQUESTED = "REQUESTED"
    RESOLVED = "RESOLVED"


@dataclass(frozen=True)
class PendingRequest:
    """An issued, not yet resolved oracle request."""
    request_id: int
    subject_id: int
    kind: SubjectKind
    handles: Tuple[bytes, ...]
    requested_at: int

    def expired(self, now: int, ttl_seconds: Optional[int]) -> bool:
        return ttl_seconds is not None and now - self.requested_at > ttl_seconds

    def to_dict(self) -> Dict[str, object]:
        return {
            "request_id": self.request_id,
            "subject_id": self.subject_id,
            "kind": self.kind.value,
            "requested_at": self.requested_at,
        }


@dataclass(frozen=True)
class CallbackOutcome:
    """What an accepted callback did."""
    request_id: int
    kind: SubjectKind
    subject_id: int
    recommendation_id: int
    revealed: Optional[RevealedResult] = None


AccessPolicy = Callable[[Optional[str], SubjectKind, int], bool]


def allow_all(caller: Optional[str], kind: SubjectKind, subject_id: int) -> bool:
    """Permit every caller. This is the default policy."""
    return True


def owner_only(owner_of: Callable[[SubjectKind, int], Optional[str]]) -> AccessPolicy:
    """Build a policy that only lets a subject's recorded owner request decryption."""
    def policy(caller: Optional[str], kind: SubjectKind, subject_id: int) -> bool:
        owner = owner_of(kind, subject_id)
        return caller is not None and owner is not None and caller == owner
    return policy


class DecryptionRequestRouter:
    """
    Issues oracle requests and ingests their callbacks exactly once.

    ``pending_ttl`` (seconds) is opt-in. When set, a request older than the
    TTL stops blocking a fresh request for the same subject, and its late
    callback is rejected as unknown.

    Retired request ids are kept for the lifetime of the router so a reused
    id is always detected; that set grows with every resolved request.
    """

    def __init__(
        self,
        registry: ProfileRegistry,
        store: RecommendationStore,
        engine: RecommendationEngine,
        oracle: DecryptionOracle,
        coprocessor: Coprocessor,
        trust_store: OracleTrustStore,
        events: EventLog,
        lock: Optional[threading.RLock] = None,
        access_policy: AccessPolicy = allow_all,
        callback_selector: str = CALLBACK_SELECTOR,
        pending_ttl: Optional[int] = None,
        clock: Callable[[], int] = now_epoch
    ):
        self._registry = registry
        self._store = store
        self._engine = engine
        self._oracle = oracle
        self._coprocessor = coprocessor
        self._trust_store = trust_store
        self._events = events
        self._lock = lock or threading.RLock()
        self._access_policy = access_policy
        self._callback_selector = callback_selector
        self._pending_ttl = pending_ttl
        self._clock = clock

        self._pending: Dict[int, PendingRequest] = {}
        self._open: Dict[Tuple[SubjectKind, int], int] = {}
        self._retired: Set[int] = set()
        self._resolved_subjects: Set[Tuple[SubjectKind, int]] = set()

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def request_decrypt(self, subject_id: int, kind: SubjectKind, caller: Optional[str] = None) -> int:
        """
        Ask the oracle to decrypt a subject's confidential fields.

        Raises:
            NotFound: subject does not exist
            AlreadyRevealed: recommendation already revealed
            RequestAlreadyPending: a live request exists for this subject
            Unauthorized: access policy refused the caller
            DuplicateRequestId: the oracle reused a request id
        """
        kind = SubjectKind(kind)
        with self._lock:
            # Policy runs before any lookup on the subject
            if not self._access_policy(caller, kind, subject_id):
                raise Unauthorized(f"caller {caller!r} may not decrypt subject {subject_id}")

            handles = self._subject_handles(subject_id, kind)

            key = (kind, subject_id)
            stale_id = self._open.get(key)
            if stale_id is not None and not self._pending[stale_id].expired(self._clock(), self._pending_ttl):
                raise RequestAlreadyPending(
                    f"{kind.value} for subject {subject_id} already pending as request {stale_id}",
                    request_id=stale_id,
                )

            request_id = self._oracle.request_decryption(handles, self._callback_selector)
            if request_id in self._pending or request_id in self._retired:
                raise DuplicateRequestId(f"oracle reissued request id {request_id}", request_id=request_id)

            # The expired request is only retired once its replacement exists
            if stale_id is not None:
                self._expire(stale_id)

            self._pending[request_id] = PendingRequest(
                request_id=request_id,
                subject_id=subject_id,
                kind=kind,
                handles=handles,
                requested_at=self._clock(),
            )
            self._open[key] = request_id

            self._events.emit(EventType.DECRYPTION_REQUESTED, request_id=request_id, subject_id=subject_id)
            audit_log.decryption_requested(request_id, subject_id, kind.value)
            return request_id

    def _subject_handles(self, subject_id: int, kind: SubjectKind) -> Tuple[bytes, ...]:
        if kind == SubjectKind.PROFILE_DECRYPT:
            return self._registry.get(subject_id).handles()

        recommendation = self._store.get(subject_id)
        if self._store.is_revealed(subject_id):
            raise AlreadyRevealed(
                f"recommendation {subject_id} already revealed",
                recommendation_id=subject_id,
            )
        return recommendation.handles()

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def on_callback(self, request_id: int, cleartexts: bytes, proof: bytes) -> CallbackOutcome:
        """
        Ingest an oracle callback.

        Steps, all of which must hold before any state changes:
        1. request_id names a live pending request    -> UnknownRequest
        2. cleartexts is a byte string                -> MalformedPayload
        3. proof authenticates cleartexts for it      -> InvalidProof
        4. cleartexts decode to the expected arity    -> MalformedPayload
        5. dispatch (generate or reveal)              -> AlreadyRevealed
        6. retire the pending request
        """
        with self._lock:
            try:
                return self._process_callback(request_id, cleartexts, proof)
            except ConfidentialRecoError as e:
                audit_log.callback_rejected(request_id, e.code.value, e.message)
                raise

    def _process_callback(self, request_id: int, cleartexts: bytes, proof: bytes) -> CallbackOutcome:
        pending = self._pending.get(request_id)
        if pending is None:
            raise UnknownRequest(f"no pending request {request_id}", request_id=request_id)
        if pending.expired(self._clock(), self._pending_ttl):
            raise UnknownRequest(f"request {request_id} expired", request_id=request_id)
        if not isinstance(cleartexts, (bytes, bytearray)):
            raise MalformedPayload("cleartexts must be bytes", observed=type(cleartexts).__name__)

        verification = self._trust_store.verify_decryption_proof(
            request_id, pending.handles, cleartexts, proof
        )
        if not verification.valid:
            raise InvalidProof(verification.reason or "proof rejected", request_id=request_id)

        values = decode_cleartexts(cleartexts, ARITY[pending.kind])

        if pending.kind == SubjectKind.PROFILE_DECRYPT:
            outcome = self._generate(pending, values)
        else:
            outcome = self._reveal(pending, values)

        self._retire(pending)
        self._resolved_subjects.add((pending.kind, pending.subject_id))

        if outcome.revealed is None:
            self._events.emit(EventType.RECOMMENDATION_GENERATED, recommendation_id=outcome.recommendation_id)
            audit_log.recommendation_generated(outcome.recommendation_id, pending.subject_id)
        else:
            self._events.emit(EventType.RESULT_REVEALED, recommendation_id=outcome.recommendation_id)
            audit_log.result_revealed(outcome.recommendation_id)
        return outcome

    def _generate(self, pending: PendingRequest, values: Tuple[int, ...]) -> CallbackOutcome:
        income, assets, risk_score, goals = values
        product_id, match_score = self._engine.compute(income, assets, risk_score, goals)
        recommendation = self._store.create(
            pending.subject_id,
            self._coprocessor.encrypt_u32(product_id),
            self._coprocessor.encrypt_u32(match_score),
        )
        return CallbackOutcome(
            request_id=pending.request_id,
            kind=pending.kind,
            subject_id=pending.subject_id,
            recommendation_id=recommendation.id,
        )

    def _reveal(self, pending: PendingRequest, values: Tuple[int, ...]) -> CallbackOutcome:
        product_id, match_score = values
        # reveal() refuses a second flip before mutating anything
        revealed = self._store.reveal(pending.subject_id, product_id, match_score)
        return CallbackOutcome(
            request_id=pending.request_id,
            kind=pending.kind,
            subject_id=pending.subject_id,
            recommendation_id=pending.subject_id,
            revealed=revealed,
        )

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def _retire(self, pending: PendingRequest) -> None:
        del self._pending[pending.request_id]
        key = (pending.kind, pending.subject_id)
        if self._open.get(key) == pending.request_id:
            del self._open[key]
        self._retired.add(pending.request_id)

    def _expire(self, request_id: int) -> None:
        pending = self._pending[request_id]
        self._retire(pending)
        audit_log.security_event(
            "pending_request_expired",
            severity="low",
            oracle_request_id=request_id,
            subject_id=pending.subject_id,
            kind=pending.kind.value,
        )

    def expire_pending(self) -> int:
        """Retire every expired pending request. Returns count removed."""
        with self._lock:
            now = self._clock()
            expired = [rid for rid, p in self._pending.items() if p.expired(now, self._pending_ttl)]
            for rid in expired:
                self._expire(rid)
            return len(expired)

    def get_pending(self, request_id: int) -> Optional[PendingRequest]:
        with self._lock:
            return self._pending.get(request_id)

    def pending_requests(self) -> List[PendingRequest]:
        with self._lock:
            return sorted(self._pending.values(), key=lambda p: p.request_id)

    def state(self, subject_id: int, kind: SubjectKind) -> RequestState:
        kind = SubjectKind(kind)
        with self._lock:
            open_id = self._open.get((kind, subject_id))
            if open_id is not None and not self._pending[open_id].expired(self._clock(), self._pending_ttl):
                return RequestState.REQUESTED
            if (kind, subject_id) in self._resolved_subjects:
                return RequestState.RESOLVED
            return RequestState.NO_REQUEST
