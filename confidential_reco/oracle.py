"""
ConfidentialReco Decryption Oracle

The oracle is the external, asynchronous party that decrypts confidential
handles and signs the result. This module defines the outbound interface
the core depends on, and a LocalOracle that plays both the coprocessor and
the oracle role in-process for development, tests and demos.

Flow:
    core  --request_decryption(handles, selector)-->  oracle   (returns id)
    ...   later, possibly never, possibly out of order ...
    oracle --callback(request_id, cleartexts, proof)-->  core
"""

import secrets
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import requests

from .codec import encode_cleartexts
from .confidential import ConfidentialU32, Coprocessor
from .errors import OracleUnavailable, UnknownRequest
from .signing import OracleKeyPair, OracleSigner, OracleTrustStore, generate_oracle_key
from .util import now_epoch

CallbackHandler = Callable[[int, bytes, bytes], Any]


class DecryptionOracle(ABC):
    """
    Outbound interface to a decryption oracle.

    Contract: every returned request id is globally unique and is echoed
    back verbatim in the matching callback.
    """

    @abstractmethod
    def request_decryption(self, handles: Sequence[bytes], callback_selector: str) -> int:
        """Submit handles for decryption and return the oracle request id."""
        pass

    def is_available(self) -> bool:
        return True


@dataclass(frozen=True)
class OracleRequest:
    request_id: int
    handles: Tuple[bytes, ...]
    callback_selector: str
    requested_at: int


class LocalOracle(Coprocessor, DecryptionOracle):
    """
    In-process coprocessor and decryption oracle.

    WARNING: Not suitable for production.
    - Plaintexts are held in memory next to their handles
    - Signing keys live in the same process as the verifier
    - Issued requests and plaintexts are never evicted

    Requests are queued until ``deliver`` or ``deliver_all`` is called, so
    tests control exactly when, whether and in which order callbacks run.
    """

    def __init__(
        self,
        key_pairs: Optional[Sequence[OracleKeyPair]] = None,
        first_request_id: int = 1
    ):
        self._signer = OracleSigner(key_pairs or [generate_oracle_key("oracle-local-01")])
        self._plaintexts: Dict[bytes, int] = {}
        self._issued: Dict[int, OracleRequest] = {}
        self._queue: List[int] = []
        self._callbacks: Dict[str, CallbackHandler] = {}
        self._next_request_id = first_request_id
        self._lock = threading.Lock()
        self.available = True

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    @property
    def key_pairs(self) -> List[OracleKeyPair]:
        return self._signer.key_pairs

    def trust_store(self, quorum: Optional[int] = None) -> OracleTrustStore:
        """Trust store holding this oracle's public keys."""
        keys = self._signer.key_pairs
        return OracleTrustStore.from_key_pairs(keys, quorum=quorum or len(keys))

    def register_callback(self, callback_selector: str, handler: CallbackHandler) -> None:
        with self._lock:
            self._callbacks[callback_selector] = handler

    def is_available(self) -> bool:
        return self.available

    # ------------------------------------------------------------------
    # Coprocessor
    # ------------------------------------------------------------------

    def encrypt_u32(self, value: int) -> ConfidentialU32:
        with self._lock:
            handle = secrets.token_bytes(32)
            while handle in self._plaintexts:
                handle = secrets.token_bytes(32)
            self._plaintexts[handle] = value
        return ConfidentialU32(handle)

    # ------------------------------------------------------------------
    # Oracle
    # ------------------------------------------------------------------

    def request_decryption(self, handles: Sequence[bytes], callback_selector: str) -> int:
        if not self.available:
            raise OracleUnavailable("oracle is not accepting requests")
        with self._lock:
            unknown = [h.hex() for h in handles if h not in self._plaintexts]
            if unknown:
                raise ValueError(f"Unknown ciphertext handles: {unknown}")
            request_id = self._next_request_id
            self._next_request_id += 1
            self._issued[request_id] = OracleRequest(
                request_id=request_id,
                handles=tuple(handles),
                callback_selector=callback_selector,
                requested_at=now_epoch(),
            )
            self._queue.append(request_id)
            return request_id

    def pending_request_ids(self) -> List[int]:
        with self._lock:
            return list(self._queue)

    def get_request(self, request_id: int) -> OracleRequest:
        with self._lock:
            request = self._issued.get(request_id)
        if request is None:
            raise UnknownRequest(f"oracle never issued request {request_id}", request_id=request_id)
        return request

    def decrypt(self, request_id: int) -> Tuple[bytes, bytes]:
        """
        Produce the (cleartexts, proof) pair for an issued request.

        Works for already-delivered requests too, which is how tests
        replay a genuine callback.
        """
        request = self.get_request(request_id)
        with self._lock:
            values = [self._plaintexts[h] for h in request.handles]
        cleartexts = encode_cleartexts(values)
        proof = self._signer.sign_decryption(request_id, request.handles, cleartexts)
        return cleartexts, proof

    def deliver(self, request_id: int) -> Any:
        """
        Decrypt, sign and invoke the registered callback for one request.

        The request leaves the queue before the callback runs. Errors raised
        by the callback propagate to the caller; retrying is up to them.
        """
        request = self.get_request(request_id)
        with self._lock:
            if request_id in self._queue:
                self._queue.remove(request_id)
            handler = self._callbacks.get(request.callback_selector)
        if handler is None:
            raise RuntimeError(f"No callback registered for selector {request.callback_selector!r}")
        cleartexts, proof = self.decrypt(request_id)
        return handler(request_id, cleartexts, proof)

    def deliver_all(self) -> List[Any]:
        """Deliver every queued request in issue order."""
        return [self.deliver(rid) for rid in self.pending_request_ids()]

    def drop(self, request_id: int) -> None:
        """Forget a queued request without delivering it (lost callback)."""
        with self._lock:
            if request_id in self._queue:
                self._queue.remove(request_id)


class GatewayOracle(Coprocessor, DecryptionOracle):
    """
    HTTP client for a remote coprocessor/oracle gateway.

    Endpoints:
        POST {base}/encrypt  {"value": int}                     -> {"handle": hex}
        POST {base}/decrypt  {"handles": [hex], "callback_selector": str,
                              "callback_url": str}             -> {"request_id": int}
        GET  {base}/health                                      -> 200 when ready

    The gateway later POSTs the signed result to ``callback_url``.
    """

    def __init__(self, base_url: str, callback_url: str, timeout: float = 5.0, session=None):
        self._base = base_url.rstrip("/")
        self._callback_url = callback_url
        self._timeout = timeout
        self._session = session or requests.Session()

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            r = self._session.post(f"{self._base}{path}", json=payload, timeout=self._timeout)
            r.raise_for_status()
            return r.json()
        except requests.RequestException as e:
            raise OracleUnavailable(f"oracle gateway {path} failed: {e}") from e

    def encrypt_u32(self, value: int) -> ConfidentialU32:
        body = self._post("/encrypt", {"value": value})
        return ConfidentialU32.from_hex(body["handle"])

    def request_decryption(self, handles: Sequence[bytes], callback_selector: str) -> int:
        body = self._post("/decrypt", {
            "handles": [h.hex() for h in handles],
            "callback_selector": callback_selector,
            "callback_url": self._callback_url,
        })
        return int(body["request_id"])

    def is_available(self) -> bool:
        try:
            r = self._session.get(f"{self._base}/health", timeout=self._timeout)
            return r.status_code == 200
        except requests.RequestException:
            return False
