"""
ConfidentialReco Oracle Signing

Decryption oracles sign every result they return. Uses Ed25519 (RFC 8032)
through PyNaCl.

Proof wire format (canonical JSON):

    {"signatures": [{"key_id": "...", "algorithm": "Ed25519", "sig": "<b64>"}]}

Each signature covers ``hashing.decryption_message(request_id, handles,
cleartexts)``. A proof is accepted when signatures from at least
``quorum`` distinct trusted keys verify.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

from .hashing import canonicalize, decryption_message
from .util import b64d, b64e

ALGORITHM = "Ed25519"


@dataclass
class OracleKeyPair:
    """Ed25519 key pair held by one oracle signer."""
    key_id: str
    signing_key: bytes
    verify_key: bytes

    def public_key_b64(self) -> str:
        return b64e(self.verify_key)

    def to_secret_dict(self) -> Dict[str, str]:
        return {"kid": self.key_id, "private_key_b64": b64e(self.signing_key)}


def generate_oracle_key(key_id: str) -> OracleKeyPair:
    """Generate a fresh Ed25519 key pair for an oracle signer."""
    sk = SigningKey.generate()
    return OracleKeyPair(key_id=key_id, signing_key=bytes(sk), verify_key=bytes(sk.verify_key))


def load_oracle_key(path: Union[str, Path]) -> OracleKeyPair:
    """Load a signer key written by ``confidential-reco keygen``."""
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    sk = SigningKey(b64d(raw["private_key_b64"]))
    return OracleKeyPair(key_id=raw["kid"], signing_key=bytes(sk), verify_key=bytes(sk.verify_key))


def verify_signature(data: bytes, signature: bytes, verify_key: bytes) -> bool:
    """Verify Ed25519 signature."""
    try:
        VerifyKey(verify_key).verify(data, signature)
        return True
    except (BadSignatureError, ValueError, TypeError):
        return False


class OracleSigner:
    """Signs decryption results with one or more oracle keys."""

    def __init__(self, key_pairs: Sequence[OracleKeyPair]):
        if not key_pairs:
            raise ValueError("At least one oracle key is required")
        self._keys = list(key_pairs)

    @property
    def key_pairs(self) -> List[OracleKeyPair]:
        return list(self._keys)

    def sign_decryption(self, request_id: int, handles: Sequence[bytes], cleartexts: bytes) -> bytes:
        """Return the proof bytes for one decryption result."""
        message = decryption_message(request_id, handles, cleartexts)
        signatures = []
        for kp in self._keys:
            sig = SigningKey(kp.signing_key).sign(message).signature
            signatures.append({"key_id": kp.key_id, "algorithm": ALGORITHM, "sig": b64e(sig)})
        return canonicalize({"signatures": signatures})


@dataclass
class ProofVerification:
    """Result of checking one oracle proof."""
    valid: bool
    reason: Optional[str] = None
    signers: List[str] = field(default_factory=list)


class OracleTrustStore:
    """
    Public keys of the oracle signers this deployment trusts.

    Trust store JSON:
        {"trust_store_id": "...", "quorum": 1, "oracle_keys": {key_id: pub_b64}}
    """

    def __init__(self, oracle_keys: Dict[str, str], quorum: int = 1, trust_store_id: str = "local"):
        if quorum < 1:
            raise ValueError("quorum must be at least 1")
        self.trust_store_id = trust_store_id
        self.quorum = quorum
        self._keys: Dict[str, bytes] = {kid: b64d(pub) for kid, pub in oracle_keys.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any], quorum: Optional[int] = None) -> "OracleTrustStore":
        return cls(
            oracle_keys=data.get("oracle_keys", {}),
            quorum=quorum if quorum is not None else int(data.get("quorum", 1)),
            trust_store_id=data.get("trust_store_id", "local"),
        )

    @classmethod
    def from_key_pairs(cls, key_pairs: Sequence[OracleKeyPair], quorum: int = 1) -> "OracleTrustStore":
        return cls({kp.key_id: kp.public_key_b64() for kp in key_pairs}, quorum=quorum)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trust_store_id": self.trust_store_id,
            "quorum": self.quorum,
            "oracle_keys": {kid: b64e(pub) for kid, pub in sorted(self._keys.items())},
        }

    @property
    def key_ids(self) -> List[str]:
        return sorted(self._keys)

    def verify_decryption_proof(
        self,
        request_id: int,
        handles: Sequence[bytes],
        cleartexts: bytes,
        proof: bytes
    ) -> ProofVerification:
        """
        Check that ``proof`` authenticates ``cleartexts`` for ``request_id``.

        Signatures from unknown keys, repeated key ids and signatures that
        fail to verify do not count towards the quorum. Never raises.
        """
        if not isinstance(cleartexts, (bytes, bytearray)):
            return ProofVerification(False, "cleartexts must be bytes")

        try:
            parsed = json.loads(proof)
        except (TypeError, ValueError, UnicodeDecodeError):
            return ProofVerification(False, "proof is not valid JSON")

        signatures = parsed.get("signatures") if isinstance(parsed, dict) else None
        if not isinstance(signatures, list) or not signatures:
            return ProofVerification(False, "proof carries no signatures")

        message = decryption_message(request_id, handles, cleartexts)
        signers: List[str] = []
        for entry in signatures:
            if not isinstance(entry, dict):
                continue
            kid = entry.get("key_id")
            if not isinstance(kid, str) or kid in signers or entry.get("algorithm") != ALGORITHM:
                continue
            pub = self._keys.get(kid)
            if pub is None:
                continue
            try:
                sig = b64d(entry.get("sig", ""))
            except (ValueError, TypeError, AttributeError):
                continue
            if verify_signature(message, sig, pub):
                signers.append(kid)

        if len(signers) < self.quorum:
            return ProofVerification(
                False,
                f"{len(signers)} valid oracle signatures, {self.quorum} required",
                signers,
            )
        return ProofVerification(True, signers=signers)
