"""
ConfidentialReco Hashing

All hashes use SHA-256 with lowercase hexadecimal output.
"""

import hashlib
import json
from typing import Any, Optional, Sequence, Union


def canonicalize(obj: Any) -> bytes:
    """
    Canonical JSON bytes: sorted keys, no whitespace, UTF-8.

    Signers and verifiers must agree on one byte representation of a
    signed message, and event hashes are taken over this form.
    """
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def sha256_hash(data: Union[bytes, str]) -> str:
    """
    Compute SHA-256 hash with a type prefix.

    Returns:
        Hash string in format "sha256:abcdef..."
    """
    if isinstance(data, str):
        data = data.encode('utf-8')

    digest = hashlib.sha256(data).hexdigest().lower()
    return f"sha256:{digest}"


def decryption_message(request_id: int, handles: Sequence[bytes], cleartexts: bytes) -> bytes:
    """
    Build the byte string an oracle signs for one decryption result.

    The message binds the request id, the exact ciphertext handles that were
    submitted, and the cleartext bundle. A signature over it cannot be
    replayed against another request or another set of handles.
    """
    message = {
        "request_id": str(request_id),
        "handles": [h.hex() for h in handles],
        "cleartexts": cleartexts.hex(),
    }
    return canonicalize(message)


def chain_entry_hash(prev_entry_hash: Optional[str], payload_hash: str) -> str:
    """
    Compute the hash chain entry hash.

    Links each audit entry to its predecessor so that removing or rewriting
    an entry breaks every hash after it.
    """
    data = (prev_entry_hash or "").encode("utf-8") + payload_hash.encode("utf-8")
    return sha256_hash(data)
