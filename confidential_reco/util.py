"""
Utility functions for ConfidentialReco.

Provides encoding and time helpers shared by the signing, codec and
HTTP layers.
"""

import base64
import time
from datetime import datetime, timezone


def now_epoch() -> int:
    """Get current Unix timestamp as integer."""
    return int(time.time())


def utc_rfc3339(ts_epoch: int) -> str:
    """Convert Unix timestamp to RFC3339 UTC string."""
    return datetime.fromtimestamp(ts_epoch, tz=timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')


def b64e(b: bytes) -> str:
    """Base64 encode bytes to string."""
    return base64.b64encode(b).decode('ascii')


def b64d(s: str) -> bytes:
    """Base64 decode string to bytes."""
    return base64.b64decode(s.encode('ascii'), validate=True)


def hex_to_bytes(value: str) -> bytes:
    """Decode a hex string, with or without a 0x prefix."""
    if value.startswith(("0x", "0X")):
        value = value[2:]
    return bytes.fromhex(value)


def bytes_to_hex(value: bytes) -> str:
    """Encode bytes as 0x-prefixed lowercase hex."""
    return "0x" + value.hex()
