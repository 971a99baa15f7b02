"""
ConfidentialReco Confidential Values

A ConfidentialU32 is an opaque 32-byte handle naming an encrypted 32-bit
unsigned integer held by an external coprocessor. The core never sees the
plaintext behind a handle; it can only hand handles to a decryption oracle.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from .util import hex_to_bytes, bytes_to_hex

HANDLE_SIZE = 32
U32_MAX = 2 ** 32 - 1


def check_u32(value: int, name: str = "value") -> int:
    """Return value unchanged if it is an int in the u32 range."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if value < 0 or value > U32_MAX:
        raise ValueError(f"{name} out of u32 range: {value}")
    return value


@dataclass(frozen=True)
class ConfidentialU32:
    """Opaque handle to an encrypted u32."""
    handle: bytes

    def __post_init__(self):
        if not isinstance(self.handle, bytes) or len(self.handle) != HANDLE_SIZE:
            raise ValueError(f"handle must be {HANDLE_SIZE} bytes")

    @classmethod
    def from_plaintext(cls, value: int, coprocessor: "Coprocessor") -> "ConfidentialU32":
        """Encrypt a plaintext u32 through the given coprocessor."""
        return coprocessor.encrypt_u32(check_u32(value))

    @classmethod
    def from_hex(cls, value: str) -> "ConfidentialU32":
        return cls(hex_to_bytes(value))

    def to_opaque_handle(self) -> bytes:
        """Return the bytes32 handle for inclusion in a decryption request."""
        return self.handle

    def hex(self) -> str:
        return bytes_to_hex(self.handle)

    def __repr__(self) -> str:
        return f"ConfidentialU32({self.handle.hex()[:12]}...)"


class Coprocessor(ABC):
    """
    Abstract interface for the external encryption capability.

    Implementations own the key material; this package only stores the
    handles they return.
    """

    @abstractmethod
    def encrypt_u32(self, value: int) -> ConfidentialU32:
        """Encrypt a u32 and return its handle."""
        pass
