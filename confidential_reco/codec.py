"""
Cleartext bundle codec.

An oracle returns decrypted values as ABI-style words: one 32-byte
big-endian unsigned word per value, in the same order as the handles that
were submitted for decryption.
"""

from typing import Sequence, Tuple

from .confidential import U32_MAX, check_u32
from .errors import MalformedPayload

WORD_SIZE = 32


def encode_cleartexts(values: Sequence[int]) -> bytes:
    """Encode u32 values as consecutive 32-byte words."""
    return b"".join(check_u32(v).to_bytes(WORD_SIZE, "big") for v in values)


def decode_cleartexts(data: bytes, arity: int) -> Tuple[int, ...]:
    """
    Decode exactly ``arity`` u32 values from a cleartext bundle.

    Raises:
        MalformedPayload: wrong type, wrong length, or a word that does not
            fit in 32 bits
    """
    if not isinstance(data, (bytes, bytearray)):
        raise MalformedPayload("cleartexts must be bytes", observed=type(data).__name__)
    expected = WORD_SIZE * arity
    if len(data) != expected:
        raise MalformedPayload(
            f"expected {arity} words ({expected} bytes), got {len(data)} bytes",
            arity=arity,
            length=len(data),
        )

    values = []
    for i in range(arity):
        word = int.from_bytes(data[i * WORD_SIZE:(i + 1) * WORD_SIZE], "big")
        if word > U32_MAX:
            raise MalformedPayload(f"word {i} exceeds u32 range", index=i)
        values.append(word)
    return tuple(values)
