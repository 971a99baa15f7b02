"""
ConfidentialReco error taxonomy.

Every error is scoped to the single call that raised it. A raised error
means the call changed no state.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Stable error codes surfaced to callers and audit logs."""
    NOT_FOUND = "NOT_FOUND"
    UNKNOWN_REQUEST = "UNKNOWN_REQUEST"
    INVALID_PROOF = "INVALID_PROOF"
    MALFORMED_PAYLOAD = "MALFORMED_PAYLOAD"
    ALREADY_REVEALED = "ALREADY_REVEALED"
    REQUEST_ALREADY_PENDING = "REQUEST_ALREADY_PENDING"
    DUPLICATE_REQUEST_ID = "DUPLICATE_REQUEST_ID"
    UNAUTHORIZED = "UNAUTHORIZED"
    ORACLE_UNAVAILABLE = "ORACLE_UNAVAILABLE"


class ConfidentialRecoError(Exception):
    """Base class for all ConfidentialReco errors."""

    code: ErrorCode = ErrorCode.NOT_FOUND

    def __init__(self, message: str, **details: Any):
        self.message = message
        self.details = details
        super().__init__(f"{self.code.value}: {message}")

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"error": self.code.value, "message": self.message}
        if self.details:
            d["details"] = self.details
        return d


class NotFound(ConfidentialRecoError):
    """Unknown profile or recommendation id (or the reserved id 0)."""
    code = ErrorCode.NOT_FOUND


class UnknownRequest(ConfidentialRecoError):
    """Callback for a request id with no live pending entry."""
    code = ErrorCode.UNKNOWN_REQUEST


class InvalidProof(ConfidentialRecoError):
    """Oracle proof failed verification."""
    code = ErrorCode.INVALID_PROOF


class MalformedPayload(ConfidentialRecoError):
    """Cleartext bundle does not decode to the expected tuple."""
    code = ErrorCode.MALFORMED_PAYLOAD


class AlreadyRevealed(ConfidentialRecoError):
    code = ErrorCode.ALREADY_REVEALED


class RequestAlreadyPending(ConfidentialRecoError):
    code = ErrorCode.REQUEST_ALREADY_PENDING


class DuplicateRequestId(ConfidentialRecoError):
    """The oracle handed out a request id it had already issued."""
    code = ErrorCode.DUPLICATE_REQUEST_ID


class Unauthorized(ConfidentialRecoError):
    code = ErrorCode.UNAUTHORIZED


class OracleUnavailable(ConfidentialRecoError):
    code = ErrorCode.ORACLE_UNAVAILABLE


def not_found(kind: str, subject_id: Optional[int]) -> NotFound:
    return NotFound(f"{kind} {subject_id} not found", subject_id=subject_id)
