"""
ConfidentialReco

Version: 0.1.0
License: Apache 2.0

Privacy-preserving financial recommendations over confidential values.

Profiles are submitted as opaque encrypted handles. Nothing is computed on
them until an external oracle decrypts them and signs the result; the
signed callback is verified, consumed exactly once, and only then turned
into a recommendation. The recommendation itself stays confidential until
a second, independent decryption reveals it, at most once.

    encrypt -> request decryption -> compute -> request reveal -> reveal

Usage:
    from confidential_reco import create_local_advisor

    advisor, oracle = create_local_advisor()

    profile_id = advisor.submit_plaintext_profile(
        income=150000, assets=10000, risk_tolerance=10, goals=2
    )
    advisor.request_profile_decryption(profile_id)
    outcome = oracle.deliver_all()[0]

    advisor.request_reveal(outcome.recommendation_id)
    oracle.deliver_all()

    result = advisor.get_revealed_result(outcome.recommendation_id)
    # RevealedResult(product_id=2, match_score=45, is_revealed=True)
"""

__version__ = "0.1.0"
__license__ = "Apache-2.0"

# Confidential values
from .confidential import ConfidentialU32, Coprocessor, check_u32, U32_MAX

# Codec and hashing
from .codec import encode_cleartexts, decode_cleartexts
from .hashing import canonicalize, sha256_hash, decryption_message, chain_entry_hash

# Errors
from .errors import (
    ErrorCode,
    ConfidentialRecoError,
    NotFound,
    UnknownRequest,
    InvalidProof,
    MalformedPayload,
    AlreadyRevealed,
    RequestAlreadyPending,
    DuplicateRequestId,
    Unauthorized,
    OracleUnavailable,
)

# Events
from .events import Event, EventLog, EventType, verify_chain

# Signing
from .signing import (
    OracleKeyPair,
    OracleSigner,
    OracleTrustStore,
    ProofVerification,
    generate_oracle_key,
    load_oracle_key,
    verify_signature,
)

# Oracle
from .oracle import DecryptionOracle, LocalOracle, GatewayOracle, OracleRequest

# Registry, engine, store
from .registry import Profile, ProfileRegistry
from .engine import (
    RecommendationEngine,
    FinancialProduct,
    PRODUCT_CATALOG,
    compute,
    lookup_product,
)
from .recommendations import Recommendation, RevealedResult, RecommendationStore

# Router
from .router import (
    DecryptionRequestRouter,
    PendingRequest,
    CallbackOutcome,
    SubjectKind,
    RequestState,
    AccessPolicy,
    allow_all,
    owner_only,
)

# Facade
from .advisor import ConfidentialAdvisor, create_local_advisor


__all__ = [
    "__version__",

    # Confidential values
    "ConfidentialU32",
    "Coprocessor",
    "check_u32",
    "U32_MAX",

    # Codec and hashing
    "canonicalize",
    "encode_cleartexts",
    "decode_cleartexts",
    "sha256_hash",
    "decryption_message",
    "chain_entry_hash",

    # Errors
    "ErrorCode",
    "ConfidentialRecoError",
    "NotFound",
    "UnknownRequest",
    "InvalidProof",
    "MalformedPayload",
    "AlreadyRevealed",
    "RequestAlreadyPending",
    "DuplicateRequestId",
    "Unauthorized",
    "OracleUnavailable",

    # Events
    "Event",
    "EventLog",
    "EventType",
    "verify_chain",

    # Signing
    "OracleKeyPair",
    "OracleSigner",
    "OracleTrustStore",
    "ProofVerification",
    "generate_oracle_key",
    "load_oracle_key",
    "verify_signature",

    # Oracle
    "DecryptionOracle",
    "LocalOracle",
    "GatewayOracle",
    "OracleRequest",

    # Registry, engine, store
    "Profile",
    "ProfileRegistry",
    "RecommendationEngine",
    "FinancialProduct",
    "PRODUCT_CATALOG",
    "compute",
    "lookup_product",
    "Recommendation",
    "RevealedResult",
    "RecommendationStore",

    # Router
    "DecryptionRequestRouter",
    "PendingRequest",
    "CallbackOutcome",
    "SubjectKind",
    "RequestState",
    "AccessPolicy",
    "allow_all",
    "owner_only",

    # Facade
    "ConfidentialAdvisor",
    "create_local_advisor",
]
