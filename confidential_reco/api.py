"""
HTTP surface for ConfidentialReco.

Clients submit profiles and request decryptions; the oracle gateway posts
signed results to /oracle/callback. With no RECO_ORACLE_URL configured the
app runs against an in-process LocalOracle and exposes /oracle/deliver to
flush its queue.
"""

import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from .advisor import ConfidentialAdvisor, create_local_advisor
from .config import (
    CALLBACK_URL,
    ORACLE_QUORUM,
    ORACLE_TIMEOUT_SECONDS,
    ORACLE_URL,
    is_production,
    load_oracle_trust_store,
    pending_ttl,
    validate_config,
)
from .confidential import ConfidentialU32
from .errors import ConfidentialRecoError, ErrorCode
from .events import EventType
from .logging_config import get_request_id, set_request_id
from .models import (
    DecryptionRequestBody,
    OracleCallback,
    PlaintextProfileSubmission,
    ProfileSubmission,
)
from .oracle import GatewayOracle, LocalOracle
from .signing import OracleTrustStore
from .util import b64d, hex_to_bytes, utc_rfc3339

logger = logging.getLogger(__name__)

HTTP_STATUS = {
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.UNKNOWN_REQUEST: 409,
    ErrorCode.ALREADY_REVEALED: 409,
    ErrorCode.REQUEST_ALREADY_PENDING: 409,
    ErrorCode.DUPLICATE_REQUEST_ID: 409,
    ErrorCode.INVALID_PROOF: 403,
    ErrorCode.UNAUTHORIZED: 403,
    ErrorCode.MALFORMED_PAYLOAD: 422,
    ErrorCode.ORACLE_UNAVAILABLE: 503,
}


def build_advisor_from_config():
    """Return (advisor, local_oracle_or_None) according to the environment."""
    if not ORACLE_URL:
        if is_production():
            raise RuntimeError("RECO_ORACLE_URL must be set in production")
        return create_local_advisor(pending_ttl=pending_ttl())
    oracle = GatewayOracle(ORACLE_URL, CALLBACK_URL, timeout=ORACLE_TIMEOUT_SECONDS)
    trust_store = OracleTrustStore.from_dict(load_oracle_trust_store(), quorum=ORACLE_QUORUM)
    return ConfidentialAdvisor(oracle, oracle, trust_store, pending_ttl=pending_ttl()), None


def _profile_view(profile) -> dict:
    return {
        "id": profile.id,
        "encrypted_income": profile.encrypted_income.hex(),
        "encrypted_assets": profile.encrypted_assets.hex(),
        "encrypted_risk_tolerance": profile.encrypted_risk_tolerance.hex(),
        "encrypted_goals": profile.encrypted_goals.hex(),
        "created_at": utc_rfc3339(profile.created_at),
    }


def create_app(
    advisor: Optional[ConfidentialAdvisor] = None,
    local_oracle: Optional[LocalOracle] = None
) -> FastAPI:
    if advisor is None:
        advisor, local_oracle = build_advisor_from_config()

    app = FastAPI(title="ConfidentialReco")
    app.state.advisor = advisor
    app.state.local_oracle = local_oracle

    @app.middleware("http")
    async def _request_id(request: Request, call_next):
        set_request_id(request.headers.get("x-request-id"))
        response = await call_next(request)
        response.headers["x-request-id"] = get_request_id()
        return response

    @app.exception_handler(ConfidentialRecoError)
    async def _domain_error(request: Request, exc: ConfidentialRecoError):
        logger.warning("%s on %s: %s", exc.code.value, request.url.path, exc.message)
        return JSONResponse(status_code=HTTP_STATUS.get(exc.code, 400), content=exc.to_dict())

    @app.get("/health")
    def health():
        available = advisor.is_available()
        body = {
            "status": "ok" if available else "degraded",
            "oracle_available": available,
            "config": validate_config(),
        }
        return JSONResponse(status_code=200 if available else 503, content=body)

    @app.post("/profiles")
    def submit_profile(req: ProfileSubmission):
        try:
            handles = [
                ConfidentialU32.from_hex(h)
                for h in (req.encrypted_income, req.encrypted_assets,
                          req.encrypted_risk_tolerance, req.encrypted_goals)
            ]
        except ValueError as e:
            raise HTTPException(422, f"INVALID_HANDLE: {e}")
        profile_id = advisor.submit_profile(*handles, owner=req.owner)
        return {"profile_id": profile_id}

    @app.post("/profiles/plaintext")
    def submit_plaintext_profile(req: PlaintextProfileSubmission):
        profile_id = advisor.submit_plaintext_profile(
            req.income, req.assets, req.risk_tolerance, req.goals, owner=req.owner
        )
        return {"profile_id": profile_id}

    @app.get("/profiles/{profile_id}")
    def get_profile(profile_id: int):
        profile = advisor.get_profile(profile_id)
        view = _profile_view(profile)
        view["recommendation_ids"] = [r.id for r in advisor.recommendations.for_profile(profile_id)]
        return view

    @app.post("/profiles/{profile_id}/decrypt")
    def request_profile_decryption(profile_id: int, body: Optional[DecryptionRequestBody] = None):
        caller = body.caller if body else None
        request_id = advisor.request_profile_decryption(profile_id, caller=caller)
        return {"request_id": request_id, "subject_id": profile_id}

    @app.get("/recommendations/{recommendation_id}")
    def get_recommendation(recommendation_id: int):
        rec = advisor.get_recommendation(recommendation_id)
        return {
            "id": rec.id,
            "profile_id": rec.profile_id,
            "encrypted_product_id": rec.encrypted_product_id.hex(),
            "encrypted_match_score": rec.encrypted_match_score.hex(),
            "generated_at": utc_rfc3339(rec.generated_at),
            "result": advisor.get_revealed_result(recommendation_id).to_dict(),
        }

    @app.post("/recommendations/{recommendation_id}/reveal")
    def request_reveal(recommendation_id: int, body: Optional[DecryptionRequestBody] = None):
        caller = body.caller if body else None
        request_id = advisor.request_reveal(recommendation_id, caller=caller)
        return {"request_id": request_id, "subject_id": recommendation_id}

    @app.post("/oracle/callback")
    def oracle_callback(req: OracleCallback):
        try:
            cleartexts = hex_to_bytes(req.cleartexts)
            proof = b64d(req.proof_b64)
        except ValueError as e:
            raise HTTPException(422, f"MALFORMED_CALLBACK: {e}")
        outcome = advisor.on_callback(req.request_id, cleartexts, proof)
        return {
            "request_id": outcome.request_id,
            "kind": outcome.kind.value,
            "recommendation_id": outcome.recommendation_id,
            "revealed": outcome.revealed is not None,
        }

    @app.post("/oracle/deliver")
    def deliver_local():
        if local_oracle is None:
            raise HTTPException(404, "NO_LOCAL_ORACLE")
        delivered = local_oracle.deliver_all()
        return {"delivered": len(delivered)}

    @app.get("/events")
    def events(event_type: Optional[EventType] = None, since_seq: int = 0):
        return [e.to_dict() for e in advisor.events.query(event_type=event_type, since_seq=since_seq)]

    return app
