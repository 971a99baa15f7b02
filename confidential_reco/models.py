from pydantic import BaseModel, Field
from typing import Optional

U32 = dict(ge=0, le=2 ** 32 - 1)


class ProfileSubmission(BaseModel):
    """Four 32-byte ciphertext handles, hex encoded."""
    encrypted_income: str
    encrypted_assets: str
    encrypted_risk_tolerance: str
    encrypted_goals: str
    owner: Optional[str] = None


class PlaintextProfileSubmission(BaseModel):
    income: int = Field(**U32)
    assets: int = Field(**U32)
    risk_tolerance: int = Field(**U32)
    goals: int = Field(**U32)
    owner: Optional[str] = None


class DecryptionRequestBody(BaseModel):
    caller: Optional[str] = None


class OracleCallback(BaseModel):
    request_id: int = Field(ge=0)
    cleartexts: str
    proof_b64: str
