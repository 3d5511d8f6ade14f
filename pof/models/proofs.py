from datetime import datetime
from pydantic import BaseModel, Field
from typing import Optional
from .common import U64_MAX, CommittedOutputModel

class ProofRequest(BaseModel):
    deal_id: str
    required_amount: int = Field(ge=0, le=U64_MAX)

class ProofResponse(BaseModel):
    success: bool
    verified_amount: int
    deal_info: CommittedOutputModel

class VerifyRequest(BaseModel):
    deal_id: str

class VerifyResponse(BaseModel):
    verified: bool
    deal_info: Optional[CommittedOutputModel] = None

class CreateProofJobRequest(BaseModel):
    deal_id: str
    required_amount: int = Field(ge=0, le=U64_MAX)

class CreateProofJobResponse(BaseModel):
    job_id: str

class ProofJobResponse(BaseModel):
    status: str  # pending|in_progress|completed|failed
    created_at: datetime
    updated_at: datetime
    proof: Optional[ProofResponse] = None
    error: Optional[str] = None
