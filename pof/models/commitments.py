from pydantic import BaseModel, Field
from typing import List
from .common import U64_MAX, SignedCommitmentModel

class CommitmentRequest(BaseModel):
    bank_index: int = Field(ge=0, le=U64_MAX)
    amount: int = Field(ge=0, le=U64_MAX)
    deal_id: str = "DEAL123"
    buyer: str = "buyer123"

class CommitmentResponse(BaseModel):
    signed_message: SignedCommitmentModel

class SubmitCommitmentResponse(BaseModel):
    accepted: bool
    deal_id: str
    count: int

class CommitmentListResponse(BaseModel):
    deal_id: str
    commitments: List[SignedCommitmentModel]
