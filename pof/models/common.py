from pydantic import BaseModel, Field

U64_MAX = 2**64 - 1

class DealTermsModel(BaseModel):
    amount: int = Field(ge=0, le=U64_MAX)
    deal_id: str
    buyer: str

class SignedCommitmentModel(BaseModel):
    public_key: str = Field(..., description="Compressed secp256k1 public key (hex)")
    terms: DealTermsModel
    signature: str = Field(..., description="64-byte compact r||s signature (hex)")

class CommittedOutputModel(BaseModel):
    proved_amount: int
    deal_id: str
    buyer: str

class ErrorResponse(BaseModel):
    error: str
