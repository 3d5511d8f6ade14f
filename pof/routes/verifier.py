from fastapi import APIRouter, Depends

from ..dependencies import get_proof_service
from ..models.common import ErrorResponse
from ..models.proofs import VerifyRequest, VerifyResponse
from ..services.prover import ProofService

router = APIRouter(
    prefix="/sb",
    tags=["verifier"],
    responses={404: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)


@router.post("/verify", response_model=VerifyResponse)
async def verify_proof(body: VerifyRequest, service: ProofService = Depends(get_proof_service)):
    """Re-check the stored proof for a deal and return what it discloses."""
    output = await service.verify_deal(body.deal_id)
    return VerifyResponse(verified=True, deal_info=output.to_dict())
