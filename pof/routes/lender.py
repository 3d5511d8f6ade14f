"""
Lending bank endpoints.

POST /lb/commitment            - Sign and store a commitment for a party index
POST /lb/commitments           - Submit a commitment signed elsewhere
GET  /lb/commitments/{deal_id} - List stored commitments for a deal
"""
import logging

from fastapi import APIRouter, Depends

from ..dependencies import get_storage
from ..errors import SerializationError, SignatureInvalidError
from ..lib import codec
from ..lib.codec import SignedCommitment
from ..lib.keys import derive
from ..lib.store import Storage
from ..models.common import ErrorResponse, SignedCommitmentModel
from ..models.commitments import (
    CommitmentListResponse, CommitmentRequest, CommitmentResponse, SubmitCommitmentResponse
)

logger = logging.getLogger("lender")

router = APIRouter(
    prefix="/lb",
    tags=["lender"],
    responses={400: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)


@router.post("/commitment", response_model=CommitmentResponse)
async def create_commitment(body: CommitmentRequest, storage: Storage = Depends(get_storage)):
    """
    Sign a commitment with the key derived from bank_index and store it.

    Any index is accepted; parties outside the allow-list are rejected later,
    when a proof is attempted.
    """
    try:
        key = derive(body.bank_index)
    except ValueError as e:
        raise SerializationError(str(e)) from e

    commitment = codec.sign(key, body.amount, body.deal_id, body.buyer)
    count = await storage.add_commitment(body.deal_id, commitment)
    logger.info(f"Stored commitment from party {body.bank_index} for deal {body.deal_id} ({count} total)")

    return CommitmentResponse(signed_message=commitment.to_wire())


@router.post("/commitments", response_model=SubmitCommitmentResponse)
async def submit_commitment(body: SignedCommitmentModel, storage: Storage = Depends(get_storage)):
    commitment = SignedCommitment.from_wire(body.model_dump())
    if not codec.verify_signature(commitment):
        logger.warning(f"Rejected commitment with invalid signature for deal {commitment.terms.deal_id}")
        raise SignatureInvalidError("Commitment signature verification failed")

    deal_id = commitment.terms.deal_id
    count = await storage.add_commitment(deal_id, commitment)
    logger.info(f"Accepted submitted commitment for deal {deal_id} ({count} total)")
    return SubmitCommitmentResponse(accepted=True, deal_id=deal_id, count=count)


@router.get("/commitments/{deal_id}", response_model=CommitmentListResponse)
async def list_commitments(deal_id: str, storage: Storage = Depends(get_storage)):
    commitments = await storage.get_commitments(deal_id)
    return CommitmentListResponse(
        deal_id=deal_id,
        commitments=[c.to_wire() for c in commitments],
    )
