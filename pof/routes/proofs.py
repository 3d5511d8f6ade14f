"""
Buyer bank proof endpoints.

POST /bb/proof               - Prove synchronously for a deal
POST /proofs/async           - Start a proof job, returns job_id
GET  /proofs/async/{job_id}  - Poll a proof job
"""
import logging

from fastapi import APIRouter, Depends

from ..dependencies import get_job_manager, get_proof_service
from ..errors import JobNotFoundError
from ..models.common import ErrorResponse
from ..models.proofs import (
    CreateProofJobRequest, CreateProofJobResponse, ProofJobResponse, ProofRequest, ProofResponse
)
from ..services.prover import ProofService
from ..services.worker import JobManager

logger = logging.getLogger("proofs")

router = APIRouter(
    tags=["proofs"],
    responses={code: {"model": ErrorResponse} for code in (404, 409, 422, 502, 503)},
)


@router.post("/bb/proof", response_model=ProofResponse)
async def create_proof(body: ProofRequest, service: ProofService = Depends(get_proof_service)):
    logger.info(f"Handling proof request for deal {body.deal_id}")
    output = await service.prove_deal(body.deal_id, body.required_amount)
    return ProofResponse(
        success=True,
        verified_amount=output.proved_amount,
        deal_info=output.to_dict(),
    )


@router.post("/proofs/async", response_model=CreateProofJobResponse)
async def create_proof_job(body: CreateProofJobRequest, jobs: JobManager = Depends(get_job_manager)):
    job = await jobs.create(body.deal_id, body.required_amount)
    return CreateProofJobResponse(job_id=job.id)


@router.get("/proofs/async/{job_id}", response_model=ProofJobResponse, response_model_exclude_none=True)
async def get_proof_job(job_id: str, jobs: JobManager = Depends(get_job_manager)):
    job = await jobs.get(job_id)
    if job is None:
        raise JobNotFoundError(f"Proof job not found: {job_id}")

    proof = None
    if job.result is not None:
        proof = ProofResponse(
            success=True,
            verified_amount=job.result.proved_amount,
            deal_info=job.result.to_dict(),
        )
    return ProofJobResponse(
        status=job.status.value,
        created_at=job.created_at,
        updated_at=job.updated_at,
        proof=proof,
        error=job.error,
    )
