"""FastAPI dependencies resolving the collaborators wired onto app.state."""
from fastapi import Request

from .lib.keys import PartyRegistry
from .lib.store import Storage
from .services.prover import ProofService
from .services.worker import JobManager


def get_storage(request: Request) -> Storage:
    return request.app.state.storage


def get_registry(request: Request) -> PartyRegistry:
    return request.app.state.registry


def get_proof_service(request: Request) -> ProofService:
    return request.app.state.proof_service


def get_job_manager(request: Request) -> JobManager:
    return request.app.state.job_manager
