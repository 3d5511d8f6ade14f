import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import BACKEND_URL, CORS_ORIGINS, HOST, JOB_QUEUE_SIZE, LOG_LEVEL, PORT, WORKER_COUNT
from .errors import ProofOfFundsError
from .lib.keys import PartyRegistry
from .lib.store import Storage
from .routes.lender import router as lender_router
from .routes.proofs import router as proofs_router
from .routes.verifier import router as verifier_router
from .services.backend import ProvingBackend
from .services.http_backend import HttpBackend
from .services.local_backend import LocalBackend
from .services.prover import ProofService
from .services.worker import JobManager, ProofWorker, WorkerPool

logger = logging.getLogger("main")


def build_backend(registry: PartyRegistry) -> ProvingBackend:
    """Remote backend when POF_BACKEND_URL is set, in-process otherwise."""
    if BACKEND_URL:
        logger.info(f"Using remote proving backend at {BACKEND_URL}")
        return HttpBackend(BACKEND_URL)
    logger.warning("POF_BACKEND_URL not set - using in-process backend (no zero-knowledge guarantee)")
    return LocalBackend(registry)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.worker_pool.start()
    yield
    await app.state.worker_pool.stop()
    await app.state.backend.aclose()


def create_app(
    registry: Optional[PartyRegistry] = None,
    backend: Optional[ProvingBackend] = None,
    storage: Optional[Storage] = None,
    worker_count: int = WORKER_COUNT,
    queue_size: int = JOB_QUEUE_SIZE,
) -> FastAPI:
    registry = registry or PartyRegistry.default()
    storage = storage or Storage()
    backend = backend or build_backend(registry)

    app = FastAPI(title="Proof of Funds API", version="0.1.0", lifespan=lifespan)

    proof_service = ProofService(storage, backend)
    worker_pool = WorkerPool(ProofWorker(storage, proof_service), size=worker_count, queue_size=queue_size)

    app.state.registry = registry
    app.state.storage = storage
    app.state.backend = backend
    app.state.proof_service = proof_service
    app.state.worker_pool = worker_pool
    app.state.job_manager = JobManager(storage, worker_pool)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=CORS_ORIGINS != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ProofOfFundsError)
    async def proof_of_funds_error(request: Request, exc: ProofOfFundsError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        details = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}"
            for err in exc.errors()
        )
        return JSONResponse(status_code=422, content={"error": f"ValidationError: {details}"})

    app.include_router(lender_router)
    app.include_router(proofs_router)
    app.include_router(verifier_router)

    @app.get("/healthz")
    def health():
        return {"ok": True}

    return app


logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = create_app()


def run():
    import uvicorn
    uvicorn.run(app, host=HOST, port=PORT)


if __name__ == "__main__":
    run()
