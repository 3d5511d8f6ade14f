"""
Pytest fixtures for the proof-of-funds test suite.
"""
import asyncio

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from pof.lib import codec
from pof.lib.jobs import ProofJobStatus
from pof.lib.keys import PartyRegistry, derive
from pof.lib.store import Storage
from pof.main import create_app
from pof.services.local_backend import LocalBackend

TEST_SECRET = "pof-test-receipt-secret-0123456789abcdef0123456789abcdef"

DEAL_ID = "DEAL123"
BUYER = "buyer123"


class CountingBackend(LocalBackend):
    """LocalBackend that records how often it is called."""

    def __init__(self, registry, secret=TEST_SECRET):
        super().__init__(registry, secret=secret)
        self.prove_calls = 0
        self.verify_calls = 0
        self.proved_inputs = []

    async def prove(self, statement_id, inputs):
        self.prove_calls += 1
        self.proved_inputs.append(inputs)
        return await super().prove(statement_id, inputs)

    async def verify(self, proof, statement_id):
        self.verify_calls += 1
        return await super().verify(proof, statement_id)


@pytest.fixture
def registry():
    return PartyRegistry([0, 1])


@pytest.fixture
def allowed_keys(registry):
    return registry.allowed_keys()


@pytest.fixture
def backend(registry):
    return CountingBackend(registry)


@pytest.fixture
def storage():
    return Storage()


@pytest.fixture
def sign_commitment():
    """Factory: sign_commitment(index, amount, deal_id=DEAL123, buyer=buyer123)."""
    def _sign(index: int, amount: int, deal_id: str = DEAL_ID, buyer: str = BUYER):
        return codec.sign(derive(index), amount, deal_id, buyer)
    return _sign


@pytest.fixture
def wait_for_job():
    """Poll a JobManager until the job reaches a terminal state."""
    async def _wait(jobs, job_id, timeout: float = 5.0):
        deadline = asyncio.get_running_loop().time() + timeout
        while True:
            job = await jobs.get(job_id)
            if job.status in (ProofJobStatus.COMPLETED, ProofJobStatus.FAILED):
                return job
            if asyncio.get_running_loop().time() > deadline:
                raise AssertionError(f"job {job_id} still {job.status.value} after {timeout}s")
            await asyncio.sleep(0.01)
    return _wait


@pytest_asyncio.fixture
async def test_app(registry, backend, storage):
    app = create_app(registry=registry, backend=backend, storage=storage, worker_count=2, queue_size=16)
    yield app
    await app.state.worker_pool.stop()


@pytest_asyncio.fixture
async def async_client(test_app):
    """Async HTTP client bound to the app (lifespan is not run; the pool starts lazily)."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
