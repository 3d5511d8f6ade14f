"""
Tests for the proving flow, the job worker and the worker pool.
"""
import asyncio
import itertools
from datetime import datetime, timedelta, timezone

import pytest

from pof.errors import BackendError, InsufficientCommitmentsError, JobQueueFullError, ProofNotFoundError
from pof.lib import jobs
from pof.lib.jobs import ProofJob, ProofJobStatus
from pof.services.backend import ProvingBackend
from pof.services.prover import ProofService, select_pair
from pof.services.worker import JobManager, ProofWorker, WorkerPool
from pof.services.local_backend import LocalBackend


class GatedBackend(LocalBackend):
    """Blocks inside prove() until the test opens the gate."""

    def __init__(self, registry):
        super().__init__(registry, secret="gated-backend-test-secret-0123456789abcdef")
        self.proved_inputs = []
        self.entered = asyncio.Event()
        self.gate = asyncio.Event()

    async def prove(self, statement_id, inputs):
        self.entered.set()
        await self.gate.wait()
        self.proved_inputs.append(inputs)
        return await super().prove(statement_id, inputs)


class ExplodingBackend(ProvingBackend):

    async def prove(self, statement_id, inputs):
        raise RuntimeError("backend on fire")

    async def verify(self, proof, statement_id):
        raise RuntimeError("backend on fire")


async def _seed(storage, sign_commitment, amounts=(50, 30), deal_id="DEAL123"):
    for index, amount in enumerate(amounts):
        await storage.add_commitment(deal_id, sign_commitment(index, amount, deal_id=deal_id))


async def _insert_job(storage, required=60, deal_id="DEAL123"):
    return await storage.insert_job(ProofJob(deal_id=deal_id, required_amount=required))


class TestSelectPair:

    def test_takes_first_two_in_arrival_order(self, sign_commitment):
        commitments = [sign_commitment(0, 50), sign_commitment(1, 30), sign_commitment(0, 999)]
        assert select_pair(commitments) == (commitments[0], commitments[1])

    @pytest.mark.parametrize("count", [0, 1])
    def test_needs_two(self, sign_commitment, count):
        with pytest.raises(InsufficientCommitmentsError) as exc_info:
            select_pair([sign_commitment(0, 50)] * count)
        assert f"Need 2, got {count}" in str(exc_info.value)


class TestProofService:

    @pytest.mark.asyncio
    async def test_prove_and_verify_deal(self, storage, backend, sign_commitment):
        await _seed(storage, sign_commitment)
        service = ProofService(storage, backend)

        output = await service.prove_deal("DEAL123", 60)
        assert output.proved_amount == 60
        assert (await storage.get_proof("DEAL123")).output == output

        assert await service.verify_deal("DEAL123") == output
        assert backend.verify_calls == 1

    @pytest.mark.asyncio
    async def test_insufficient_funds_stores_nothing(self, storage, backend, sign_commitment):
        await _seed(storage, sign_commitment)
        service = ProofService(storage, backend)

        with pytest.raises(BackendError) as exc_info:
            await service.prove_deal("DEAL123", 90)
        assert exc_info.value.code == "InsufficientFunds"
        assert exc_info.value.status_code == 422
        assert await storage.get_proof("DEAL123") is None

    @pytest.mark.asyncio
    async def test_backend_not_called_without_two_commitments(self, storage, backend, sign_commitment):
        await storage.add_commitment("DEAL123", sign_commitment(0, 50))
        service = ProofService(storage, backend)

        with pytest.raises(InsufficientCommitmentsError):
            await service.prove_deal("DEAL123", 10)
        assert backend.prove_calls == 0

    @pytest.mark.asyncio
    async def test_verify_without_proof(self, storage, backend):
        with pytest.raises(ProofNotFoundError):
            await ProofService(storage, backend).verify_deal("DEAL123")
        assert backend.verify_calls == 0

    @pytest.mark.asyncio
    async def test_unexpected_backend_exception_becomes_backend_error(self, storage, sign_commitment):
        await _seed(storage, sign_commitment)
        service = ProofService(storage, ExplodingBackend())

        with pytest.raises(BackendError) as exc_info:
            await service.prove_deal("DEAL123", 60)
        assert exc_info.value.code == "BackendError"
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_proves_only_first_two_commitments(self, storage, backend, sign_commitment):
        await _seed(storage, sign_commitment)
        await storage.add_commitment("DEAL123", sign_commitment(0, 10**6))
        service = ProofService(storage, backend)

        with pytest.raises(BackendError) as exc_info:
            await service.prove_deal("DEAL123", 1000)
        assert exc_info.value.code == "InsufficientFunds"


class TestProofWorker:

    @pytest.mark.asyncio
    async def test_completes_job_and_stores_proof(self, storage, backend, sign_commitment):
        await _seed(storage, sign_commitment)
        job = await _insert_job(storage, required=60)

        await ProofWorker(storage, ProofService(storage, backend)).process_job(job.id)

        done = await storage.get_job(job.id)
        assert done.status == ProofJobStatus.COMPLETED
        assert done.result.proved_amount == 60
        assert done.error is None
        assert done.updated_at >= done.created_at
        assert (await storage.get_proof("DEAL123")).output == done.result

    @pytest.mark.asyncio
    async def test_processing_refreshes_updated_at(self, storage, backend, sign_commitment, monkeypatch):
        created = datetime(2026, 1, 1, tzinfo=timezone.utc)
        ticks = itertools.count(1)
        monkeypatch.setattr(jobs, "utcnow", lambda: created + timedelta(seconds=next(ticks)))
        await _seed(storage, sign_commitment)
        job = await storage.insert_job(ProofJob(deal_id="DEAL123", required_amount=60, created_at=created))

        await ProofWorker(storage, ProofService(storage, backend)).process_job(job.id)

        done = await storage.get_job(job.id)
        assert done.status == ProofJobStatus.COMPLETED
        assert done.created_at == created
        # One tick for in_progress, one for completed
        assert done.updated_at == created + timedelta(seconds=2)

    @pytest.mark.asyncio
    async def test_not_enough_commitments_fails_without_backend_call(self, storage, backend, sign_commitment):
        await storage.add_commitment("DEAL123", sign_commitment(0, 50))
        job = await _insert_job(storage)

        await ProofWorker(storage, ProofService(storage, backend)).process_job(job.id)

        failed = await storage.get_job(job.id)
        assert failed.status == ProofJobStatus.FAILED
        assert failed.error.startswith("InsufficientCommitments:")
        assert backend.prove_calls == 0

    @pytest.mark.asyncio
    async def test_insufficient_funds_fails_job(self, storage, backend, sign_commitment):
        await _seed(storage, sign_commitment)
        job = await _insert_job(storage, required=90)

        await ProofWorker(storage, ProofService(storage, backend)).process_job(job.id)

        failed = await storage.get_job(job.id)
        assert failed.status == ProofJobStatus.FAILED
        assert failed.error.startswith("InsufficientFunds:")
        assert failed.result is None
        assert await storage.get_proof("DEAL123") is None

    @pytest.mark.asyncio
    async def test_backend_crash_fails_job(self, storage, sign_commitment):
        await _seed(storage, sign_commitment)
        job = await _insert_job(storage)

        await ProofWorker(storage, ProofService(storage, ExplodingBackend())).process_job(job.id)

        failed = await storage.get_job(job.id)
        assert failed.status == ProofJobStatus.FAILED
        assert failed.error.startswith("BackendError:")

    @pytest.mark.asyncio
    async def test_job_is_processed_once(self, storage, backend, sign_commitment):
        await _seed(storage, sign_commitment)
        job = await _insert_job(storage)
        worker = ProofWorker(storage, ProofService(storage, backend))

        await worker.process_job(job.id)
        await worker.process_job(job.id)

        assert backend.prove_calls == 1
        assert (await storage.get_job(job.id)).status == ProofJobStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_unknown_job_is_ignored(self, storage, backend):
        await ProofWorker(storage, ProofService(storage, backend)).process_job("missing")
        assert backend.prove_calls == 0

    @pytest.mark.asyncio
    async def test_lock_is_free_while_backend_runs(self, storage, registry, sign_commitment):
        await _seed(storage, sign_commitment)
        job = await _insert_job(storage)
        backend = GatedBackend(registry)
        worker = ProofWorker(storage, ProofService(storage, backend))

        task = asyncio.create_task(worker.process_job(job.id))
        await asyncio.wait_for(backend.entered.wait(), timeout=5)

        # Other requests go through while the proof is in flight
        assert (await storage.get_job(job.id)).status == ProofJobStatus.IN_PROGRESS
        await asyncio.wait_for(
            storage.add_commitment("DEAL123", sign_commitment(0, 10**6)), timeout=1
        )

        backend.gate.set()
        await asyncio.wait_for(task, timeout=5)

        done = await storage.get_job(job.id)
        assert done.status == ProofJobStatus.COMPLETED
        # The late commitment was not part of the snapshot
        inputs = backend.proved_inputs[0]
        assert {inputs.commitment_a.terms.amount, inputs.commitment_b.terms.amount} == {50, 30}
        assert storage.commitments.count("DEAL123") == 3


class TestWorkerPool:

    @pytest.mark.asyncio
    async def test_starts_lazily_and_drains_queue(self, storage, backend, sign_commitment):
        await _seed(storage, sign_commitment)
        pool = WorkerPool(ProofWorker(storage, ProofService(storage, backend)), size=2, queue_size=8)
        assert not pool.running
        assert pool.pending == 0

        jobs = [await _insert_job(storage, required=r) for r in (10, 60, 90)]
        for job in jobs:
            pool.submit(job.id)
        assert pool.running

        await asyncio.wait_for(pool.join(), timeout=5)
        statuses = [(await storage.get_job(j.id)).status for j in jobs]
        assert statuses == [ProofJobStatus.COMPLETED, ProofJobStatus.COMPLETED, ProofJobStatus.FAILED]

        await pool.stop()
        assert not pool.running

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, storage, backend):
        pool = WorkerPool(ProofWorker(storage, ProofService(storage, backend)), size=3)
        pool.start()
        tasks = list(pool._tasks)
        pool.start()
        assert pool._tasks == tasks
        await pool.stop()

    @pytest.mark.asyncio
    async def test_worker_survives_crashing_job(self, storage, backend, sign_commitment, monkeypatch):
        await _seed(storage, sign_commitment)
        worker = ProofWorker(storage, ProofService(storage, backend))
        pool = WorkerPool(worker, size=1)
        original = worker.process_job

        async def flaky(job_id):
            if job_id == "boom":
                raise RuntimeError("boom")
            await original(job_id)

        monkeypatch.setattr(worker, "process_job", flaky)

        job = await _insert_job(storage)
        pool.submit("boom")
        pool.submit(job.id)
        await asyncio.wait_for(pool.join(), timeout=5)

        assert (await storage.get_job(job.id)).status == ProofJobStatus.COMPLETED
        await pool.stop()


class TestJobManager:

    @pytest.mark.asyncio
    async def test_create_returns_pending_job(self, storage, backend, sign_commitment, wait_for_job):
        await _seed(storage, sign_commitment)
        pool = WorkerPool(ProofWorker(storage, ProofService(storage, backend)), size=1)
        manager = JobManager(storage, pool)

        job = await manager.create("DEAL123", 60)
        assert job.status == ProofJobStatus.PENDING
        assert job.deal_id == "DEAL123"

        done = await wait_for_job(manager, job.id)
        assert done.status == ProofJobStatus.COMPLETED
        assert done.id == job.id
        await pool.stop()

    @pytest.mark.asyncio
    async def test_full_queue_rejects_without_waiting(self, storage, registry, sign_commitment):
        await _seed(storage, sign_commitment)
        backend = GatedBackend(registry)
        pool = WorkerPool(ProofWorker(storage, ProofService(storage, backend)), size=1, queue_size=1)
        manager = JobManager(storage, pool)

        in_flight = await manager.create("DEAL123", 60)
        await asyncio.wait_for(backend.entered.wait(), timeout=5)
        queued = await manager.create("DEAL123", 60)
        assert pool.full

        with pytest.raises(JobQueueFullError) as exc_info:
            await asyncio.wait_for(manager.create("DEAL123", 60), timeout=1)
        assert exc_info.value.status_code == 503
        # No orphaned pending record for the rejected job
        assert len(storage.jobs) == 2

        backend.gate.set()
        await asyncio.wait_for(pool.join(), timeout=5)
        for job in (in_flight, queued):
            assert (await storage.get_job(job.id)).status == ProofJobStatus.COMPLETED
        await pool.stop()

    @pytest.mark.asyncio
    async def test_submit_to_full_queue_raises(self, storage, backend):
        pool = WorkerPool(ProofWorker(storage, ProofService(storage, backend)), size=1, queue_size=1)
        # Workers are not scheduled until the test yields, so the first id stays queued
        pool.submit("a")
        with pytest.raises(JobQueueFullError):
            pool.submit("b")
        assert pool.pending == 1
        await pool.stop()

    @pytest.mark.asyncio
    async def test_get_unknown(self, storage, backend):
        manager = JobManager(storage, WorkerPool(ProofWorker(storage, ProofService(storage, backend))))
        assert await manager.get("missing") is None
