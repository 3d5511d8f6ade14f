"""
Asynchronous proof jobs.

JobManager.create() records a pending job and hands its id to a bounded
WorkerPool; a ProofWorker picks it up and drives it to completed or failed.
Callers observe progress only by polling JobManager.get().

Known limitation: no timeout is enforced. A backend that never answers
leaves its job in_progress.
"""
import asyncio
import logging
from typing import Optional

from ..config import JOB_QUEUE_SIZE, WORKER_COUNT
from ..errors import JobQueueFullError, ProofOfFundsError
from ..lib.jobs import ProofJob, ProofJobStatus
from ..lib.store import Storage
from .prover import ProofService

logger = logging.getLogger("worker")


class ProofWorker:

    def __init__(self, storage: Storage, service: ProofService):
        self.storage = storage
        self.service = service

    async def process_job(self, job_id: str) -> None:
        # Claim the job and snapshot its commitments in one critical section
        async with self.storage.lock:
            job = self.storage.jobs.get(job_id)
            if job is None:
                logger.warning(f"Skipping unknown proof job {job_id}")
                return
            if job.status != ProofJobStatus.PENDING:
                logger.warning(f"Skipping proof job {job_id} in state {job.status.value}")
                return
            self.storage.jobs.transition(job_id, ProofJobStatus.IN_PROGRESS)
            commitments = self.storage.commitments.get(job.deal_id)

        logger.info(f"Job {job_id}: {len(commitments)} commitments for deal {job.deal_id}")

        try:
            proof = await self.service.prove_pair(commitments, job.required_amount)
        except ProofOfFundsError as e:
            logger.info(f"Job {job_id} failed: {e.describe()}")
            await self.storage.transition_job(job_id, ProofJobStatus.FAILED, error=e.describe())
            return

        async with self.storage.lock:
            self.storage.proofs.put(job.deal_id, proof)
            self.storage.jobs.transition(job_id, ProofJobStatus.COMPLETED, result=proof.output)
        logger.info(f"Job {job_id} completed for deal {job.deal_id}")


class WorkerPool:
    """Fixed number of worker tasks consuming job ids from a bounded queue."""

    def __init__(self, worker: ProofWorker, size: int = WORKER_COUNT, queue_size: int = JOB_QUEUE_SIZE):
        self.worker = worker
        self.size = size
        self.queue_size = queue_size
        self._queue: Optional[asyncio.Queue] = None
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    def start(self) -> None:
        """Start the worker tasks on the running loop. Idempotent."""
        if self._tasks:
            return
        if self._queue is None:
            self._queue = asyncio.Queue(maxsize=self.queue_size)
        self._tasks = [
            asyncio.create_task(self._run(n), name=f"proof-worker-{n}")
            for n in range(self.size)
        ]
        logger.info(f"Started {self.size} proof workers (queue size {self.queue_size or 'unbounded'})")

    @property
    def full(self) -> bool:
        return self._queue is not None and self._queue.full()

    def submit(self, job_id: str) -> None:
        """Enqueue a job id without waiting. Raises JobQueueFullError when the queue is full."""
        self.start()
        try:
            self._queue.put_nowait(job_id)
        except asyncio.QueueFull:
            raise JobQueueFullError(
                f"Proof job queue is full ({self.queue_size} waiting), retry later"
            ) from None

    async def join(self) -> None:
        """Wait until every submitted job has been processed."""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if tasks:
            logger.info("Proof workers stopped")

    async def _run(self, n: int) -> None:
        while True:
            job_id = await self._queue.get()
            try:
                await self.worker.process_job(job_id)
            except Exception as e:
                # Keep the worker alive; the job keeps whatever state it reached
                logger.exception(f"proof-worker-{n} crashed on job {job_id}: {e}")
            finally:
                self._queue.task_done()


class JobManager:

    def __init__(self, storage: Storage, pool: WorkerPool):
        self.storage = storage
        self.pool = pool

    async def create(self, deal_id: str, required_amount: int) -> ProofJob:
        """
        Record a pending job and enqueue it. Never waits on workers.

        The capacity check, insert and enqueue run with no await in between,
        so a rejected submit leaves no job record behind.
        """
        self.pool.start()
        async with self.storage.lock:
            if self.pool.full:
                logger.warning(f"Rejected proof job for deal {deal_id}: queue full")
                raise JobQueueFullError(
                    f"Proof job queue is full ({self.pool.queue_size} waiting), retry later"
                )
            job = self.storage.jobs.insert(ProofJob(deal_id=deal_id, required_amount=required_amount))
            self.pool.submit(job.id)
        logger.info(f"Created proof job {job.id} for deal {deal_id}")
        return job

    async def get(self, job_id: str) -> Optional[ProofJob]:
        return await self.storage.get_job(job_id)
