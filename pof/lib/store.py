"""
In-memory, process-lifetime stores.

All shared state (commitments, proofs, jobs) sits behind one asyncio.Lock
owned by Storage. The plain stores assume the caller holds it; the async
helpers on Storage take it for exactly one operation. Nothing is persisted
or evicted.
"""
import asyncio
from typing import Any, Optional

from .codec import CommittedOutput, SignedCommitment
from .jobs import JobTable, ProofJob, ProofJobStatus


class CommitmentStore:
    """Append-only commitments per deal, in arrival order."""

    def __init__(self):
        self._by_deal: dict[str, list[SignedCommitment]] = {}

    def add(self, deal_id: str, commitment: SignedCommitment) -> int:
        commitments = self._by_deal.setdefault(deal_id, [])
        commitments.append(commitment)
        return len(commitments)

    def get(self, deal_id: str) -> list[SignedCommitment]:
        return list(self._by_deal.get(deal_id, ()))

    def count(self, deal_id: str) -> int:
        return len(self._by_deal.get(deal_id, ()))


class ProofStore:
    """Latest proof per deal."""

    def __init__(self):
        self._by_deal: dict[str, Any] = {}

    def put(self, deal_id: str, proof: Any) -> None:
        self._by_deal[deal_id] = proof

    def get(self, deal_id: str) -> Optional[Any]:
        return self._by_deal.get(deal_id)


class Storage:
    def __init__(self):
        self.lock = asyncio.Lock()
        self.commitments = CommitmentStore()
        self.proofs = ProofStore()
        self.jobs = JobTable()

    async def add_commitment(self, deal_id: str, commitment: SignedCommitment) -> int:
        async with self.lock:
            return self.commitments.add(deal_id, commitment)

    async def get_commitments(self, deal_id: str) -> list[SignedCommitment]:
        async with self.lock:
            return self.commitments.get(deal_id)

    async def put_proof(self, deal_id: str, proof: Any) -> None:
        async with self.lock:
            self.proofs.put(deal_id, proof)

    async def get_proof(self, deal_id: str) -> Optional[Any]:
        async with self.lock:
            return self.proofs.get(deal_id)

    async def insert_job(self, job: ProofJob) -> ProofJob:
        async with self.lock:
            return self.jobs.insert(job)

    async def get_job(self, job_id: str) -> Optional[ProofJob]:
        async with self.lock:
            return self.jobs.get(job_id)

    async def transition_job(
        self,
        job_id: str,
        status: ProofJobStatus,
        result: Optional[CommittedOutput] = None,
        error: Optional[str] = None,
    ) -> ProofJob:
        async with self.lock:
            return self.jobs.transition(job_id, status, result=result, error=error)
