"""
Proof job records and their lifecycle.

    pending -> in_progress -> completed | failed

Terminal states never change. Every transition refreshes updated_at.
"""
import dataclasses
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from ..errors import InvalidTransitionError, JobNotFoundError
from .codec import CommittedOutput


class ProofJobStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


ALLOWED_TRANSITIONS = {
    ProofJobStatus.PENDING: {ProofJobStatus.IN_PROGRESS},
    ProofJobStatus.IN_PROGRESS: {ProofJobStatus.COMPLETED, ProofJobStatus.FAILED},
    ProofJobStatus.COMPLETED: set(),
    ProofJobStatus.FAILED: set(),
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ProofJob:
    deal_id: str
    required_amount: int
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: ProofJobStatus = ProofJobStatus.PENDING
    created_at: datetime = field(default_factory=utcnow)
    updated_at: Optional[datetime] = None
    result: Optional[CommittedOutput] = None
    error: Optional[str] = None

    def __post_init__(self):
        if self.updated_at is None:
            self.updated_at = self.created_at

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self.status]

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "deal_id": self.deal_id,
            "required_amount": self.required_amount,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
        if self.result is not None:
            d["result"] = self.result.to_dict()
        if self.error:
            d["error"] = self.error
        return d


class JobTable:
    """In-memory job table. Callers hold the storage lock."""

    def __init__(self):
        self._jobs: dict[str, ProofJob] = {}

    def insert(self, job: ProofJob) -> ProofJob:
        if job.id in self._jobs:
            raise ValueError(f"duplicate job id {job.id}")
        self._jobs[job.id] = job
        return dataclasses.replace(job)

    def get(self, job_id: str) -> Optional[ProofJob]:
        """Snapshot copy; later transitions do not affect it."""
        job = self._jobs.get(job_id)
        return dataclasses.replace(job) if job is not None else None

    def transition(
        self,
        job_id: str,
        status: ProofJobStatus,
        result: Optional[CommittedOutput] = None,
        error: Optional[str] = None,
    ) -> ProofJob:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(f"Proof job not found: {job_id}")
        if status not in ALLOWED_TRANSITIONS[job.status]:
            raise InvalidTransitionError(
                f"Job {job_id} cannot move from {job.status.value} to {status.value}"
            )
        job.status = status
        job.updated_at = max(utcnow(), job.updated_at)
        if result is not None:
            job.result = result
        if error is not None:
            job.error = error
        return dataclasses.replace(job)

    def __len__(self) -> int:
        return len(self._jobs)
