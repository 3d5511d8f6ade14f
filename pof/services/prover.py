"""
Host-side proving flow shared by the synchronous endpoint and the job worker.

The backend call can take minutes; it is never made while holding the
storage lock: snapshot under lock -> release -> prove -> lock to commit.
"""
import logging
from typing import Sequence

from ..errors import InsufficientCommitmentsError, ProofNotFoundError, ProofOfFundsError, BackendError
from ..lib.codec import CommittedOutput, SignedCommitment
from ..lib.statement import STATEMENT_ID, StatementInputs
from ..lib.store import Storage
from .backend import Proof, ProvingBackend

logger = logging.getLogger("prover")

REQUIRED_COMMITMENTS = 2


def select_pair(commitments: Sequence[SignedCommitment]) -> tuple[SignedCommitment, SignedCommitment]:
    """First two commitments by arrival order; later ones are ignored."""
    if len(commitments) < REQUIRED_COMMITMENTS:
        raise InsufficientCommitmentsError(
            f"Not enough commitments for proof generation. Need {REQUIRED_COMMITMENTS}, got {len(commitments)}"
        )
    return commitments[0], commitments[1]


class ProofService:

    def __init__(self, storage: Storage, backend: ProvingBackend):
        self.storage = storage
        self.backend = backend

    async def prove_pair(self, commitments: Sequence[SignedCommitment], required_amount: int) -> Proof:
        """Select the pair and call the backend. Must be called without the lock held."""
        commitment_a, commitment_b = select_pair(commitments)
        inputs = StatementInputs(commitment_a, commitment_b, required_amount)
        try:
            return await self.backend.prove(STATEMENT_ID, inputs)
        except ProofOfFundsError:
            raise
        except Exception as e:
            logger.exception(f"Unexpected proving backend failure: {e}")
            raise BackendError(f"Proving backend failed: {e}") from e

    async def prove_deal(self, deal_id: str, required_amount: int) -> CommittedOutput:
        commitments = await self.storage.get_commitments(deal_id)
        logger.info(f"Found {len(commitments)} commitments for deal {deal_id}")

        proof = await self.prove_pair(commitments, required_amount)

        await self.storage.put_proof(deal_id, proof)
        logger.info(f"Proof stored for deal {deal_id} (proved amount {proof.output.proved_amount})")
        return proof.output

    async def verify_deal(self, deal_id: str) -> CommittedOutput:
        proof = await self.storage.get_proof(deal_id)
        if proof is None:
            raise ProofNotFoundError(f"No proof found for deal {deal_id}")

        try:
            output = await self.backend.verify(proof, STATEMENT_ID)
        except ProofOfFundsError:
            raise
        except Exception as e:
            logger.exception(f"Unexpected verification backend failure: {e}")
            raise BackendError(f"Verification backend failed: {e}") from e

        logger.info(f"Proof verified for deal {deal_id}")
        return output
