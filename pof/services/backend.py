"""
Interface to the verifiable-computation backend.

The backend proves the verification statement over private inputs and
later re-checks the resulting proof. It is an external collaborator: this
service only depends on the two calls below.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass

from ..errors import SerializationError
from ..lib.codec import CommittedOutput
from ..lib.statement import StatementInputs


@dataclass(frozen=True)
class Proof:
    """Opaque proof artifact plus the output it discloses."""
    statement_id: str
    output: CommittedOutput
    seal: str

    def to_dict(self) -> dict:
        return {
            "statement_id": self.statement_id,
            "output": self.output.to_dict(),
            "seal": self.seal,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Proof":
        try:
            statement_id = data["statement_id"]
            seal = data["seal"]
            output = CommittedOutput.from_dict(data["output"])
        except (KeyError, TypeError) as e:
            raise SerializationError(f"Malformed proof: {e}") from e
        if not isinstance(statement_id, str) or not isinstance(seal, str):
            raise SerializationError("Malformed proof field types")
        return cls(statement_id=statement_id, output=output, seal=seal)


class ProvingBackend(ABC):

    @abstractmethod
    async def prove(self, statement_id: str, inputs: StatementInputs) -> Proof:
        """Prove the statement; raises BackendError (carrying the predicate code on rejection)."""

    @abstractmethod
    async def verify(self, proof: Proof, statement_id: str) -> CommittedOutput:
        """Re-check a proof and return its disclosed output; raises BackendError."""

    async def aclose(self) -> None:
        return None
