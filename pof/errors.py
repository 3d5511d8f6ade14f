"""
Error taxonomy for the proof-of-funds service.

Every failure carries a stable `code` (observable in job records and JSON
error bodies) and the HTTP status it maps to. Messages never contain
commitment amounts.
"""
from typing import Optional


class ProofOfFundsError(Exception):
    code = "ProofOfFundsError"
    status_code = 400

    def describe(self) -> str:
        return f"{self.code}: {self}"

    def to_dict(self) -> dict:
        return {"error": self.describe()}


class SerializationError(ProofOfFundsError):
    code = "SerializationError"
    status_code = 400


# --- Predicate failures (raised by the verification statement) ---

class StatementError(ProofOfFundsError):
    code = "StatementError"
    status_code = 422


class UnknownPartyError(StatementError):
    code = "UnknownParty"


class SignatureInvalidError(StatementError):
    code = "SignatureInvalid"


class DuplicatePartyError(StatementError):
    code = "DuplicateParty"


class DealMismatchError(StatementError):
    code = "DealMismatch"


class BuyerMismatchError(StatementError):
    code = "BuyerMismatch"


class InsufficientFundsError(StatementError):
    code = "InsufficientFunds"


STATEMENT_ERRORS = {
    cls.code: cls
    for cls in (
        UnknownPartyError,
        SignatureInvalidError,
        DuplicatePartyError,
        DealMismatchError,
        BuyerMismatchError,
        InsufficientFundsError,
    )
}


# --- Host-side failures ---

class InsufficientCommitmentsError(ProofOfFundsError):
    code = "InsufficientCommitments"
    status_code = 409


class BackendError(ProofOfFundsError):
    """
    Failure surfaced by the proving backend.

    When the backend rejected the statement itself, `code` is the
    predicate's failure code so the specific reason reaches the caller.
    """
    status_code = 502

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code or "BackendError"
        if self.code in STATEMENT_ERRORS:
            self.status_code = StatementError.status_code

    @classmethod
    def from_statement_error(cls, exc: StatementError) -> "BackendError":
        return cls(str(exc), code=exc.code)


class JobNotFoundError(ProofOfFundsError):
    code = "JobNotFound"
    status_code = 404


class ProofNotFoundError(ProofOfFundsError):
    code = "ProofNotFound"
    status_code = 404


class InvalidTransitionError(ProofOfFundsError):
    code = "InvalidTransition"
    status_code = 409


class JobQueueFullError(ProofOfFundsError):
    code = "JobQueueFull"
    status_code = 503
