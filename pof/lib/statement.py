"""
The proof-of-funds verification statement.

This is the predicate a verifiable-computation backend proves over private
inputs. It must behave identically when run natively: same check order,
same failure codes, same disclosed output.

Check order (first failure wins):
    1. commitment_a then commitment_b: allow-listed key, valid signature
    2. distinct public keys
    3. same deal_id
    4. same buyer
    5. amount_a + amount_b >= required_amount

Only CommittedOutput{required_amount, deal_id, buyer} is ever disclosed.
"""
from dataclasses import dataclass
from typing import Collection

from ..errors import (
    BuyerMismatchError,
    DealMismatchError,
    DuplicatePartyError,
    InsufficientFundsError,
    SerializationError,
    SignatureInvalidError,
    UnknownPartyError,
)
from .codec import CommittedOutput, SignedCommitment, _is_u64, verify_signature

STATEMENT_ID = "pof.two-party.v1"


@dataclass(frozen=True)
class StatementInputs:
    """Private inputs to the statement. Never leaves the prover."""
    commitment_a: SignedCommitment
    commitment_b: SignedCommitment
    required_amount: int


def _check_commitment(commitment: SignedCommitment, label: str, allowed_keys: Collection[bytes]) -> None:
    try:
        known = commitment.public_key in allowed_keys
    except TypeError:
        known = False
    if not known:
        raise UnknownPartyError(f"{label} public key is not a known party")
    if not verify_signature(commitment):
        raise SignatureInvalidError(f"{label} signature verification failed")


def evaluate(
    commitment_a: SignedCommitment,
    commitment_b: SignedCommitment,
    required_amount: int,
    allowed_keys: Collection[bytes],
) -> CommittedOutput:
    """Run the statement; return the disclosed output or raise a StatementError."""
    if not _is_u64(required_amount):
        raise SerializationError(f"required_amount must be a uint64, got {required_amount!r}")

    _check_commitment(commitment_a, "commitment_a", allowed_keys)
    _check_commitment(commitment_b, "commitment_b", allowed_keys)

    # The same party must not be counted twice
    if commitment_a.public_key == commitment_b.public_key:
        raise DuplicatePartyError("Both commitments are signed by the same party")

    terms_a, terms_b = commitment_a.terms, commitment_b.terms
    if terms_a.deal_id != terms_b.deal_id:
        raise DealMismatchError("Commitments refer to different deals")
    if terms_a.buyer != terms_b.buyer:
        raise BuyerMismatchError("Commitments name different buyers")

    if terms_a.amount + terms_b.amount < required_amount:
        raise InsufficientFundsError(
            f"Combined commitments do not cover the required amount {required_amount}"
        )

    return CommittedOutput(
        proved_amount=required_amount,
        deal_id=terms_a.deal_id,
        buyer=terms_a.buyer,
    )


def evaluate_inputs(inputs: StatementInputs, allowed_keys: Collection[bytes]) -> CommittedOutput:
    return evaluate(inputs.commitment_a, inputs.commitment_b, inputs.required_amount, allowed_keys)
