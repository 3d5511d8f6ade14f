"""
In-process proving backend for development and tests.

Evaluates the statement natively and seals the disclosed output in an
HS256 JWT. The seal shows the output came from this process; it is NOT a
zero-knowledge proof. Use POF_BACKEND_URL to point at a real backend.
"""
import asyncio
import logging
import secrets
from typing import Optional

import jwt

from ..config import API_SECRET
from ..errors import BackendError, ProofOfFundsError, SerializationError, StatementError
from ..lib.codec import CommittedOutput
from ..lib.keys import PartyRegistry
from ..lib.statement import StatementInputs, evaluate_inputs, STATEMENT_ID
from .backend import Proof, ProvingBackend

logger = logging.getLogger("backend")

SEAL_ALGORITHM = "HS256"


class LocalBackend(ProvingBackend):

    def __init__(self, registry: PartyRegistry, secret: Optional[str] = None):
        self.registry = registry
        secret = secret or API_SECRET
        if not secret:
            logger.warning("API_SECRET not set - sealing receipts with a per-process random secret")
            secret = secrets.token_hex(32)
        self._secret = secret

    async def prove(self, statement_id: str, inputs: StatementInputs) -> Proof:
        if statement_id != STATEMENT_ID:
            raise BackendError(f"Unknown statement: {statement_id}")

        allowed_keys = self.registry.allowed_keys()
        try:
            output = await asyncio.to_thread(evaluate_inputs, inputs, allowed_keys)
        except StatementError as e:
            logger.info(f"Statement rejected: {e.describe()}")
            raise BackendError.from_statement_error(e) from e
        except ProofOfFundsError as e:
            raise BackendError(str(e), code=e.code) from e

        seal = jwt.encode(
            {"stmt": statement_id, "out": output.to_dict()},
            self._secret,
            algorithm=SEAL_ALGORITHM,
        )
        logger.info(f"Statement proved for deal {output.deal_id}")
        return Proof(statement_id=statement_id, output=output, seal=seal)

    async def verify(self, proof: Proof, statement_id: str) -> CommittedOutput:
        if proof.statement_id != statement_id:
            raise BackendError(
                f"Proof is for statement {proof.statement_id}, expected {statement_id}"
            )
        try:
            claims = jwt.decode(proof.seal, self._secret, algorithms=[SEAL_ALGORITHM])
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid receipt seal: {e}")
            raise BackendError(f"Invalid receipt seal: {e}") from e

        if claims.get("stmt") != statement_id:
            raise BackendError("Receipt statement id mismatch")
        try:
            sealed = CommittedOutput.from_dict(claims.get("out") or {})
        except SerializationError as e:
            raise BackendError(f"Malformed sealed output: {e}") from e
        if sealed != proof.output:
            raise BackendError("Proof output does not match sealed output")
        return sealed
