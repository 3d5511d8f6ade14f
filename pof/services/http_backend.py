"""
HTTP client for a remote verifiable-computation backend.

    POST {base}/prove   {statement_id, private_inputs} -> {proof}
    POST {base}/verify  {statement_id, proof}          -> {output}

Errors come back as {error, code?}. Anything else (timeouts, transport
failures, malformed bodies) surfaces as a plain BackendError. No retries.
"""
import logging
from typing import Optional

import httpx

from ..config import BACKEND_TIMEOUT
from ..errors import STATEMENT_ERRORS, BackendError, SerializationError
from ..lib.codec import CommittedOutput
from ..lib.statement import StatementInputs
from .backend import Proof, ProvingBackend

logger = logging.getLogger("backend")


class HttpBackend(ProvingBackend):

    def __init__(
        self,
        base_url: str,
        timeout: float = BACKEND_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        headers: Optional[dict] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self.headers = {"Content-Type": "application/json", **(headers or {})}

    async def _post(self, path: str, payload: dict) -> dict:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(path, json=payload, headers=self.headers)
        except httpx.TimeoutException as e:
            logger.error(f"Proving backend timeout on {path}")
            raise BackendError("Proving backend timeout") from e
        except httpx.HTTPError as e:
            logger.error(f"Proving backend request failed on {path}: {e}")
            raise BackendError(f"Proving backend unreachable: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code not in (200, 201):
            if isinstance(body, dict) and body.get("error"):
                code = body.get("code")
                raise BackendError(
                    str(body["error"]),
                    code=code if code in STATEMENT_ERRORS else None,
                )
            error_msg = f"Backend returned {response.status_code}: {response.text[:200]}"
            logger.error(error_msg)
            raise BackendError(error_msg)

        if not isinstance(body, dict):
            raise BackendError(f"Malformed backend response from {path}")
        return body

    async def prove(self, statement_id: str, inputs: StatementInputs) -> Proof:
        body = await self._post("/prove", {
            "statement_id": statement_id,
            "private_inputs": {
                "commitment_a": inputs.commitment_a.to_wire(),
                "commitment_b": inputs.commitment_b.to_wire(),
                "required_amount": inputs.required_amount,
            },
        })
        try:
            proof = Proof.from_dict(body.get("proof"))
        except SerializationError as e:
            raise BackendError(f"Malformed proof from backend: {e}") from e
        if proof.statement_id != statement_id:
            raise BackendError(f"Backend proved {proof.statement_id}, expected {statement_id}")
        return proof

    async def verify(self, proof: Proof, statement_id: str) -> CommittedOutput:
        body = await self._post("/verify", {
            "statement_id": statement_id,
            "proof": proof.to_dict(),
        })
        try:
            return CommittedOutput.from_dict(body.get("output"))
        except SerializationError as e:
            raise BackendError(f"Malformed output from backend: {e}") from e
