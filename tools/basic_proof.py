#!/usr/bin/env python3
"""
Proof-of-funds walkthrough, in process.

Party 0 pledges 50 and party 1 pledges 30 toward DEAL123. The buyer's bank
proves the pair covers 60, then a verifier re-checks the receipt. Proving
90 is refused without disclosing either amount.
"""
import asyncio
import logging

from pof.errors import ProofOfFundsError
from pof.lib import codec
from pof.lib.keys import PartyRegistry, derive
from pof.lib.store import Storage
from pof.services.local_backend import LocalBackend
from pof.services.prover import ProofService

DEAL = "DEAL123"
BUYER = "buyer123"


async def main():
    registry = PartyRegistry([0, 1])
    storage = Storage()
    service = ProofService(storage, LocalBackend(registry))

    for index, amount in ((0, 50), (1, 30)):
        commitment = codec.sign(derive(index), amount, DEAL, BUYER)
        await storage.add_commitment(DEAL, commitment)
        print(f"party {index} committed (key {commitment.public_key.hex()[:16]}...)")

    output = await service.prove_deal(DEAL, 60)
    print(f"proved: {output.to_dict()}")

    verified = await service.verify_deal(DEAL)
    print(f"verified: {verified.to_dict()}")

    try:
        await service.prove_deal(DEAL, 90)
    except ProofOfFundsError as e:
        print(f"required 90 -> {e.describe()}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING)
    asyncio.run(main())
