#!/usr/bin/env python3
"""
Five wallets each send tokens to the first wallet in one aggregated batch.
"""
import logging

from blswallet_sdk import (
    AggregateSignature,
    AuthorizationVerifier,
    BatchDispatcher,
    BlsSigner,
    InMemoryLedger,
    NetworkConfig,
    Payload,
    aggregate_signatures,
)
from blswallet_sdk.execution import token_transfer_call


def main():
    """
    Demonstrate a batch of independently signed transfers.

    This example shows how to:
    1. Register BLS wallets with a verifier
    2. Have each owner sign a payload
    3. Aggregate the signatures into one
    4. Verify and dispatch the batch against an in-memory ledger
    """
    logging.basicConfig(level=logging.INFO)

    chain_id = NetworkConfig.get_chain_id("local")
    verifier = AuthorizationVerifier(chain_id)
    ledger = InMemoryLedger()
    dispatcher = BatchDispatcher(verifier, ledger)

    signers = [BlsSigner.from_seed(f"example-wallet-{i}") for i in range(5)]
    wallets = [verifier.register_wallet(s.public_key) for s in signers]
    token = ledger.deploy_token(balances={w.address: 100 for w in wallets})
    print(f"Token deployed at {token}")

    call_data = token_transfer_call(wallets[0].address, 100)
    payloads = [Payload.for_call(chain_id, verifier.nonce_of(w.public_key_hash), token, call_data)
                for w in wallets]
    signature = aggregate_signatures([s.sign_payload(p) for s, p in zip(signers, payloads)])
    print(f"Aggregate signature: 0x{signature.hex()[:16]}…")

    results = dispatcher.submit_batch(
        [w.public_key_hash for w in wallets],
        payloads,
        AggregateSignature(signature),
        [call_data] * len(payloads),
    )

    for wallet, result in zip(wallets, results):
        balance = ledger.token_balance(token, wallet.address)
        print(f"{wallet.address}: success={result.success} balance={balance} "
              f"next nonce={verifier.nonce_of(wallet.public_key_hash)}")


if __name__ == "__main__":
    main()
