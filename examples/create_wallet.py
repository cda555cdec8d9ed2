#!/usr/bin/env python3
"""
Create a wallet from a signed creation payload and store its key locally.
"""
import os

from blswallet_sdk import AuthorizationVerifier, creation_payload
from blswallet_sdk.identity import get_or_create_signer


def main():
    """
    Demonstrate wallet creation.

    The key is kept in the local encrypted key store. Set CI=true and
    BLS_WALLET_MASTER_KEY to run without an OS keyring.
    """
    network = os.environ.get("BLS_WALLET_NETWORK", "local")
    verifier = AuthorizationVerifier.from_network(network)

    signer = get_or_create_signer("example")
    print(f"Signer: {signer!r}")

    payload = creation_payload(verifier.chain_id, verifier.gateway_address, signer.public_key_hash)
    result = verifier.create_wallet(signer.public_key, payload, signer.sign_payload(payload))
    result.raise_for_rejection()

    wallet = verifier.registry.resolve(signer.public_key_hash)
    print(f"Wallet created at {wallet.address}, next nonce {result.next_nonce}")


if __name__ == "__main__":
    main()
