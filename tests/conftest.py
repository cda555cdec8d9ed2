"""
Pytest fixtures for the BLS Wallet SDK tests.
"""
import time

import pytest

from blswallet_sdk.bls import BlsSigner
from blswallet_sdk.execution import InMemoryLedger
from blswallet_sdk.wallet import AuthorizationVerifier, BatchDispatcher
from blswallet_sdk.wallet._rate_limited_log import clear_rate_limit_cache

CHAIN_ID = 31337


# Make time.sleep instantaneous so HTTP retries don't slow the suite down
@pytest.fixture(autouse=True)
def _fast_sleep(monkeypatch):
    monkeypatch.setattr(time, "sleep", lambda *_a, **_kw: None)


@pytest.fixture(autouse=True)
def _reset_rate_limit_cache():
    clear_rate_limit_cache()
    yield
    clear_rate_limit_cache()


@pytest.fixture
def chain_id():
    return CHAIN_ID


@pytest.fixture(scope="session")
def signers():
    """Five deterministic signers; deriving G2 keys is slow, so share them"""
    return [BlsSigner.from_seed(f"test-wallet-{i}") for i in range(5)]


@pytest.fixture(scope="session")
def signer(signers):
    return signers[0]


@pytest.fixture
def verifier(chain_id):
    return AuthorizationVerifier(chain_id)


@pytest.fixture
def wallets(verifier, signers):
    """The five signers registered with nonce 0"""
    return [verifier.register_wallet(s.public_key) for s in signers]


@pytest.fixture
def ledger():
    return InMemoryLedger()


@pytest.fixture
def dispatcher(verifier, ledger):
    return BatchDispatcher(verifier, ledger)
