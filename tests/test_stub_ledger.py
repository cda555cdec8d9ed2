"""
Tests for the in-memory execution environment.
"""
import pytest
from eth_abi import decode

from blswallet_sdk.exceptions import ExecutionFailure
from blswallet_sdk.execution import InMemoryLedger, token_balance_call, token_transfer_call
from blswallet_sdk.execution.stub_ledger import ERROR_SELECTOR

ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20


@pytest.fixture
def token(ledger):
    return ledger.deploy_token(balances={ALICE: 50})


def test_transfer(ledger, token):
    success, data = ledger.apply_call(ALICE, token, token_transfer_call(BOB, 20), 0)
    assert success
    assert decode(["bool"], data) == (True,)
    assert ledger.token_balance(token, ALICE) == 30
    assert ledger.token_balance(token, BOB) == 20


def test_transfer_exceeding_balance_reverts(ledger, token):
    success, data = ledger.apply_call(ALICE, token, token_transfer_call(BOB, 51), 0)
    assert not success
    assert data[:4] == ERROR_SELECTOR
    assert decode(["string"], data[4:]) == ("transfer amount exceeds balance",)
    assert ledger.token_balance(token, ALICE) == 50


def test_balance_of(ledger, token):
    success, data = ledger.apply_call(BOB, token, token_balance_call(ALICE), 0)
    assert success
    assert decode(["uint256"], data) == (50,)


def test_native_value(ledger):
    ledger.fund(ALICE, 10)
    assert ledger.apply_call(ALICE, BOB, b"", 4) == (True, b"")
    assert ledger.balance_of(ALICE) == 6
    assert ledger.balance_of(BOB) == 4


def test_insufficient_native_value_reverts(ledger):
    success, _ = ledger.apply_call(ALICE, BOB, b"", 1)
    assert not success
    assert ledger.balance_of(BOB) == 0


def test_unknown_selector_raises(ledger, token):
    with pytest.raises(ExecutionFailure):
        ledger.apply_call(ALICE, token, b"\xde\xad\xbe\xef", 0)


def test_truncated_arguments_raise(ledger, token):
    with pytest.raises(ExecutionFailure):
        ledger.apply_call(ALICE, token, token_transfer_call(BOB, 1)[:20], 0)


def test_deploy_token_twice_rejected(ledger, token):
    assert ledger.is_token(token)
    with pytest.raises(ValueError):
        ledger.deploy_token(token)


def test_distinct_default_token_addresses():
    ledger = InMemoryLedger()
    assert ledger.deploy_token() != ledger.deploy_token()
