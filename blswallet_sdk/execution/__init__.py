"""
Execution environments that apply authorized calls.
"""
from .base import CallExecutor
from .stub_ledger import InMemoryLedger, token_balance_call, token_transfer_call
from .web3_simulator import Web3CallSimulator

__all__ = [
    "CallExecutor",
    "InMemoryLedger",
    "Web3CallSimulator",
    "token_transfer_call",
    "token_balance_call",
]
