"""
In-memory execution environment for development and tests.

Tracks native balances and a minimal token standard (``transfer`` and
``balanceOf``) so that batches can be dispatched end to end without a node.
"""
import logging
import threading
from typing import Dict, Optional, Tuple, Union

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import function_signature_to_4byte_selector, keccak, to_checksum_address

from ..exceptions import ExecutionFailure
from ..utils import normalize_address

logger = logging.getLogger(__name__)

TRANSFER_SELECTOR = function_signature_to_4byte_selector("transfer(address,uint256)")
BALANCE_OF_SELECTOR = function_signature_to_4byte_selector("balanceOf(address)")
# Error(string), the standard revert payload
ERROR_SELECTOR = function_signature_to_4byte_selector("Error(string)")


def revert_data(reason: str) -> bytes:
    """ABI-encoded ``Error(string)`` revert payload"""
    return ERROR_SELECTOR + encode(["string"], [reason])


def token_transfer_call(recipient: Union[str, bytes], amount: int) -> bytes:
    """Call data of ``transfer(address,uint256)``"""
    return TRANSFER_SELECTOR + encode(["address", "uint256"], [normalize_address(recipient), amount])


def token_balance_call(holder: Union[str, bytes]) -> bytes:
    """Call data of ``balanceOf(address)``"""
    return BALANCE_OF_SELECTOR + encode(["address"], [normalize_address(holder)])


class InMemoryLedger:
    """
    Balances held in memory.

    Each call is all-or-nothing: a failed call leaves every balance as it was.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._lock = threading.RLock()
        self._balances: Dict[str, int] = {}
        self._tokens: Dict[str, Dict[str, int]] = {}
        self.logger = logger or logging.getLogger(__name__)

    def deploy_token(self, address: Optional[Union[str, bytes]] = None,
                     balances: Optional[Dict[str, int]] = None) -> str:
        """
        Create a token contract.

        Args:
            address: Contract address; derived from a counter if omitted
            balances: Initial holder balances

        Returns:
            The checksummed token address
        """
        with self._lock:
            if address is None:
                address = to_checksum_address(keccak(b"token" + len(self._tokens).to_bytes(32, "big"))[-20:])
            address = normalize_address(address)
            if address in self._tokens:
                raise ValueError(f"A token already exists at {address}")
            self._tokens[address] = {}
            for holder, amount in (balances or {}).items():
                self.mint(address, holder, amount)
        return address

    def mint(self, token: Union[str, bytes], holder: Union[str, bytes], amount: int) -> None:
        if amount < 0:
            raise ValueError("Amount must be non-negative")
        with self._lock:
            balances = self._token(token)
            holder = normalize_address(holder)
            balances[holder] = balances.get(holder, 0) + amount

    def fund(self, holder: Union[str, bytes], amount: int) -> None:
        """Credit native balance"""
        if amount < 0:
            raise ValueError("Amount must be non-negative")
        with self._lock:
            holder = normalize_address(holder)
            self._balances[holder] = self._balances.get(holder, 0) + amount

    def balance_of(self, holder: Union[str, bytes]) -> int:
        with self._lock:
            return self._balances.get(normalize_address(holder), 0)

    def token_balance(self, token: Union[str, bytes], holder: Union[str, bytes]) -> int:
        with self._lock:
            return self._token(token).get(normalize_address(holder), 0)

    def is_token(self, address: Union[str, bytes]) -> bool:
        with self._lock:
            return normalize_address(address) in self._tokens

    def apply_call(self, sender: str, target: str, call_data: bytes, value: int) -> Tuple[bool, bytes]:
        """
        Apply one call.

        Native ``value`` moves from ``sender`` to ``target`` first; calls to
        addresses without a token behave like calls to an externally owned
        account and succeed with empty return data.

        Returns:
            ``(success, return_data)``; reverts carry ``Error(string)`` data

        Raises:
            ExecutionFailure: If a token receives call data it does not understand
        """
        sender = normalize_address(sender)
        target = normalize_address(target)
        call_data = bytes(call_data)
        with self._lock:
            sender_balance = self._balances.get(sender, 0)
            if value > sender_balance:
                self.logger.debug("Call from %s reverted: insufficient native balance", sender)
                return False, revert_data("insufficient balance")

            token = self._tokens.get(target)
            if token is None:
                self._move_native(sender, target, value)
                return True, b""

            selector, args = call_data[:4], call_data[4:]
            if selector == TRANSFER_SELECTOR:
                recipient, amount = _decode_args(["address", "uint256"], args, target)
                recipient = to_checksum_address(recipient)
                if token.get(sender, 0) < amount:
                    return False, revert_data("transfer amount exceeds balance")
                self._move_native(sender, target, value)
                token[sender] = token.get(sender, 0) - amount
                token[recipient] = token.get(recipient, 0) + amount
                self.logger.debug("Token %s: %s -> %s amount %d", target, sender, recipient, amount)
                return True, encode(["bool"], [True])
            if selector == BALANCE_OF_SELECTOR:
                (holder,) = _decode_args(["address"], args, target)
                self._move_native(sender, target, value)
                return True, encode(["uint256"], [token.get(to_checksum_address(holder), 0)])

        raise ExecutionFailure(f"Token at {target} has no function for selector 0x{selector.hex()}")

    def _move_native(self, sender: str, target: str, value: int) -> None:
        if value:
            self._balances[sender] = self._balances.get(sender, 0) - value
            self._balances[target] = self._balances.get(target, 0) + value

    def _token(self, token: Union[str, bytes]) -> Dict[str, int]:
        token = normalize_address(token)
        if token not in self._tokens:
            raise ValueError(f"No token deployed at {token}")
        return self._tokens[token]


def _decode_args(types, args: bytes, target: str) -> tuple:
    try:
        return decode(types, args)
    except DecodingError as e:
        raise ExecutionFailure(f"Malformed call data for token at {target}: {e}")
