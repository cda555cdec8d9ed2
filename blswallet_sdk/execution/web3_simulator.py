"""
Call executor backed by an Ethereum node.

Runs each call with ``eth_call`` from the wallet's address. Nothing is
committed on chain; this is a preflight that tells a relayer which items of a
batch would revert before it pays to submit them.
"""
import logging
from typing import Optional, Tuple

import requests
from eth_utils import to_hex
from web3 import Web3
from web3.exceptions import ContractLogicError, Web3Exception

from ..exceptions import ExecutionFailure
from ..utils import normalize_address, require_secure_url, to_bytes_data


class Web3CallSimulator:
    """Executes calls with ``eth_call`` against an RPC node"""

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        w3: Optional[Web3] = None,
        block_identifier: str = "latest",
        timeout: int = 30,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the simulator.

        Args:
            rpc_url: Ethereum RPC endpoint URL (https unless localhost)
            w3: Pre-built Web3 instance, used instead of ``rpc_url``
            block_identifier: Block the calls run against
            timeout: Timeout for RPC requests in seconds
            logger: Optional logger instance

        Raises:
            ValueError: If neither rpc_url nor w3 is given, or the URL is not https
        """
        if w3 is None:
            if not rpc_url:
                raise ValueError("Either rpc_url or w3 must be provided")
            require_secure_url(rpc_url, "rpc_url")
            w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
        self.w3 = w3
        self.block_identifier = block_identifier
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_network(cls, network: str, rpc_url: Optional[str] = None, **kwargs) -> "Web3CallSimulator":
        """Build a simulator for a configured network (see ``NetworkConfig.get_rpc_url``)"""
        from ..config import NetworkConfig

        return cls(rpc_url=NetworkConfig.get_rpc_url(network, rpc_url), **kwargs)

    def apply_call(self, sender: str, target: str, call_data: bytes, value: int) -> Tuple[bool, bytes]:
        """
        Simulate one call.

        Returns:
            ``(True, return_data)`` on success, ``(False, revert_data)`` on revert

        Raises:
            ExecutionFailure: If the node cannot be reached or answers with an error
        """
        tx = {
            "from": normalize_address(sender),
            "to": normalize_address(target),
            "data": to_hex(bytes(call_data)),
            "value": value,
        }
        try:
            result = self.w3.eth.call(tx, self.block_identifier)
        except ContractLogicError as e:
            data = _revert_bytes(getattr(e, "data", None))
            self.logger.debug(f"Call to {tx['to']} reverted: {e}")
            return False, data
        except (Web3Exception, requests.RequestException, ValueError) as e:
            # Older web3 releases raise a bare ValueError for JSON-RPC errors
            self.logger.error(f"eth_call to {tx['to']} failed: {e}")
            raise ExecutionFailure(f"eth_call failed: {str(e)}")
        return True, bytes(result)


def _revert_bytes(data) -> bytes:
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    if isinstance(data, str):
        try:
            return to_bytes_data(data, "revert data")
        except ValueError:
            return b""
    return b""
