"""
Batch dispatcher.

Accepts a relayer's submission, has it authorized by the verifier and applies
the authorized calls through an executor. Authorization is all-or-nothing;
execution is per item, so one failing call never undoes its siblings (their
nonces are already consumed).
"""
import logging
from typing import List, Optional, Sequence

from ..exceptions import ExecutionFailure, MalformedInputError
from ..execution.base import CallExecutor
from ..models import CallResult
from ..utils import BytesLike, to_bytes_data
from .payload import Payload
from .registry import Wallet, WalletRef
from .verifier import AuthorizationVerifier, SignatureInput

logger = logging.getLogger(__name__)


class BatchDispatcher:
    """Verifies and executes batches of BLS-authorized operations"""

    def __init__(self, verifier: AuthorizationVerifier, executor: CallExecutor,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize the dispatcher.

        Args:
            verifier: Verifier holding the wallet registry and nonce store
            executor: Environment that applies calls
            logger: Optional logger instance
        """
        self.verifier = verifier
        self.executor = executor
        self.logger = logger or logging.getLogger(__name__)

    def submit(self, wallet_ref: WalletRef, payload: Payload, signature: SignatureInput,
               call_data: BytesLike) -> CallResult:
        """
        Verify and execute a single operation.

        Raises:
            MalformedInputError: If the call data does not match the payload
            AuthorizationError: If the operation is rejected
        """
        (call_data,) = self._check_call_data([payload], [call_data])
        self.verifier.verify(payload, wallet_ref, signature).raise_for_rejection()
        wallet = self.verifier.registry.resolve(wallet_ref)
        return self._apply(wallet, payload, call_data)

    def submit_batch(
        self,
        wallet_refs: Sequence[WalletRef],
        payloads: Sequence[Payload],
        signature: SignatureInput,
        call_datas: Sequence[BytesLike],
    ) -> List[CallResult]:
        """
        Verify a batch against one aggregate signature and execute it.

        Args:
            wallet_refs: Wallet of each operation
            payloads: Signed payloads
            signature: Aggregate signature over every (payload, wallet) pair
            call_datas: Full call data of each operation

        Returns:
            One CallResult per operation, in submission order

        Raises:
            MalformedInputError: On length mismatch, call data that does not
                hash to its payload's commitment, or any malformed input
            ChainMismatchError, NonceMismatchError, SignatureInvalidError:
                If the batch is rejected; nothing was executed
        """
        if not (len(wallet_refs) == len(payloads) == len(call_datas)):
            raise MalformedInputError("wallet_refs, payloads and call_datas must have equal length")
        call_datas = self._check_call_data(payloads, call_datas)

        self.verifier.verify_batch(payloads, wallet_refs, signature).raise_for_rejection()
        wallets = [self.verifier.registry.resolve(ref) for ref in wallet_refs]

        results = [
            self._apply(wallet, payload, call_data)
            for wallet, payload, call_data in zip(wallets, payloads, call_datas)
        ]
        failed = sum(1 for r in results if not r.success)
        self.logger.info("Dispatched batch of %d operations (%d failed)", len(results), failed)
        return results

    def submit_same_caller(self, wallet_ref: WalletRef, payloads: Sequence[Payload],
                           signature: SignatureInput, call_datas: Sequence[BytesLike]) -> List[CallResult]:
        """Batch where every operation comes from one wallet (consecutive nonces)"""
        return self.submit_batch([wallet_ref] * len(payloads), payloads, signature, call_datas)

    def submit_same_call(self, wallet_refs: Sequence[WalletRef], payloads: Sequence[Payload],
                         signature: SignatureInput, call_data: BytesLike) -> List[CallResult]:
        """
        Batch where every wallet makes the same call to the same target.

        Raises:
            MalformedInputError: If the payloads target different contracts
        """
        if len({payload.target for payload in payloads}) > 1:
            raise MalformedInputError("All payloads must target the same contract")
        return self.submit_batch(wallet_refs, payloads, signature, [call_data] * len(payloads))

    @staticmethod
    def _check_call_data(payloads: Sequence[Payload], call_datas: Sequence[BytesLike]) -> List[bytes]:
        checked = []
        for i, (payload, call_data) in enumerate(zip(payloads, call_datas)):
            if not isinstance(payload, Payload):
                raise MalformedInputError(f"Expected a Payload, got {type(payload).__name__}")
            call_data = to_bytes_data(call_data, "call_data")
            if not payload.matches_call_data(call_data):
                raise MalformedInputError(f"Call data of item {i} does not match its payload")
            checked.append(call_data)
        return checked

    def _apply(self, wallet: Wallet, payload: Payload, call_data: bytes) -> CallResult:
        try:
            success, return_data = self.executor.apply_call(
                wallet.address, payload.target, call_data, payload.value
            )
        except ExecutionFailure as e:
            self.logger.warning(f"Call from {wallet.address} to {payload.target} failed: {e}")
            return CallResult(success=False, return_data=e.return_data, error=str(e))
        except Exception as e:
            # Execution stays scoped to this item; siblings still run
            self.logger.error(f"Call from {wallet.address} to {payload.target} raised: {e}")
            return CallResult(success=False, error=str(e))
        if not success:
            self.logger.debug(f"Call from {wallet.address} to {payload.target} reverted")
        return CallResult(success=bool(success), return_data=bytes(return_data or b""))
