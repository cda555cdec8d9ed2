"""
AggregatorClient - HTTP client for a remote aggregation service.

Wallet owners hand their signed operations to an aggregator, which merges
signatures and submits batches on their behalf.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..exceptions import AggregatorError, MalformedInputError
from ..models import SignedOperation
from ..utils import BytesLike, require_secure_url, to_bytes_data
from ..wallet.payload import Payload


class AggregatorClient:
    """
    Client for an aggregation service.

    The service exposes ``POST /tx`` taking one signed operation as JSON and
    ``GET /health``.
    """

    def __init__(
        self,
        base_url: str,
        timeout: int = 30,
        retry_count: int = 3,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the client.

        Args:
            base_url: Aggregator URL (https unless localhost/127.0.0.1)
            timeout: Timeout for HTTP requests in seconds
            retry_count: Number of retries for HTTP requests
            logger: Optional logger instance

        Raises:
            ValueError: If the URL doesn't use https
        """
        require_secure_url(base_url, "base_url")
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)

        self.session = requests.Session()
        retries = Retry(
            total=retry_count,
            backoff_factor=0.5,
            status_forcelist=[500, 502, 503, 504],
            allowed_methods=["GET", "POST"],
            raise_on_status=False,
            connect=retry_count,
            read=retry_count,
            other=retry_count
        )
        self.session.mount("http://", HTTPAdapter(max_retries=retries))
        self.session.mount("https://", HTTPAdapter(max_retries=retries))

    @staticmethod
    def build_operation(public_key: BytesLike, payload: Payload, call_data: BytesLike,
                        signature: BytesLike) -> SignedOperation:
        """
        Bundle a signed payload for submission.

        Raises:
            MalformedInputError: If the call data does not match the payload
        """
        call_data = to_bytes_data(call_data, "call_data")
        if not payload.matches_call_data(call_data):
            raise MalformedInputError("Call data does not match the payload")
        return SignedOperation(
            public_key=public_key,
            chain_id=payload.chain_id,
            nonce=payload.nonce,
            reward=payload.reward,
            value=payload.value,
            target=payload.target,
            call_data=call_data,
            signature=signature,
        )

    def add_operation(self, operation: SignedOperation) -> Dict[str, Any]:
        """
        Send one signed operation to the aggregator.

        Returns:
            The service's JSON response

        Raises:
            AggregatorError: If the request fails or the service rejects it
        """
        self.logger.debug(f"Submitting operation nonce={operation.nonce} to {operation.target}")
        return self._request("POST", "/tx", json=operation.to_wire())

    def add_operations(self, operations: Sequence[SignedOperation]) -> List[Dict[str, Any]]:
        """Send several operations, stopping at the first failure"""
        return [self.add_operation(operation) for operation in operations]

    def health(self) -> bool:
        """True if the service reports itself healthy"""
        try:
            result = self._request("GET", "/health")
        except AggregatorError as e:
            self.logger.warning(f"Aggregator health check failed: {e}")
            return False
        return result.get("status") == "ok"

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            response = self.session.request(method, f"{self.base_url}{path}", timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            self.logger.error(f"Aggregator request failed: {e}")
            raise AggregatorError(f"Aggregator request failed: {str(e)}")

        if response.status_code >= 400:
            detail = response.text[:200]
            self.logger.error(f"Aggregator returned {response.status_code}: {detail}")
            raise AggregatorError(
                f"Aggregator returned HTTP {response.status_code}: {detail}",
                status_code=response.status_code,
            )

        try:
            result = response.json()
        except ValueError as e:
            raise AggregatorError(f"Invalid JSON response from aggregator: {str(e)}")
        if not isinstance(result, dict):
            raise AggregatorError(f"Unexpected aggregator response: {result!r}")
        if result.get("failures"):
            raise AggregatorError(f"Aggregator rejected the operation: {result['failures']}",
                                  status_code=response.status_code)
        return result
