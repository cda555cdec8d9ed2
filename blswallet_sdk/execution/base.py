"""
Interface between the dispatcher and whatever actually runs calls.
"""
from typing import Protocol, Tuple


class CallExecutor(Protocol):
    """Protocol for execution environments"""

    def apply_call(self, sender: str, target: str, call_data: bytes, value: int) -> Tuple[bool, bytes]:
        """
        Run one call on behalf of ``sender``.

        Returns ``(success, return_data)``. Implementations may instead raise
        ``ExecutionFailure``; either way the failure is scoped to this call.
        """
        ...
