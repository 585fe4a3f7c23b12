"""
Per-wallet sequence ids.

Every wallet starts at INITIAL_SEQUENCE_ID and accepts only the exact next
value. `try_consume` is the single atomic commit point of authorization:
two callers presenting the same id get exactly one success.
"""

import threading
from typing import Dict

from ..constants import INITIAL_SEQUENCE_ID
from ..crypto.address import to_checksum_address


class SequenceTracker:
    """
    Strict, gap-free sequence counter keyed by wallet address.
    """

    def __init__(self, initial_sequence_id: int = INITIAL_SEQUENCE_ID):
        self._initial = initial_sequence_id
        self._next: Dict[str, int] = {}
        self._lock = threading.Lock()

    def next_expected(self, wallet_address: str) -> int:
        """Sequence id the wallet will accept next."""
        key = to_checksum_address(wallet_address)
        with self._lock:
            return self._next.get(key, self._initial)

    def try_consume(self, wallet_address: str, sequence_id: int) -> bool:
        """
        Consume `sequence_id` if it is exactly the next expected value.

        Returns:
            True if consumed; False if it was stale, ahead, or lost a race
        """
        key = to_checksum_address(wallet_address)
        with self._lock:
            expected = self._next.get(key, self._initial)
            if sequence_id != expected:
                return False
            self._next[key] = expected + 1
            return True

    def to_dict(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._next)
