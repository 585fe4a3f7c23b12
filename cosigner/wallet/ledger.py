"""
In-memory host ledger.

Stands in for the execution environment that owns balances: accounts,
value transfers, recipient code (receive hooks) and an event log, with
snapshot/revert so that a failed call leaves no trace.
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Type

from ..crypto.address import to_checksum_address
from ..crypto.encoding import require_uint256
from ..exceptions import InsufficientFundsError
from ..logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class TransferContext:
    """What a recipient's receive hook sees."""
    ledger: "Ledger"
    sender: str
    recipient: str
    value: int
    data: bytes


ReceiveHook = Callable[[TransferContext], None]


class Ledger:
    """
    Balances, recipient hooks and an append-only event log.

    All mutation runs under one re-entrant lock, so calls are totally
    ordered the way a host chain orders them. Hooks run while the lock is
    held and may call back into the ledger.
    """

    def __init__(self):
        self._balances: Dict[str, int] = {}
        self._hooks: Dict[str, ReceiveHook] = {}
        self._events: List[Any] = []
        self._snapshots: List[Tuple[Dict[str, int], int]] = []
        self._lock = threading.RLock()

    # --- accounts ---------------------------------------------------------

    def balance_of(self, address: str) -> int:
        with self._lock:
            return self._balances.get(to_checksum_address(address), 0)

    def credit(self, address: str, value: int) -> None:
        """Add value from outside the ledger (genesis funding, faucet)."""
        require_uint256("value", value)
        key = to_checksum_address(address)
        with self._lock:
            self._balances[key] = self._balances.get(key, 0) + value

    def register_hook(self, address: str, hook: ReceiveHook) -> None:
        """Attach recipient code to an address. Raising from it rejects the transfer."""
        with self._lock:
            self._hooks[to_checksum_address(address)] = hook

    def unregister_hook(self, address: str) -> None:
        with self._lock:
            self._hooks.pop(to_checksum_address(address), None)

    # --- events -----------------------------------------------------------

    def emit(self, event: Any) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> Tuple[Any, ...]:
        with self._lock:
            return tuple(self._events)

    def events_of(self, event_type: Type) -> List[Any]:
        return [e for e in self.events if isinstance(e, event_type)]

    # --- snapshots --------------------------------------------------------

    def snapshot(self) -> int:
        """Push a snapshot of balances and the event log; returns its id."""
        with self._lock:
            self._snapshots.append((dict(self._balances), len(self._events)))
            return len(self._snapshots) - 1

    def revert(self, snapshot_id: int) -> None:
        """Restore snapshot `snapshot_id` and drop it and every newer one."""
        with self._lock:
            if snapshot_id < 0 or snapshot_id >= len(self._snapshots):
                raise ValueError(f"Invalid snapshot ID: {snapshot_id}")
            balances, event_count = self._snapshots[snapshot_id]
            self._balances = balances
            del self._events[event_count:]
            del self._snapshots[snapshot_id:]

    def commit(self, snapshot_id: int) -> None:
        """Keep current state and drop snapshot `snapshot_id` and newer ones."""
        with self._lock:
            if snapshot_id < 0 or snapshot_id >= len(self._snapshots):
                raise ValueError(f"Invalid snapshot ID: {snapshot_id}")
            del self._snapshots[snapshot_id:]

    @contextmanager
    def transaction(self) -> Iterator["Ledger"]:
        """
        All-or-nothing scope: any exception inside restores the state at
        entry and propagates. Nests.
        """
        with self._lock:
            snapshot_id = self.snapshot()
            try:
                yield self
            except BaseException:
                self.revert(snapshot_id)
                raise
            else:
                self.commit(snapshot_id)

    # --- transfers --------------------------------------------------------

    def transfer(self, sender: str, recipient: str, value: int, data: bytes = b"") -> None:
        """
        Move `value` from sender to recipient, then run the recipient's hook.

        Raises:
            InsufficientFundsError: If sender cannot cover `value`
            Exception: Whatever the recipient hook raises; state is reverted
        """
        require_uint256("value", value)
        sender = to_checksum_address(sender)
        recipient = to_checksum_address(recipient)

        with self.transaction():
            available = self._balances.get(sender, 0)
            if available < value:
                raise InsufficientFundsError(
                    f"{sender} has {available}, needs {value}"
                )
            self._balances[sender] = available - value
            self._balances[recipient] = self._balances.get(recipient, 0) + value

            hook: Optional[ReceiveHook] = self._hooks.get(recipient)
            if hook is not None:
                hook(TransferContext(self, sender, recipient, value, bytes(data)))

        logger.debug(f"[ledger] {sender} -> {recipient} value={value}")
