"""
Untrusted payment forwarder.

Splits one inbound payment across a recipient list. It does NOT check that
the inbound value equals the sum it pays out: any surplus stays in its
balance, and any caller can later pay that surplus to itself with a
zero-value call. Nothing in the wallet relies on this contract conserving
value or holding a zero balance between calls.
"""

from typing import List, Sequence

from ..crypto.address import to_checksum_address
from ..crypto.encoding import decode_function_call, encode_function_call
from ..logger import get_logger
from .ledger import Ledger, TransferContext
from .types import BatchTransfer, validate_batch_lengths

logger = get_logger(__name__)

BATCH_FUNCTION = "batch(address[],uint256[])"


def encode_batch_call(recipients: Sequence[str], values: Sequence[int]) -> bytes:
    """Call data for Forwarder.batch, usable as an operation payload."""
    return encode_function_call(
        BATCH_FUNCTION,
        [to_checksum_address(r) for r in recipients],
        list(values),
    )


class Forwarder:
    """
    Ledger account that forwards `batch(address[],uint256[])` calls.

    Args:
        ledger: Host ledger
        address: Account address of the forwarder
    """

    def __init__(self, ledger: Ledger, address: str):
        self.ledger = ledger
        self.address = to_checksum_address(address)
        ledger.register_hook(self.address, self._on_receive)

    @property
    def balance(self) -> int:
        """Surplus currently claimable by anyone."""
        return self.ledger.balance_of(self.address)

    def batch(
        self,
        caller: str,
        recipients: Sequence[str],
        values: Sequence[int],
        value: int = 0,
    ) -> List[BatchTransfer]:
        """
        Pay `value` from `caller` into the forwarder and distribute `values`.

        No authentication and no conservation check. If the forwarder's
        balance cannot cover the payouts, the whole call is rolled back.
        """
        before = len(self.ledger.events)
        self.ledger.transfer(caller, self.address, value, encode_batch_call(recipients, values))
        return [e for e in self.ledger.events[before:] if isinstance(e, BatchTransfer)
                and e.sender == self.address]

    def _on_receive(self, ctx: TransferContext) -> None:
        call = decode_function_call(BATCH_FUNCTION, ctx.data)
        if call is None:
            # Plain payment: kept, claimable by the next batch call.
            return
        recipients, values = call
        validate_batch_lengths(recipients, values)

        declared = sum(values)
        if declared != ctx.value:
            logger.warning(
                f"[forwarder] {self.address} received {ctx.value} for payouts of {declared}"
            )

        for recipient, amount in zip(recipients, values):
            ctx.ledger.transfer(self.address, recipient, amount)
            ctx.ledger.emit(BatchTransfer(sender=self.address, recipient=recipient, value=amount))
