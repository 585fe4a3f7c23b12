"""
All-or-nothing multi-recipient execution.
"""

from typing import List, Optional

from ..constants import DEFAULT_MAX_BATCH_RECIPIENTS
from ..crypto.address import to_checksum_address
from ..exceptions import InsufficientFundsError, RecipientTransferError
from ..logger import get_logger
from .ledger import Ledger
from .types import BatchOperation, BatchTransfer, validate_batch_lengths

logger = get_logger(__name__)


class BatchExecutor:
    """
    Delivers a BatchOperation in list order inside one ledger transaction.

    If any delivery fails, every earlier delivery is rolled back and the
    wallet balance is exactly what it was before the call.
    """

    def __init__(self, ledger: Ledger, max_recipients: int = DEFAULT_MAX_BATCH_RECIPIENTS):
        self.ledger = ledger
        self.max_recipients = max_recipients

    def execute(
        self,
        wallet_address: str,
        batch: BatchOperation,
        funds_available: Optional[int] = None,
    ) -> List[BatchTransfer]:
        """
        Execute every transfer of `batch` from `wallet_address`.

        Args:
            wallet_address: Paying wallet
            batch: Authorized batch operation
            funds_available: Spendable amount; defaults to the wallet's ledger balance

        Returns:
            Delivered transfers, in order

        Raises:
            BatchLengthMismatchError: On empty, unequal or oversized lists
            InsufficientFundsError: If the total exceeds the funds available
            RecipientTransferError: If any recipient fails; nothing is delivered
        """
        validate_batch_lengths(batch.recipients, batch.values, self.max_recipients)
        wallet_address = to_checksum_address(wallet_address)

        if funds_available is None:
            funds_available = self.ledger.balance_of(wallet_address)
        total = batch.total_value
        if total > funds_available:
            raise InsufficientFundsError(
                f"Batch total {total} exceeds available funds {funds_available}"
            )

        transfers: List[BatchTransfer] = []
        with self.ledger.transaction():
            for index, (recipient, value) in enumerate(zip(batch.recipients, batch.values)):
                try:
                    self.ledger.transfer(wallet_address, recipient, value)
                except Exception as exc:
                    logger.error(
                        f"[batch] {wallet_address} seq={batch.sequence_id} delivery "
                        f"{index} to {recipient} failed ({type(exc).__name__}: {exc}); rolling back"
                    )
                    raise RecipientTransferError(recipient, index) from exc
                transfer = BatchTransfer(sender=wallet_address, recipient=recipient, value=value)
                self.ledger.emit(transfer)
                transfers.append(transfer)

        return transfers
