"""
Two-signer wallet facade.

A wallet has a fixed signer set. Moving funds needs two distinct signers:
one submits the call, the other supplies a signature over the operation
hash. Authorization failures change nothing; once authorization succeeds
the sequence id is spent whether or not the transfer then succeeds.
"""

from typing import Callable, FrozenSet, Iterable, Optional, Sequence

from ..config.loader import EngineConfig
from ..constants import DEFAULT_MAX_BATCH_RECIPIENTS, DEFAULT_MIN_SIGNERS
from ..crypto.address import to_checksum_address
from ..crypto.encoding import decode_function_call, encode_function_call
from ..crypto.signing import SignatureLike
from ..exceptions import (
    AuthorizationError,
    InsufficientFundsError,
    RecipientTransferError,
)
from ..logger import get_logger
from .authorization import AuthorizationEngine
from .batch import BatchExecutor
from .ledger import Ledger, TransferContext
from .sequence import SequenceTracker
from .types import (
    AuthorizationResult,
    BatchOperation,
    BatchTransacted,
    Deposited,
    Operation,
    Transacted,
    WalletIdentity,
    validate_batch_lengths,
)

logger = get_logger(__name__)

SEND_MULTISIG_FUNCTION = "sendMultiSig(address,uint256,bytes,uint256,uint256,bytes)"


def encode_send_multisig_call(
    to_address: str,
    value: int,
    data: bytes,
    expire_time: int,
    sequence_id: int,
    signature: bytes,
) -> bytes:
    """
    Call data for `send_multisig`, for a wallet that is itself a signer of
    another wallet and submits through its own payload.
    """
    return encode_function_call(
        SEND_MULTISIG_FUNCTION,
        to_checksum_address(to_address),
        value,
        bytes(data),
        expire_time,
        sequence_id,
        bytes(signature),
    )


class MultisigWallet:
    """
    Wallet bound to a ledger account and an authorization engine.

    Args:
        address: Ledger account of the wallet
        signers: Authorized signers, fixed for the wallet's lifetime
        ledger: Host ledger holding the balance
        engine: Authorization pipeline (shared engines share sequence state)
        min_signers: Minimum signer-set size
        max_batch_recipients: Upper bound on batch length
    """

    def __init__(
        self,
        address: str,
        signers: Iterable[str],
        ledger: Ledger,
        engine: AuthorizationEngine,
        min_signers: int = DEFAULT_MIN_SIGNERS,
        max_batch_recipients: int = DEFAULT_MAX_BATCH_RECIPIENTS,
    ):
        self.identity = WalletIdentity.create(address, signers, min_signers)
        self.ledger = ledger
        self.engine = engine
        self.max_batch_recipients = max_batch_recipients
        self.batch_executor = BatchExecutor(ledger, max_batch_recipients)
        ledger.register_hook(self.address, self._on_receive)
        logger.info(f"[wallet] {self.address} created with {len(self.identity.signers)} signers")

    @classmethod
    def from_config(
        cls,
        address: str,
        signers: Iterable[str],
        ledger: Ledger,
        config: Optional[EngineConfig] = None,
        sequence_tracker: Optional[SequenceTracker] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> "MultisigWallet":
        config = config or EngineConfig()
        engine = AuthorizationEngine.from_config(config, sequence_tracker, clock)
        return cls(
            address,
            signers,
            ledger,
            engine,
            min_signers=config.min_signers,
            max_batch_recipients=config.max_batch_recipients,
        )

    # --- read-only --------------------------------------------------------

    @property
    def address(self) -> str:
        return self.identity.address

    @property
    def signers(self) -> FrozenSet[str]:
        return self.identity.signers

    @property
    def balance(self) -> int:
        return self.ledger.balance_of(self.address)

    def is_signer(self, address: str) -> bool:
        return self.identity.is_signer(address)

    def get_next_sequence_id(self) -> int:
        """Next sequence id this wallet accepts."""
        return self.engine.next_expected(self.identity)

    # --- authorize-and-send -----------------------------------------------

    def _authorize(self, operation, signature, submitter, current_time) -> AuthorizationResult:
        result = self.engine.authorize(self.identity, operation, signature, submitter, current_time)
        if not result.authorized:
            raise AuthorizationError(result.reason, f"{result.reason.value}: {result.detail}")
        return result

    def send_multisig(
        self,
        submitter: str,
        to_address: str,
        value: int,
        data: bytes,
        expire_time: int,
        sequence_id: int,
        signature: SignatureLike,
        current_time: Optional[int] = None,
    ) -> Transacted:
        """
        Authorize and execute a single transfer.

        Raises:
            AuthorizationError: Rejected; nothing changed
            InsufficientFundsError: Authorized but balance too low; sequence id spent
            RecipientTransferError: Authorized but the recipient failed; sequence id spent
        """
        operation = Operation(to_address, value, data, expire_time, sequence_id)
        result = self._authorize(operation, signature, submitter, current_time)

        event = Transacted(
            wallet=self.address,
            msg_sender=result.submitter,
            other_signer=result.signer,
            operation_hash=result.operation_hash,
            to_address=operation.to_address,
            value=operation.value,
            data=operation.data,
            sequence_id=operation.sequence_id,
        )

        try:
            with self.ledger.transaction():
                if operation.value > self.balance:
                    raise InsufficientFundsError(
                        f"{self.address} has {self.balance}, needs {operation.value}"
                    )
                try:
                    self.ledger.transfer(
                        self.address, operation.to_address, operation.value, operation.data
                    )
                except Exception as exc:
                    raise RecipientTransferError(operation.to_address) from exc
                self.ledger.emit(event)
        except (InsufficientFundsError, RecipientTransferError) as exc:
            logger.error(
                f"[wallet] {self.address} seq={sequence_id} authorized but not executed: {exc}"
            )
            raise

        logger.info(
            f"[wallet] {self.address} seq={sequence_id} sent {operation.value} "
            f"to {operation.to_address}"
        )
        return event

    def send_multisig_batch(
        self,
        submitter: str,
        recipients: Sequence[str],
        values: Sequence[int],
        expire_time: int,
        sequence_id: int,
        signature: SignatureLike,
        current_time: Optional[int] = None,
    ) -> BatchTransacted:
        """
        Authorize and execute a batch, all-or-nothing.

        Raises:
            BatchLengthMismatchError: Lists invalid; checked before authorization
            AuthorizationError: Rejected; nothing changed
            InsufficientFundsError / RecipientTransferError: Authorized but
                not delivered; balance unchanged, sequence id spent
        """
        validate_batch_lengths(recipients, values, self.max_batch_recipients)
        batch = BatchOperation(tuple(recipients), tuple(values), expire_time, sequence_id)
        result = self._authorize(batch, signature, submitter, current_time)

        try:
            with self.ledger.transaction():
                transfers = self.batch_executor.execute(self.address, batch)
                event = BatchTransacted(
                    wallet=self.address,
                    msg_sender=result.submitter,
                    other_signer=result.signer,
                    operation_hash=result.operation_hash,
                    sequence_id=batch.sequence_id,
                    transfers=tuple(transfers),
                )
                self.ledger.emit(event)
        except (InsufficientFundsError, RecipientTransferError) as exc:
            logger.error(
                f"[wallet] {self.address} seq={sequence_id} batch authorized but not executed: {exc}"
            )
            raise

        logger.info(
            f"[wallet] {self.address} seq={sequence_id} batch of {len(transfers)} "
            f"sent {event.total_value}"
        )
        return event

    # --- inbound ----------------------------------------------------------

    def _on_receive(self, ctx: TransferContext) -> None:
        if ctx.value > 0:
            ctx.ledger.emit(Deposited(self.address, ctx.sender, ctx.value, ctx.data))

        call = decode_function_call(SEND_MULTISIG_FUNCTION, ctx.data)
        if call is None:
            return
        to_address, value, data, expire_time, sequence_id, signature = call
        # The calling account is the submitter, even if it is itself a wallet.
        self.send_multisig(ctx.sender, to_address, value, data, expire_time, sequence_id, signature)

    def __repr__(self) -> str:
        return f"MultisigWallet({self.address}, signers={len(self.signers)})"
