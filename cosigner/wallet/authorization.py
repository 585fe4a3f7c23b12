"""
Multi-party authorization pipeline.

Checks, in order, short-circuiting on the first failure:

  1. submitter is an authorized signer          → UNAUTHORIZED_SUBMITTER
  2. expire_time is still in the future         → EXPIRED
  3. sequence_id is the wallet's next expected  → SEQUENCE_MISMATCH
  4. signature recovers to a *different* signer → MALFORMED_SIGNATURE / BAD_SIGNATURE
  5. consume the sequence id (atomic)           → SEQUENCE_MISMATCH on a lost race

Only step 5 changes state. The operation hash does not include the wallet
address, so a co-signature is valid on every wallet that shares the signer
and the sequence id.
"""

import time
from typing import Callable, Optional, Union

from ..config.loader import EngineConfig
from ..constants import DEFAULT_BATCH_PREFIX, DEFAULT_NATIVE_PREFIX
from ..crypto.address import is_valid_address, to_checksum_address
from ..crypto.signing import SignatureLike, verify_signer
from ..exceptions import MalformedSignatureError
from ..logger import get_logger
from .sequence import SequenceTracker
from .types import (
    AuthorizationResult,
    BatchOperation,
    Operation,
    RejectReason,
    WalletIdentity,
)

logger = get_logger(__name__)


class AuthorizationEngine:
    """
    Decides whether a co-signed operation may execute against a wallet.

    Args:
        sequence_tracker: Shared per-wallet sequence state
        native_prefix: Domain tag for single-recipient operations
        batch_prefix: Domain tag for batch operations
        clock: Returns current unix time in seconds
    """

    def __init__(
        self,
        sequence_tracker: Optional[SequenceTracker] = None,
        native_prefix: str = DEFAULT_NATIVE_PREFIX,
        batch_prefix: str = DEFAULT_BATCH_PREFIX,
        clock: Optional[Callable[[], int]] = None,
    ):
        if native_prefix == batch_prefix:
            raise ValueError("Single and batch domain prefixes must differ")
        self.sequence_tracker = sequence_tracker or SequenceTracker()
        self.native_prefix = native_prefix
        self.batch_prefix = batch_prefix
        self._clock = clock or (lambda: int(time.time()))

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        sequence_tracker: Optional[SequenceTracker] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> "AuthorizationEngine":
        config.validate()
        return cls(
            sequence_tracker=sequence_tracker,
            native_prefix=config.native_prefix,
            batch_prefix=config.batch_prefix,
            clock=clock,
        )

    def next_expected(self, wallet: WalletIdentity) -> int:
        return self.sequence_tracker.next_expected(wallet.address)

    def operation_hash(self, operation: Union[Operation, BatchOperation]) -> bytes:
        """Hash a co-signer must sign for `operation`."""
        if isinstance(operation, BatchOperation):
            return operation.hash(self.batch_prefix)
        return operation.hash(self.native_prefix)

    def authorize(
        self,
        wallet: WalletIdentity,
        operation: Union[Operation, BatchOperation],
        signature: SignatureLike,
        submitter: str,
        current_time: Optional[int] = None,
    ) -> AuthorizationResult:
        """
        Run the pipeline for a single or batch operation.

        Args:
            wallet: Target wallet identity
            operation: Operation or BatchOperation
            signature: Co-signer's 65-byte signature over the operation hash
            submitter: Account submitting the operation
            current_time: Unix time to check expiry against (defaults to clock)

        Returns:
            AuthorizationResult; a rejection leaves all state unchanged
        """
        now = current_time if current_time is not None else self._clock()

        # 1. Submitter
        if not is_valid_address(submitter) or not wallet.is_signer(submitter):
            return self._rejected(wallet, operation, RejectReason.UNAUTHORIZED_SUBMITTER,
                                  f"{submitter} is not a signer")
        submitter = to_checksum_address(submitter)

        # 2. Expiry
        if operation.expire_time <= now:
            return self._rejected(wallet, operation, RejectReason.EXPIRED,
                                  f"expired at {operation.expire_time}, now {now}", submitter)

        # 3. Sequence
        expected = self.sequence_tracker.next_expected(wallet.address)
        if operation.sequence_id != expected:
            return self._rejected(wallet, operation, RejectReason.SEQUENCE_MISMATCH,
                                  f"expected seq={expected}", submitter)

        # 4. Co-signature from a signer other than the submitter
        op_hash = self.operation_hash(operation)
        candidates = wallet.signers - {submitter}
        try:
            signer = verify_signer(op_hash, signature, candidates)
        except MalformedSignatureError as e:
            return self._rejected(wallet, operation, RejectReason.MALFORMED_SIGNATURE,
                                  str(e), submitter, op_hash)
        if signer is None:
            return self._rejected(wallet, operation, RejectReason.BAD_SIGNATURE,
                                  "signature is not from another authorized signer",
                                  submitter, op_hash)

        # 5. Commit
        if not self.sequence_tracker.try_consume(wallet.address, operation.sequence_id):
            return self._rejected(wallet, operation, RejectReason.SEQUENCE_MISMATCH,
                                  "sequence id consumed concurrently", submitter, op_hash)

        logger.info(
            f"[auth] {wallet.address} seq={operation.sequence_id} authorized "
            f"submitter={submitter} cosigner={signer} hash=0x{op_hash.hex()}"
        )
        return AuthorizationResult.accept(submitter, signer, op_hash)

    def _rejected(
        self,
        wallet: WalletIdentity,
        operation,
        reason: RejectReason,
        detail: str,
        submitter: Optional[str] = None,
        op_hash: Optional[bytes] = None,
    ) -> AuthorizationResult:
        logger.warning(
            f"[auth] {wallet.address} seq={operation.sequence_id} rejected "
            f"{reason.value}: {detail}"
        )
        return AuthorizationResult.reject(reason, detail, submitter, op_hash)
