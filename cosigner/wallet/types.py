"""
Wallet, operation and audit-record types.

Operations are immutable once built. Identities are normalized to EIP-55
checksum strings on construction so that every comparison and every hash
sees the same form regardless of how the caller typed them.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Optional, Sequence, Tuple

from ..constants import DEFAULT_MIN_SIGNERS
from ..crypto.address import to_checksum_address
from ..crypto.encoding import (
    batch_operation_hash,
    encode_batch_operation,
    encode_operation,
    operation_hash,
    require_uint256,
)
from ..crypto.hashing import keccak256
from ..exceptions import BatchLengthMismatchError, InvalidAddressError


# ═══════════════════════════════════════════════════════════════════════
# AUTHORIZATION OUTCOMES
# ═══════════════════════════════════════════════════════════════════════

class RejectReason(str, Enum):
    """Why the authorization pipeline refused an operation."""
    UNAUTHORIZED_SUBMITTER = "UNAUTHORIZED_SUBMITTER"
    EXPIRED = "EXPIRED"
    SEQUENCE_MISMATCH = "SEQUENCE_MISMATCH"
    BAD_SIGNATURE = "BAD_SIGNATURE"
    MALFORMED_SIGNATURE = "MALFORMED_SIGNATURE"


class SignerRole(Enum):
    """The two distinct signer roles every operation needs."""
    SUBMITTER = "submitter"
    COSIGNER = "cosigner"


@dataclass(frozen=True)
class AuthorizationResult:
    """
    Outcome of AuthorizationEngine.authorize.

    Either `authorized` with the recovered co-signer in `signer`, or
    rejected with a `reason`. A rejected result never consumed a sequence id.
    """
    authorized: bool
    submitter: Optional[str] = None
    signer: Optional[str] = None
    reason: Optional[RejectReason] = None
    operation_hash: Optional[bytes] = None
    detail: str = ""

    @classmethod
    def accept(cls, submitter: str, signer: str, op_hash: bytes) -> "AuthorizationResult":
        return cls(authorized=True, submitter=submitter, signer=signer, operation_hash=op_hash)

    @classmethod
    def reject(
        cls,
        reason: RejectReason,
        detail: str = "",
        submitter: Optional[str] = None,
        op_hash: Optional[bytes] = None,
    ) -> "AuthorizationResult":
        return cls(
            authorized=False,
            submitter=submitter,
            reason=reason,
            operation_hash=op_hash,
            detail=detail,
        )

    @property
    def roles(self) -> Dict[SignerRole, str]:
        """Resolved signer roles; empty unless authorized."""
        if not self.authorized:
            return {}
        return {SignerRole.SUBMITTER: self.submitter, SignerRole.COSIGNER: self.signer}

    def to_dict(self) -> Dict:
        return {
            "authorized": self.authorized,
            "submitter": self.submitter,
            "signer": self.signer,
            "reason": self.reason.value if self.reason else None,
            "operation_hash": "0x" + self.operation_hash.hex() if self.operation_hash else None,
            "detail": self.detail,
        }


# ═══════════════════════════════════════════════════════════════════════
# WALLET IDENTITY
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class WalletIdentity:
    """
    A wallet's address and its fixed set of authorized signers.

    Attributes:
        address: Checksum address of the wallet
        signers: Checksum addresses allowed to submit or co-sign
    """
    address: str
    signers: FrozenSet[str]

    @classmethod
    def create(
        cls,
        address: str,
        signers: Iterable[str],
        min_signers: int = DEFAULT_MIN_SIGNERS,
    ) -> "WalletIdentity":
        """
        Validate and normalize a signer set.

        Raises:
            InvalidAddressError: On malformed addresses
            ValueError: On duplicate signers or fewer than `min_signers`
        """
        signer_list = [to_checksum_address(s) for s in signers]
        if len(set(signer_list)) != len(signer_list):
            raise ValueError("Signer set contains duplicate addresses")
        if len(signer_list) < min_signers:
            raise ValueError(
                f"Wallet needs at least {min_signers} signers, got {len(signer_list)}"
            )
        return cls(address=to_checksum_address(address), signers=frozenset(signer_list))

    def is_signer(self, address: str) -> bool:
        try:
            return to_checksum_address(address) in self.signers
        except InvalidAddressError:
            return False


# ═══════════════════════════════════════════════════════════════════════
# OPERATIONS
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Operation:
    """
    A single-recipient transfer awaiting authorization.

    Attributes:
        to_address: Destination
        value: Amount in the smallest unit
        data: Opaque payload forwarded to the destination
        expire_time: Absolute unix time (seconds) after which it is void
        sequence_id: Wallet nonce this operation consumes
    """
    to_address: str
    value: int
    data: bytes = b""
    expire_time: int = 0
    sequence_id: int = 0

    def __post_init__(self):
        object.__setattr__(self, "to_address", to_checksum_address(self.to_address))
        object.__setattr__(self, "data", bytes(self.data))
        require_uint256("value", self.value)
        require_uint256("expire_time", self.expire_time)
        require_uint256("sequence_id", self.sequence_id)

    def encode(self, prefix: str) -> bytes:
        return encode_operation(
            prefix, self.to_address, self.value, self.data, self.expire_time, self.sequence_id
        )

    def hash(self, prefix: str) -> bytes:
        return operation_hash(
            prefix, self.to_address, self.value, self.data, self.expire_time, self.sequence_id
        )


def validate_batch_lengths(
    recipients: Sequence, values: Sequence, max_recipients: Optional[int] = None
) -> None:
    """
    Raises:
        BatchLengthMismatchError: On empty, unequal or oversized lists
    """
    if len(recipients) == 0:
        raise BatchLengthMismatchError("Batch must have at least one recipient")
    if len(recipients) != len(values):
        raise BatchLengthMismatchError(
            f"Unequal batch lengths: {len(recipients)} recipients, {len(values)} values"
        )
    if max_recipients is not None and len(recipients) > max_recipients:
        raise BatchLengthMismatchError(
            f"Too many recipients: {len(recipients)} > {max_recipients}"
        )


@dataclass(frozen=True)
class BatchOperation:
    """
    A multi-recipient transfer awaiting authorization.

    `recipients` and `values` are parallel; order is delivery order.
    """
    recipients: Tuple[str, ...]
    values: Tuple[int, ...]
    expire_time: int = 0
    sequence_id: int = 0

    def __post_init__(self):
        validate_batch_lengths(self.recipients, self.values)
        object.__setattr__(
            self, "recipients", tuple(to_checksum_address(r) for r in self.recipients)
        )
        object.__setattr__(
            self, "values", tuple(require_uint256("value", v) for v in self.values)
        )
        require_uint256("expire_time", self.expire_time)
        require_uint256("sequence_id", self.sequence_id)

    @property
    def total_value(self) -> int:
        return sum(self.values)

    def encode(self, prefix: str) -> bytes:
        return encode_batch_operation(
            prefix, self.recipients, self.values, self.expire_time, self.sequence_id
        )

    def hash(self, prefix: str) -> bytes:
        return batch_operation_hash(
            prefix, self.recipients, self.values, self.expire_time, self.sequence_id
        )


# ═══════════════════════════════════════════════════════════════════════
# AUDIT RECORDS
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Transacted:
    """Single-recipient operation executed."""
    wallet: str
    msg_sender: str
    other_signer: str
    operation_hash: bytes
    to_address: str
    value: int
    data: bytes
    sequence_id: int

    @property
    def data_hash(self) -> bytes:
        return keccak256(self.data)

    def to_dict(self) -> Dict:
        return {
            "event": "Transacted",
            "wallet": self.wallet,
            "msg_sender": self.msg_sender,
            "other_signer": self.other_signer,
            "operation_hash": "0x" + self.operation_hash.hex(),
            "to_address": self.to_address,
            "value": self.value,
            "data_hash": "0x" + self.data_hash.hex(),
            "sequence_id": self.sequence_id,
        }


@dataclass(frozen=True)
class BatchTransfer:
    """One delivery inside a batch or forwarder call."""
    sender: str
    recipient: str
    value: int


@dataclass(frozen=True)
class BatchTransacted:
    """Batch operation executed; individual deliveries are BatchTransfer records."""
    wallet: str
    msg_sender: str
    other_signer: str
    operation_hash: bytes
    sequence_id: int
    transfers: Tuple[BatchTransfer, ...] = field(default_factory=tuple)

    @property
    def total_value(self) -> int:
        return sum(t.value for t in self.transfers)

    def to_dict(self) -> Dict:
        return {
            "event": "BatchTransacted",
            "wallet": self.wallet,
            "msg_sender": self.msg_sender,
            "other_signer": self.other_signer,
            "operation_hash": "0x" + self.operation_hash.hex(),
            "sequence_id": self.sequence_id,
            "transfers": [
                {"recipient": t.recipient, "value": t.value} for t in self.transfers
            ],
        }


@dataclass(frozen=True)
class Deposited:
    """Inbound payment to a wallet."""
    wallet: str
    sender: str
    value: int
    data: bytes = b""
