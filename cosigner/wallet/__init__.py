"""
Cosigner Wallet Package

Provides:
  - MultisigWallet: two-signer wallet facade (authorize-and-send, batch)
  - AuthorizationEngine: submitter / expiry / sequence / co-signature pipeline
  - SequenceTracker: strict per-wallet sequence ids
  - BatchExecutor: all-or-nothing multi-recipient delivery
  - Ledger: in-memory host ledger with snapshot/revert
  - Forwarder: untrusted payment splitter
"""

from .types import (
    RejectReason,
    SignerRole,
    AuthorizationResult,
    WalletIdentity,
    Operation,
    BatchOperation,
    Transacted,
    BatchTransfer,
    BatchTransacted,
    Deposited,
    validate_batch_lengths,
)
from .sequence import SequenceTracker
from .authorization import AuthorizationEngine
from .ledger import Ledger, TransferContext, ReceiveHook
from .batch import BatchExecutor
from .forwarder import Forwarder, encode_batch_call, BATCH_FUNCTION
from .wallet import MultisigWallet, encode_send_multisig_call, SEND_MULTISIG_FUNCTION

__all__ = [
    "RejectReason",
    "SignerRole",
    "AuthorizationResult",
    "WalletIdentity",
    "Operation",
    "BatchOperation",
    "Transacted",
    "BatchTransfer",
    "BatchTransacted",
    "Deposited",
    "validate_batch_lengths",
    "SequenceTracker",
    "AuthorizationEngine",
    "Ledger",
    "TransferContext",
    "ReceiveHook",
    "BatchExecutor",
    "Forwarder",
    "encode_batch_call",
    "BATCH_FUNCTION",
    "MultisigWallet",
    "encode_send_multisig_call",
    "SEND_MULTISIG_FUNCTION",
]
