"""
Tests for the wallet facade and its host ledger.

Covers:
  - Ledger: balances, receive hooks, nested all-or-nothing transactions
  - BatchExecutor: ordered delivery, rollback on any failed recipient
  - MultisigWallet.send_multisig / send_multisig_batch end to end
  - Sequence ids spent by authorized-but-failed executions
  - Deposits, audit records and configuration-driven construction
"""

import pytest

from cosigner.config import EngineConfig
from cosigner.crypto import PrivateKey, keccak256, sign_operation_hash, to_checksum_address
from cosigner.exceptions import (
    AuthorizationError,
    BatchLengthMismatchError,
    ExecutionError,
    InsufficientFundsError,
    RecipientTransferError,
)
from cosigner.wallet import (
    AuthorizationEngine,
    BatchExecutor,
    BatchOperation,
    BatchTransacted,
    BatchTransfer,
    Deposited,
    Ledger,
    MultisigWallet,
    Operation,
    RejectReason,
    SequenceTracker,
    Transacted,
)

NOW = 1_700_000_000
EXPIRES = NOW + 120
ETHER = 10 ** 18

WALLET = to_checksum_address("0x" + "a1" * 20)
ALICE = to_checksum_address("0x" + "05" * 20)
BOB = to_checksum_address("0x" + "06" * 20)
CAROL = to_checksum_address("0x" + "07" * 20)


# ══════════════════════════════════════════════════════════════════════
#  FIXTURES
# ══════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="module")
def keys():
    """Signers 0-2 and an outsider at index 3."""
    return [PrivateKey.from_int(0x2000 + i) for i in range(4)]


@pytest.fixture
def ledger():
    return Ledger()


@pytest.fixture
def engine():
    return AuthorizationEngine(SequenceTracker(), clock=lambda: NOW)


@pytest.fixture
def wallet(ledger, engine, keys):
    """Wallet funded with 2000 ETH."""
    w = MultisigWallet(WALLET, [k.address for k in keys[:3]], ledger, engine)
    ledger.credit(w.address, 2000 * ETHER)
    return w


def rejecting_hook(ctx):
    raise RuntimeError("recipient rejects payment")


def send(wallet, submitter, cosigner, to, value, data=b"", sequence_id=None, expire_time=EXPIRES):
    if sequence_id is None:
        sequence_id = wallet.get_next_sequence_id()
    op = Operation(to, value, data, expire_time, sequence_id)
    sig = sign_operation_hash(cosigner, wallet.engine.operation_hash(op))
    return wallet.send_multisig(submitter.address, to, value, data, expire_time, sequence_id, sig)


def send_batch(wallet, submitter, cosigner, recipients, values, sequence_id=None):
    if sequence_id is None:
        sequence_id = wallet.get_next_sequence_id()
    batch = BatchOperation(tuple(recipients), tuple(values), EXPIRES, sequence_id)
    sig = sign_operation_hash(cosigner, wallet.engine.operation_hash(batch))
    return wallet.send_multisig_batch(
        submitter.address, recipients, values, EXPIRES, sequence_id, sig
    )


# ══════════════════════════════════════════════════════════════════════
#  1. LEDGER
# ══════════════════════════════════════════════════════════════════════

class TestLedger:
    """Balances, hooks and snapshots."""

    def test_credit_and_balance(self, ledger):
        ledger.credit(WALLET, 10)
        assert ledger.balance_of(WALLET) == 10
        assert ledger.balance_of(WALLET.lower()) == 10
        assert ledger.balance_of(BOB) == 0

    def test_transfer(self, ledger):
        ledger.credit(ALICE, 10)
        ledger.transfer(ALICE, BOB, 4)
        assert ledger.balance_of(ALICE) == 6
        assert ledger.balance_of(BOB) == 4

    def test_insufficient_funds(self, ledger):
        ledger.credit(ALICE, 3)
        with pytest.raises(InsufficientFundsError):
            ledger.transfer(ALICE, BOB, 4)
        assert ledger.balance_of(ALICE) == 3

    def test_hook_sees_transfer(self, ledger):
        seen = []
        ledger.register_hook(BOB, seen.append)
        ledger.credit(ALICE, 10)
        ledger.transfer(ALICE, BOB, 4, b"\x01\x02")

        assert len(seen) == 1
        assert seen[0].sender == ALICE
        assert seen[0].value == 4
        assert seen[0].data == b"\x01\x02"
        assert ledger.balance_of(BOB) == 4

    def test_hook_failure_reverts(self, ledger):
        ledger.register_hook(BOB, rejecting_hook)
        ledger.credit(ALICE, 10)
        with pytest.raises(RuntimeError, match="rejects"):
            ledger.transfer(ALICE, BOB, 4)
        assert ledger.balance_of(ALICE) == 10
        assert ledger.balance_of(BOB) == 0

    def test_unregister_hook(self, ledger):
        ledger.register_hook(BOB, rejecting_hook)
        ledger.unregister_hook(BOB)
        ledger.credit(ALICE, 10)
        ledger.transfer(ALICE, BOB, 4)
        assert ledger.balance_of(BOB) == 4

    def test_transaction_reverts_events_and_balances(self, ledger):
        ledger.credit(ALICE, 10)
        with pytest.raises(ValueError):
            with ledger.transaction():
                ledger.transfer(ALICE, BOB, 4)
                ledger.emit("event")
                raise ValueError("abort")
        assert ledger.balance_of(BOB) == 0
        assert ledger.events == ()

    def test_nested_inner_failure_keeps_outer(self, ledger):
        ledger.credit(ALICE, 10)
        with ledger.transaction():
            ledger.transfer(ALICE, BOB, 1)
            with pytest.raises(InsufficientFundsError):
                ledger.transfer(ALICE, BOB, 100)
        assert ledger.balance_of(BOB) == 1

    def test_committed_snapshots_are_dropped(self, ledger):
        with ledger.transaction():
            pass
        with pytest.raises(ValueError, match="snapshot"):
            ledger.revert(0)

    def test_events_of(self, ledger):
        ledger.emit(BatchTransfer(ALICE, BOB, 1))
        ledger.emit("other")
        assert ledger.events_of(BatchTransfer) == [BatchTransfer(ALICE, BOB, 1)]

    def test_reject_negative_transfer(self, ledger):
        with pytest.raises(ValueError):
            ledger.transfer(ALICE, BOB, -1)


# ══════════════════════════════════════════════════════════════════════
#  2. BATCH EXECUTOR
# ══════════════════════════════════════════════════════════════════════

class TestBatchExecutor:
    """All-or-nothing multi-recipient delivery."""

    def test_delivers_in_order(self, ledger):
        ledger.credit(WALLET, 10)
        executor = BatchExecutor(ledger)
        transfers = executor.execute(WALLET, BatchOperation((ALICE, BOB), (2, 3), EXPIRES, 1))

        assert [t.recipient for t in transfers] == [ALICE, BOB]
        assert ledger.balance_of(ALICE) == 2
        assert ledger.balance_of(BOB) == 3
        assert ledger.balance_of(WALLET) == 5
        assert ledger.events_of(BatchTransfer) == transfers

    def test_failed_recipient_rolls_back_all(self, ledger):
        ledger.credit(WALLET, 10)
        ledger.register_hook(BOB, rejecting_hook)
        executor = BatchExecutor(ledger)

        with pytest.raises(RecipientTransferError) as exc_info:
            executor.execute(WALLET, BatchOperation((ALICE, BOB, CAROL), (2, 3, 4), EXPIRES, 1))

        assert exc_info.value.index == 1
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert ledger.balance_of(WALLET) == 10
        assert ledger.balance_of(ALICE) == 0
        assert ledger.events == ()

    def test_total_exceeds_balance(self, ledger):
        ledger.credit(WALLET, 4)
        with pytest.raises(InsufficientFundsError, match="exceeds"):
            BatchExecutor(ledger).execute(WALLET, BatchOperation((ALICE, BOB), (2, 3), EXPIRES, 1))
        assert ledger.balance_of(WALLET) == 4

    def test_explicit_funds_available(self, ledger):
        ledger.credit(WALLET, 10)
        with pytest.raises(InsufficientFundsError):
            BatchExecutor(ledger).execute(
                WALLET, BatchOperation((ALICE,), (5,), EXPIRES, 1), funds_available=4
            )

    def test_too_many_recipients(self, ledger):
        ledger.credit(WALLET, 10)
        with pytest.raises(BatchLengthMismatchError, match="Too many"):
            BatchExecutor(ledger, max_recipients=1).execute(
                WALLET, BatchOperation((ALICE, BOB), (1, 1), EXPIRES, 1)
            )

    def test_unequal_lengths_rejected_at_construction(self):
        with pytest.raises(BatchLengthMismatchError, match="Unequal"):
            BatchOperation((ALICE, BOB), (1,), EXPIRES, 1)

    def test_empty_rejected(self):
        with pytest.raises(BatchLengthMismatchError, match="at least one"):
            BatchOperation((), (), EXPIRES, 1)


# ══════════════════════════════════════════════════════════════════════
#  3. SINGLE SEND
# ══════════════════════════════════════════════════════════════════════

class TestSendMultisig:

    def test_send(self, wallet, ledger, keys):
        event = send(wallet, keys[0], keys[1], ALICE, 6)

        assert isinstance(event, Transacted)
        assert event.msg_sender == keys[0].address
        assert event.other_signer == keys[1].address
        assert event.value == 6
        assert event.sequence_id == 1
        assert ledger.balance_of(ALICE) == 6
        assert wallet.balance == 2000 * ETHER - 6
        assert wallet.get_next_sequence_id() == 2
        assert ledger.events_of(Transacted) == [event]

    def test_record_to_dict(self, wallet, keys):
        event = send(wallet, keys[0], keys[1], ALICE, 6, data=b"memo")
        data = event.to_dict()
        assert data["event"] == "Transacted"
        assert data["data_hash"] == "0x" + keccak256(b"memo").hex()
        assert data["operation_hash"] == "0x" + event.operation_hash.hex()

    def test_payload_reaches_recipient(self, wallet, ledger, keys):
        seen = []
        ledger.register_hook(ALICE, seen.append)
        send(wallet, keys[0], keys[1], ALICE, 1, data=b"\xca\xfe")
        assert seen[0].data == b"\xca\xfe"
        assert seen[0].sender == wallet.address

    def test_zero_value(self, wallet, ledger, keys):
        send(wallet, keys[0], keys[1], ALICE, 0)
        assert ledger.balance_of(ALICE) == 0
        assert wallet.get_next_sequence_id() == 2

    def test_rejection_changes_nothing(self, wallet, ledger, keys):
        with pytest.raises(AuthorizationError) as exc_info:
            send(wallet, keys[3], keys[1], ALICE, 6)

        assert exc_info.value.reason == RejectReason.UNAUTHORIZED_SUBMITTER
        assert wallet.balance == 2000 * ETHER
        assert wallet.get_next_sequence_id() == 1
        assert ledger.events == ()

    def test_same_signer_twice_rejected(self, wallet, keys):
        with pytest.raises(AuthorizationError) as exc_info:
            send(wallet, keys[0], keys[0], ALICE, 6)
        assert exc_info.value.reason == RejectReason.BAD_SIGNATURE

    def test_replay_debits_once(self, wallet, ledger, keys):
        op = Operation(ALICE, 6, b"", EXPIRES, 1)
        sig = sign_operation_hash(keys[1], wallet.engine.operation_hash(op))
        wallet.send_multisig(keys[0].address, ALICE, 6, b"", EXPIRES, 1, sig)

        with pytest.raises(AuthorizationError) as exc_info:
            wallet.send_multisig(keys[0].address, ALICE, 6, b"", EXPIRES, 1, sig)

        assert exc_info.value.reason == RejectReason.SEQUENCE_MISMATCH
        assert ledger.balance_of(ALICE) == 6

    def test_insufficient_funds_spends_sequence(self, wallet, keys):
        with pytest.raises(InsufficientFundsError):
            send(wallet, keys[0], keys[1], ALICE, 3000 * ETHER)

        assert wallet.balance == 2000 * ETHER
        assert wallet.get_next_sequence_id() == 2

        with pytest.raises(AuthorizationError) as exc_info:
            send(wallet, keys[0], keys[1], ALICE, 1, sequence_id=1)
        assert exc_info.value.reason == RejectReason.SEQUENCE_MISMATCH

    def test_recipient_failure_spends_sequence(self, wallet, ledger, keys):
        ledger.register_hook(ALICE, rejecting_hook)
        with pytest.raises(RecipientTransferError) as exc_info:
            send(wallet, keys[0], keys[1], ALICE, 6)

        assert isinstance(exc_info.value, ExecutionError)
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert wallet.balance == 2000 * ETHER
        assert wallet.get_next_sequence_id() == 2
        assert ledger.events_of(Transacted) == []

    def test_explicit_time(self, wallet, keys):
        op = Operation(ALICE, 1, b"", EXPIRES, 1)
        sig = sign_operation_hash(keys[1], wallet.engine.operation_hash(op))
        with pytest.raises(AuthorizationError) as exc_info:
            wallet.send_multisig(
                keys[0].address, ALICE, 1, b"", EXPIRES, 1, sig, current_time=EXPIRES
            )
        assert exc_info.value.reason == RejectReason.EXPIRED


# ══════════════════════════════════════════════════════════════════════
#  4. BATCH SEND
# ══════════════════════════════════════════════════════════════════════

class TestSendMultisigBatch:

    def test_batch(self, wallet, ledger, keys):
        event = send_batch(wallet, keys[0], keys[1], [ALICE, BOB], [2, 3])

        assert isinstance(event, BatchTransacted)
        assert event.total_value == 5
        assert [t.value for t in event.transfers] == [2, 3]
        assert ledger.balance_of(ALICE) == 2
        assert ledger.balance_of(BOB) == 3
        assert wallet.balance == 2000 * ETHER - 5
        assert ledger.events_of(BatchTransacted) == [event]
        assert len(ledger.events_of(BatchTransfer)) == 2
        assert event.to_dict()["transfers"][1]["value"] == 3

    def test_failed_recipient_rolls_back_and_spends_sequence(self, wallet, ledger, keys):
        ledger.register_hook(BOB, rejecting_hook)
        with pytest.raises(RecipientTransferError) as exc_info:
            send_batch(wallet, keys[0], keys[1], [ALICE, BOB], [2, 3])

        assert exc_info.value.index == 1
        assert wallet.balance == 2000 * ETHER
        assert ledger.balance_of(ALICE) == 0
        assert ledger.events == ()
        assert wallet.get_next_sequence_id() == 2

    def test_first_recipient_failure(self, wallet, ledger, keys):
        ledger.register_hook(ALICE, rejecting_hook)
        with pytest.raises(RecipientTransferError) as exc_info:
            send_batch(wallet, keys[0], keys[1], [ALICE, BOB], [2, 3])
        assert exc_info.value.index == 0
        assert ledger.balance_of(BOB) == 0

    def test_insufficient_funds_spends_sequence(self, wallet, keys):
        with pytest.raises(InsufficientFundsError):
            send_batch(wallet, keys[0], keys[1], [ALICE, BOB], [2000 * ETHER, 1])
        assert wallet.balance == 2000 * ETHER
        assert wallet.get_next_sequence_id() == 2

    def test_length_mismatch_checked_before_authorization(self, wallet, keys):
        with pytest.raises(BatchLengthMismatchError):
            wallet.send_multisig_batch(keys[0].address, [ALICE, BOB], [1], EXPIRES, 1, b"")
        assert wallet.get_next_sequence_id() == 1

    def test_empty_batch(self, wallet, keys):
        with pytest.raises(BatchLengthMismatchError):
            wallet.send_multisig_batch(keys[0].address, [], [], EXPIRES, 1, b"")

    def test_recipient_limit(self, ledger, engine, keys):
        small = MultisigWallet(
            "0x" + "b2" * 20, [k.address for k in keys[:2]], ledger, engine, max_batch_recipients=2
        )
        with pytest.raises(BatchLengthMismatchError, match="Too many"):
            small.send_multisig_batch(keys[0].address, [ALICE, BOB, CAROL], [1, 1, 1], EXPIRES, 1, b"")

    def test_single_signature_not_accepted_for_batch(self, wallet, keys):
        op = Operation(ALICE, 2, b"", EXPIRES, 1)
        sig = sign_operation_hash(keys[1], wallet.engine.operation_hash(op))
        with pytest.raises(AuthorizationError) as exc_info:
            wallet.send_multisig_batch(keys[0].address, [ALICE], [2], EXPIRES, 1, sig)
        assert exc_info.value.reason == RejectReason.BAD_SIGNATURE

    def test_repeated_recipient(self, wallet, ledger, keys):
        send_batch(wallet, keys[0], keys[1], [ALICE, ALICE], [2, 3])
        assert ledger.balance_of(ALICE) == 5


# ══════════════════════════════════════════════════════════════════════
#  5. DEPOSITS AND CONSTRUCTION
# ══════════════════════════════════════════════════════════════════════

class TestWalletAccount:

    def test_deposit_recorded(self, wallet, ledger):
        ledger.credit(ALICE, 10)
        ledger.transfer(ALICE, wallet.address, 10, b"hi")
        assert ledger.events_of(Deposited) == [Deposited(wallet.address, ALICE, 10, b"hi")]
        assert wallet.balance == 2000 * ETHER + 10

    def test_zero_value_call_not_a_deposit(self, wallet, ledger):
        ledger.transfer(ALICE, wallet.address, 0)
        assert ledger.events_of(Deposited) == []

    def test_signers(self, wallet, keys):
        assert wallet.signers == frozenset(k.address for k in keys[:3])
        assert wallet.is_signer(keys[2].address.lower())
        assert not wallet.is_signer(keys[3].address)

    def test_too_few_signers(self, ledger, engine, keys):
        with pytest.raises(ValueError):
            MultisigWallet("0x" + "b3" * 20, [keys[0].address], ledger, engine)

    def test_from_config(self, ledger, keys):
        config = EngineConfig(native_prefix="ERC20", batch_prefix="ERC20-Batch", min_signers=3)
        w = MultisigWallet.from_config(
            "0x" + "b4" * 20, [k.address for k in keys[:3]], ledger, config, clock=lambda: NOW
        )
        op = Operation(ALICE, 1, b"", EXPIRES, 1)
        assert w.engine.operation_hash(op) == op.hash("ERC20")

        with pytest.raises(ValueError, match="at least 3"):
            MultisigWallet.from_config("0x" + "b5" * 20, [k.address for k in keys[:2]], ledger, config)
