"""
Cosigner Operation Encoding Module

Deterministic byte layout of the operations co-signers sign, plus the
function-call encoding used for calls carried in an operation's payload.

Layout (tightly packed, soliditySHA3-compatible):

    single: prefix | to (20) | value (32) | data | expireTime (32) | sequenceId (32)
    batch:  prefix | recipients (32 each) | values (32 each) | expireTime (32) | sequenceId (32)

Array elements occupy full 32-byte words even in packed mode, so batch
recipients are left-padded before packing. Addresses enter the encoding as
raw bytes, so hex casing never changes a hash. The wallet address is not
part of the layout.
"""

from typing import Any, Optional, Sequence, Tuple

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_abi.packed import encode_packed

from .address import to_canonical_bytes, to_checksum_address
from .hashing import keccak256
from ..constants import BATCH_OPERATION_TYPES, MAX_UINT256, SINGLE_OPERATION_TYPES

def require_uint256(name: str, value: Any) -> int:
    """Validate an unsigned 256-bit integer field."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{name} cannot be negative: {value}")
    if value > MAX_UINT256:
        raise ValueError(f"{name} exceeds uint256: {value}")
    return value


def _require_prefix(prefix: str) -> str:
    if not isinstance(prefix, str) or not prefix or not prefix.isascii():
        raise ValueError(f"Domain prefix must be a non-empty ASCII string: {prefix!r}")
    return prefix


def encode_operation(
    prefix: str,
    to_address: str,
    value: int,
    data: bytes,
    expire_time: int,
    sequence_id: int,
) -> bytes:
    """
    Canonical bytes of a single-recipient operation.

    Raises:
        InvalidAddressError: If to_address is malformed
        ValueError / TypeError: If an integer field is out of range
    """
    return encode_packed(
        SINGLE_OPERATION_TYPES,
        [
            _require_prefix(prefix),
            to_canonical_bytes(to_address),
            require_uint256("value", value),
            bytes(data),
            require_uint256("expire_time", expire_time),
            require_uint256("sequence_id", sequence_id),
        ],
    )


def encode_batch_operation(
    prefix: str,
    recipients: Sequence[str],
    values: Sequence[int],
    expire_time: int,
    sequence_id: int,
) -> bytes:
    """Canonical bytes of a batch operation."""
    return encode_packed(
        BATCH_OPERATION_TYPES,
        [
            _require_prefix(prefix),
            [to_canonical_bytes(r).rjust(32, b"\x00") for r in recipients],
            [require_uint256("value", v) for v in values],
            require_uint256("expire_time", expire_time),
            require_uint256("sequence_id", sequence_id),
        ],
    )


def operation_hash(
    prefix: str,
    to_address: str,
    value: int,
    data: bytes,
    expire_time: int,
    sequence_id: int,
) -> bytes:
    """Keccak-256 of the canonical single-operation encoding."""
    return keccak256(encode_operation(prefix, to_address, value, data, expire_time, sequence_id))


def batch_operation_hash(
    prefix: str,
    recipients: Sequence[str],
    values: Sequence[int],
    expire_time: int,
    sequence_id: int,
) -> bytes:
    """Keccak-256 of the canonical batch encoding."""
    return keccak256(encode_batch_operation(prefix, recipients, values, expire_time, sequence_id))


# ---------------------------------------------------------------------------
# Function calls carried in payloads
# ---------------------------------------------------------------------------

def _argument_types(function_signature: str) -> list:
    args_start = function_signature.index('(') + 1
    args_end = function_signature.rindex(')')
    arg_types_str = function_signature[args_start:args_end]
    return [t.strip() for t in arg_types_str.split(',')] if arg_types_str else []


def compute_function_selector(function_signature: str) -> bytes:
    """
    First 4 bytes of keccak256(signature).

    Args:
        function_signature: Function signature like "batch(address[],uint256[])"
    """
    return keccak256(function_signature.encode('utf-8'))[:4]


def encode_function_call(function_signature: str, *args) -> bytes:
    """
    Encode call data (selector + ABI-encoded arguments).
    """
    selector = compute_function_selector(function_signature)
    arg_types = _argument_types(function_signature)
    encoded_args = encode(arg_types, list(args)) if arg_types else b''
    return selector + encoded_args


def decode_function_call(function_signature: str, data: bytes) -> Optional[Tuple[Any, ...]]:
    """
    Decode call data for `function_signature`.

    Returns:
        Decoded arguments (addresses checksummed), or None if `data` is not a
        well-formed call to that function
    """
    selector = compute_function_selector(function_signature)
    if len(data) < 4 or bytes(data[:4]) != selector:
        return None

    arg_types = _argument_types(function_signature)
    try:
        values = decode(arg_types, bytes(data[4:]))
    except (DecodingError, ValueError):
        return None

    return tuple(_checksum_decoded(t, v) for t, v in zip(arg_types, values))


def _checksum_decoded(abi_type: str, value: Any) -> Any:
    if abi_type == 'address':
        return to_checksum_address(value)
    if abi_type == 'address[]':
        return [to_checksum_address(v) for v in value]
    if abi_type.endswith('[]'):
        return list(value)
    return value
