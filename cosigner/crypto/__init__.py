"""
Cosigner Crypto Module

Cryptographic primitives for the authorization engine:
- secp256k1 keys and 65-byte recoverable signatures
- Keccak-256 hashing
- Canonical operation encoding
- Address derivation and EIP-55 checksums
"""

from .keys import PrivateKey, PublicKey, Signature
from .signing import (
    sign_operation_hash,
    recover_signer,
    verify_signer,
    to_signature,
)
from .hashing import keccak256, keccak256_hex
from .address import (
    public_key_to_address,
    is_valid_address,
    is_checksum_address,
    to_checksum_address,
    normalize_address,
    to_canonical_bytes,
)
from .encoding import (
    encode_operation,
    encode_batch_operation,
    operation_hash,
    batch_operation_hash,
    compute_function_selector,
    encode_function_call,
    decode_function_call,
)

__all__ = [
    # Keys
    "PrivateKey",
    "PublicKey",
    "Signature",
    # Signing
    "sign_operation_hash",
    "recover_signer",
    "verify_signer",
    "to_signature",
    # Hashing
    "keccak256",
    "keccak256_hex",
    # Address
    "public_key_to_address",
    "is_valid_address",
    "is_checksum_address",
    "to_checksum_address",
    "normalize_address",
    "to_canonical_bytes",
    # Encoding
    "encode_operation",
    "encode_batch_operation",
    "operation_hash",
    "batch_operation_hash",
    "compute_function_selector",
    "encode_function_call",
    "decode_function_call",
]
