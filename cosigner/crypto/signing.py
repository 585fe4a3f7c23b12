"""
Cosigner Crypto Signing Module

Signs operation hashes and recovers/validates the co-signer behind a
signature.
"""

from typing import Iterable, Optional, Union

from eth_keys.exceptions import BadSignature, ValidationError

from .address import to_checksum_address
from .keys import PrivateKey, PublicKey, Signature


SignatureLike = Union[bytes, bytearray, str, Signature]


def sign_operation_hash(private_key: PrivateKey, operation_hash: bytes) -> bytes:
    """
    Sign a 32-byte operation hash.

    The hash is signed as-is (no personal_sign prefix), the way a
    contract-side ecrecover over the raw hash expects it.

    Returns:
        65-byte signature r || s || v with v in {27, 28}
    """
    return private_key.sign_msg_hash(operation_hash).to_bytes()


def to_signature(signature: SignatureLike) -> Signature:
    """
    Parse a signature from bytes, hex or an existing Signature.

    Raises:
        MalformedSignatureError: If the encoding is invalid
    """
    if isinstance(signature, Signature):
        return signature
    if isinstance(signature, str):
        return Signature.from_hex(signature)
    return Signature.from_bytes(bytes(signature))


def recover_signer(operation_hash: bytes, signature: SignatureLike) -> Optional[str]:
    """
    Recover the checksum address that produced `signature` over `operation_hash`.

    Returns:
        Recovered address, or None if no public key matches the signature

    Raises:
        MalformedSignatureError: If the signature is structurally invalid
        ValueError: If the hash is not 32 bytes
    """
    if len(operation_hash) != 32:
        raise ValueError(f"Operation hash must be 32 bytes, got {len(operation_hash)}")

    sig = to_signature(signature)
    try:
        public_key = PublicKey.recover_from_msg_hash(operation_hash, sig)
    except (BadSignature, ValidationError):
        return None
    return public_key.to_address()


def verify_signer(
    operation_hash: bytes,
    signature: SignatureLike,
    candidate_signers: Iterable[str],
) -> Optional[str]:
    """
    Return the recovered signer if it belongs to `candidate_signers`.

    Args:
        operation_hash: 32-byte operation hash
        signature: 65-byte signature (bytes, hex or Signature)
        candidate_signers: Addresses allowed to co-sign, any casing

    Returns:
        Checksum address of the signer, or None if it is not a candidate

    Raises:
        MalformedSignatureError: If the signature is structurally invalid
    """
    recovered = recover_signer(operation_hash, signature)
    if recovered is None:
        return None
    candidates = {to_checksum_address(a) for a in candidate_signers}
    return recovered if recovered in candidates else None
