"""
Cosigner Crypto Hashing Module

Keccak-256 is the operation-hash function and the address-derivation hash.
"""

from typing import Union

from Crypto.Hash import keccak as _keccak


def _to_bytes(data: Union[bytes, str]) -> bytes:
    if isinstance(data, str):
        if data.startswith('0x') or data.startswith('0X'):
            return bytes.fromhex(data[2:])
        return bytes.fromhex(data)
    return bytes(data)


def keccak256(data: Union[bytes, str]) -> bytes:
    """
    Compute Keccak-256 hash (Ethereum standard).

    Args:
        data: Input bytes or hex string

    Returns:
        32-byte hash
    """
    k = _keccak.new(digest_bits=256)
    k.update(_to_bytes(data))
    return k.digest()


def keccak256_hex(data: Union[bytes, str]) -> str:
    """
    Compute Keccak-256 hash and return as hex string.

    Returns:
        Hex string with 0x prefix
    """
    return '0x' + keccak256(data).hex()
