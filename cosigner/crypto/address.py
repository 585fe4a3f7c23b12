"""
Cosigner Crypto Address Module

Account identities are 20-byte secp256k1 addresses with an EIP-55
checksum. Any hex casing is accepted on input; the canonical in-memory form
is the checksum string and the canonical hashed form is the raw 20 bytes.
"""

import re
from typing import Iterable, List

from .hashing import keccak256
from ..exceptions import InvalidAddressError


ADDRESS_PREFIX = "0x"
ADDRESS_LENGTH = 40  # 20 bytes = 40 hex chars
_HEX_ADDRESS_RE = re.compile(r"[0-9a-fA-F]{40}")


def public_key_to_address(public_key) -> str:
    """
    Derive address from public key: last 20 bytes of keccak256(pubkey).

    Args:
        public_key: PublicKey instance or 64/65-byte uncompressed key

    Returns:
        Checksum address with 0x prefix
    """
    if hasattr(public_key, 'to_bytes'):
        pub_bytes = public_key.to_bytes()
    else:
        pub_bytes = public_key

    # Remove 04 prefix if present (uncompressed secp256k1)
    if len(pub_bytes) == 65 and pub_bytes[0] == 0x04:
        pub_bytes = pub_bytes[1:]

    if len(pub_bytes) != 64:
        raise InvalidAddressError(f"secp256k1 public key must be 64 bytes, got {len(pub_bytes)}")

    return to_checksum_address(keccak256(pub_bytes)[-20:].hex())


def _strip(address: str) -> str:
    if not isinstance(address, str):
        raise InvalidAddressError(f"Address must be a string, got {type(address).__name__}")
    raw = address[2:] if address[:2] in ("0x", "0X") else address
    if len(raw) != ADDRESS_LENGTH:
        raise InvalidAddressError(f"Address must be {ADDRESS_LENGTH} hex chars, got {len(raw)}")
    if not _HEX_ADDRESS_RE.fullmatch(raw):
        raise InvalidAddressError(f"Address is not hex: {address!r}")
    return raw


def to_checksum_address(address: str) -> str:
    """
    Convert address to EIP-55 checksum format.

    Args:
        address: Hex address (with or without 0x prefix, any casing)

    Returns:
        Checksum address with 0x prefix
    """
    address = _strip(address).lower()
    address_hash = keccak256(address.encode('utf-8')).hex()

    checksummed = ''
    for i, char in enumerate(address):
        if char in '0123456789':
            checksummed += char
        elif int(address_hash[i], 16) >= 8:
            checksummed += char.upper()
        else:
            checksummed += char.lower()

    return ADDRESS_PREFIX + checksummed


def normalize_address(address: str) -> str:
    """Lowercase address with 0x prefix."""
    return ADDRESS_PREFIX + _strip(address).lower()


def to_canonical_bytes(address: str) -> bytes:
    """Raw 20-byte form used inside operation hashes."""
    return bytes.fromhex(_strip(address))


def is_valid_address(address: str) -> bool:
    """
    Check if address is a well-formed 20-byte hex address.

    Casing is not checked; see is_checksum_address.
    """
    try:
        _strip(address)
        return True
    except InvalidAddressError:
        return False


def is_checksum_address(address: str) -> bool:
    """Check if address carries a valid EIP-55 checksum."""
    if not is_valid_address(address) or not address.startswith(ADDRESS_PREFIX):
        return False
    return address == to_checksum_address(address)


def to_checksum_addresses(addresses: Iterable[str]) -> List[str]:
    return [to_checksum_address(a) for a in addresses]
