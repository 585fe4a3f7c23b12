"""
Cosigner Crypto Keys Module

secp256k1 key management for co-signers. Wraps eth-keys.
"""

import secrets
from typing import Tuple, Union

from eth_keys.datatypes import (
    PrivateKey as EthPrivateKey,
    PublicKey as EthPublicKey,
    Signature as EthSignature,
)
from eth_keys.exceptions import BadSignature, ValidationError
from eth_utils import decode_hex

from ..constants import (
    SECP256K1_HALF_N,
    SECP256K1_N,
    SIGNATURE_LENGTH,
    VALID_RECOVERY_IDS,
)
from ..exceptions import InvalidKeyError, MalformedSignatureError


class PrivateKey:
    """
    secp256k1 private key for signing operation hashes.
    """

    def __init__(self, key_bytes: bytes):
        """
        Initialize from raw 32-byte private key.

        Raises:
            InvalidKeyError: If key bytes are invalid
        """
        if len(key_bytes) != 32:
            raise InvalidKeyError(f"Private key must be 32 bytes, got {len(key_bytes)}")
        if not 0 < int.from_bytes(key_bytes, byteorder='big') < SECP256K1_N:
            raise InvalidKeyError("Private key scalar out of range")

        try:
            self._key = EthPrivateKey(key_bytes)
        except (ValidationError, ValueError) as e:
            raise InvalidKeyError(f"Invalid private key: {e}") from e

    @classmethod
    def from_hex(cls, hex_str: str) -> "PrivateKey":
        """Create from hex string (with or without 0x prefix)."""
        try:
            key_bytes = decode_hex(hex_str)
        except ValueError as e:
            raise InvalidKeyError(f"Private key is not hex: {e}") from e
        return cls(key_bytes)

    @classmethod
    def from_int(cls, key_int: int) -> "PrivateKey":
        return cls(key_int.to_bytes(32, byteorder='big'))

    @classmethod
    def generate(cls) -> "PrivateKey":
        """Generate a new random private key."""
        while True:
            key_int = secrets.randbelow(SECP256K1_N)
            if key_int:
                return cls.from_int(key_int)

    @property
    def public_key(self) -> "PublicKey":
        return PublicKey(self._key.public_key)

    @property
    def address(self) -> str:
        """Checksum address controlled by this key."""
        return self.public_key.to_address()

    def to_bytes(self) -> bytes:
        return self._key.to_bytes()

    def to_hex(self, with_prefix: bool = True) -> str:
        hex_str = self._key.to_bytes().hex()
        return f"0x{hex_str}" if with_prefix else hex_str

    def sign_msg_hash(self, msg_hash: bytes) -> "Signature":
        """
        Sign a 32-byte message hash.

        eth-keys produces deterministic (RFC 6979) low-s signatures.
        """
        if len(msg_hash) != 32:
            raise ValueError(f"Message hash must be 32 bytes, got {len(msg_hash)}")
        return Signature(self._key.sign_msg_hash(msg_hash))

    def __repr__(self) -> str:
        return f"PrivateKey({self.address})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, PrivateKey):
            return False
        return self._key == other._key

    def __hash__(self) -> int:
        return hash(self._key.to_bytes())


class PublicKey:
    """
    secp256k1 public key.
    """

    def __init__(self, key: Union[EthPublicKey, bytes]):
        if isinstance(key, EthPublicKey):
            self._key = key
        elif isinstance(key, bytes):
            if len(key) == 64:
                self._key = EthPublicKey(key)
            elif len(key) == 65 and key[0] == 0x04:
                self._key = EthPublicKey(key[1:])
            else:
                raise InvalidKeyError(f"Invalid public key length: {len(key)}")
        else:
            raise InvalidKeyError(f"Invalid public key type: {type(key)}")

    @classmethod
    def recover_from_msg_hash(cls, msg_hash: bytes, signature: "Signature") -> "PublicKey":
        """
        Recover public key from signature.

        Raises:
            BadSignature: If no point on the curve matches the signature
        """
        return cls(signature._signature.recover_public_key_from_msg_hash(msg_hash))

    def to_bytes(self) -> bytes:
        return self._key.to_bytes()

    def to_hex(self, with_prefix: bool = True) -> str:
        hex_str = self.to_bytes().hex()
        return f"0x{hex_str}" if with_prefix else hex_str

    def to_address(self) -> str:
        from .address import public_key_to_address
        return public_key_to_address(self)

    def __repr__(self) -> str:
        return f"PublicKey({self.to_hex()[:18]}...)"

    def __eq__(self, other) -> bool:
        if not isinstance(other, PublicKey):
            return False
        return self._key == other._key

    def __hash__(self) -> int:
        return hash(self._key.to_bytes())


class Signature:
    """
    ECDSA signature (v, r, s). Serialized as r(32) || s(32) || v(1), v in {27, 28}.
    """

    def __init__(self, signature: EthSignature):
        self._signature = signature

    @classmethod
    def from_vrs(cls, v: int, r: int, s: int) -> "Signature":
        """
        Create from v, r, s components.

        Rejects anything a contract-side ecrecover would refuse: recovery ids
        outside {0, 1, 27, 28}, scalars outside [1, n), and high-s values.

        Raises:
            MalformedSignatureError: On any out-of-range component
        """
        if v not in VALID_RECOVERY_IDS:
            raise MalformedSignatureError(f"Invalid recovery id: {v}")
        if not 0 < r < SECP256K1_N:
            raise MalformedSignatureError("Signature r component out of range")
        if not 0 < s < SECP256K1_N:
            raise MalformedSignatureError("Signature s component out of range")
        if s > SECP256K1_HALF_N:
            raise MalformedSignatureError("Signature s component is in the upper half order")

        if v >= 27:
            v -= 27

        try:
            return cls(EthSignature(vrs=(v, r, s)))
        except (ValidationError, BadSignature) as e:
            raise MalformedSignatureError(f"Invalid signature: {e}") from e

    @classmethod
    def from_bytes(cls, sig_bytes: bytes) -> "Signature":
        """
        Create from 65-byte signature (r[32] + s[32] + v[1]).

        Raises:
            MalformedSignatureError: If length or components are invalid
        """
        if not isinstance(sig_bytes, (bytes, bytearray)):
            raise MalformedSignatureError(f"Signature must be bytes, got {type(sig_bytes).__name__}")
        if len(sig_bytes) != SIGNATURE_LENGTH:
            raise MalformedSignatureError(
                f"Signature must be {SIGNATURE_LENGTH} bytes, got {len(sig_bytes)}"
            )

        r = int.from_bytes(sig_bytes[0:32], byteorder='big')
        s = int.from_bytes(sig_bytes[32:64], byteorder='big')
        v = sig_bytes[64]

        return cls.from_vrs(v, r, s)

    @classmethod
    def from_hex(cls, hex_str: str) -> "Signature":
        try:
            sig_bytes = decode_hex(hex_str)
        except ValueError as e:
            raise MalformedSignatureError(f"Signature is not hex: {e}") from e
        return cls.from_bytes(sig_bytes)

    @property
    def v(self) -> int:
        """Recovery parameter (0 or 1)."""
        return self._signature.v

    @property
    def r(self) -> int:
        return self._signature.r

    @property
    def s(self) -> int:
        return self._signature.s

    @property
    def vrs(self) -> Tuple[int, int, int]:
        return (self.v, self.r, self.s)

    def to_bytes(self) -> bytes:
        r_bytes = self.r.to_bytes(32, byteorder='big')
        s_bytes = self.s.to_bytes(32, byteorder='big')
        return r_bytes + s_bytes + bytes([self.v + 27])

    def to_hex(self, with_prefix: bool = True) -> str:
        hex_str = self.to_bytes().hex()
        return f"0x{hex_str}" if with_prefix else hex_str

    def __repr__(self) -> str:
        return f"Signature(v={self.v}, r={hex(self.r)[:10]}..., s={hex(self.s)[:10]}...)"

    def __eq__(self, other) -> bool:
        if not isinstance(other, Signature):
            return False
        return self.vrs == other.vrs
