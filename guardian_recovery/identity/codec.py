"""
Identity Codec
==============
Public key hex -> canonical 32-byte account identity.

The account identity doubles as the suffix of the registry's named-state
keys, so the derivation and the key naming below have to match what the
contract writes byte for byte.

    identity = blake2b-256(algorithm_name + 0x00 + raw_public_key)
    lookup   = "grp_guardians_" + identity.hex()
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from enum import Enum
from typing import Union

from guardian_recovery.errors import InvalidKeyEncoding


ACCOUNT_HASH_LENGTH = 32
ACCOUNT_HASH_PREFIX = "account-hash-"


class KeyAlgorithm(Enum):
    """Supported key types: (tag byte, raw key length, hashing name)."""

    ED25519 = (0x01, 32, "ed25519")
    SECP256K1 = (0x02, 33, "secp256k1")

    @property
    def tag(self) -> int:
        return self.value[0]

    @property
    def key_length(self) -> int:
        return self.value[1]

    @property
    def algorithm_name(self) -> str:
        return self.value[2]

    @classmethod
    def from_tag(cls, tag: int) -> "KeyAlgorithm":
        for algo in cls:
            if algo.tag == tag:
                return algo
        raise InvalidKeyEncoding(f"Unsupported key tag 0x{tag:02x}")


class RecordField(Enum):
    """Named-state record prefixes written by the recovery registry."""

    REGISTERED = "grp_init_"
    GUARDIANS = "grp_guardians_"
    THRESHOLD = "grp_threshold_"


def blake2b_256(data: bytes) -> bytes:
    return hashlib.blake2b(data, digest_size=32).digest()


def _hex_to_bytes(value: str, what: str) -> bytes:
    if not isinstance(value, str):
        raise InvalidKeyEncoding(f"{what} must be a hex string, got {type(value).__name__}")
    cleaned = value.strip()
    if cleaned[:2].lower() == "0x":
        cleaned = cleaned[2:]
    if not cleaned or len(cleaned) % 2:
        raise InvalidKeyEncoding(f"{what} has odd or zero length: {value!r}")
    try:
        return bytes.fromhex(cleaned)
    except ValueError:
        raise InvalidKeyEncoding(f"{what} is not valid hex: {value!r}") from None


@dataclass(frozen=True)
class PublicKey:
    """Tagged public key as the ledger serializes it (tag byte + raw key)."""

    algorithm: KeyAlgorithm
    raw: bytes

    def __post_init__(self):
        if len(self.raw) != self.algorithm.key_length:
            raise InvalidKeyEncoding(
                f"{self.algorithm.algorithm_name} key must be {self.algorithm.key_length} bytes, "
                f"got {len(self.raw)}"
            )
        if self.algorithm is KeyAlgorithm.SECP256K1 and self.raw[0] not in (0x02, 0x03):
            raise InvalidKeyEncoding("secp256k1 key must be in compressed form")

    @classmethod
    def from_hex(cls, public_key_hex: str) -> "PublicKey":
        data = _hex_to_bytes(public_key_hex, "Public key")
        algorithm = KeyAlgorithm.from_tag(data[0])
        return cls(algorithm, data[1:])

    def to_bytes(self) -> bytes:
        return bytes([self.algorithm.tag]) + self.raw

    def to_hex(self) -> str:
        return self.to_bytes().hex()

    def account_identity(self) -> "AccountIdentity":
        preimage = self.algorithm.algorithm_name.encode("ascii") + b"\x00" + self.raw
        return AccountIdentity(blake2b_256(preimage))

    def __str__(self) -> str:
        return self.to_hex()


@dataclass(frozen=True)
class AccountIdentity:
    """Fixed-width (32 byte) account identifier."""

    value: bytes

    def __post_init__(self):
        if len(self.value) != ACCOUNT_HASH_LENGTH:
            raise InvalidKeyEncoding(
                f"Account identity must be {ACCOUNT_HASH_LENGTH} bytes, got {len(self.value)}"
            )

    @classmethod
    def from_string(cls, text: str) -> "AccountIdentity":
        """Accepts bare hex or the `account-hash-<hex>` form."""
        if isinstance(text, str) and text.startswith(ACCOUNT_HASH_PREFIX):
            text = text[len(ACCOUNT_HASH_PREFIX):]
        return cls(_hex_to_bytes(text, "Account identity"))

    def to_hex(self) -> str:
        return self.value.hex()

    @property
    def formatted(self) -> str:
        return f"{ACCOUNT_HASH_PREFIX}{self.to_hex()}"

    def __str__(self) -> str:
        return self.formatted


def derive_identity(public_key_hex: str) -> AccountIdentity:
    """
    Derive the account identity for a hex-encoded public key.

    Letter case and a leading "0x" are ignored. Raises InvalidKeyEncoding
    for anything that is not a supported, well-formed key.
    """
    return PublicKey.from_hex(public_key_hex).account_identity()


def identity_to_lookup_key(
    identity: AccountIdentity,
    namespace_prefix: Union[str, RecordField],
) -> str:
    """Named-state key for one account and one record: prefix + lowercase hex."""
    if isinstance(namespace_prefix, RecordField):
        namespace_prefix = namespace_prefix.value
    return f"{namespace_prefix}{identity.to_hex()}"
