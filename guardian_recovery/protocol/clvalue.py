"""
CLValue Codec
=============
Typed values <-> the ledger's byte representation.

Only the kinds the recovery registry touches are supported. Integers are
little-endian; U256/U512 carry a one-byte length followed by the minimal
magnitude. Every encode path range-checks against the declared width and
raises SchemaMismatch instead of truncating.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Optional, Tuple, Union

from guardian_recovery.errors import InvalidKeyEncoding, SchemaMismatch
from guardian_recovery.identity.codec import AccountIdentity, KeyAlgorithm, PublicKey


class CLTypeTag(IntEnum):
    """Numeric CL type tags used in the type descriptor bytes."""
    BOOL = 0
    I32 = 1
    I64 = 2
    U8 = 3
    U32 = 4
    U64 = 5
    U128 = 6
    U256 = 7
    U512 = 8
    UNIT = 9
    STRING = 10
    KEY = 11
    UREF = 12
    OPTION = 13
    LIST = 14
    BYTE_ARRAY = 15
    RESULT = 16
    MAP = 17
    TUPLE1 = 18
    TUPLE2 = 19
    TUPLE3 = 20
    ANY = 21
    PUBLIC_KEY = 22


# Fixed-width unsigned ints: tag -> (byte width, struct format)
_FIXED_UINTS = {
    CLTypeTag.U8: (1, "<B"),
    CLTypeTag.U32: (4, "<I"),
    CLTypeTag.U64: (8, "<Q"),
}

# Variable-length big unsigned ints: tag -> max magnitude bytes
_BIG_UINTS = {
    CLTypeTag.U128: 16,
    CLTypeTag.U256: 32,
    CLTypeTag.U512: 64,
}

_SIMPLE_NAMES = {
    CLTypeTag.BOOL: "Bool",
    CLTypeTag.U8: "U8",
    CLTypeTag.U32: "U32",
    CLTypeTag.U64: "U64",
    CLTypeTag.U128: "U128",
    CLTypeTag.U256: "U256",
    CLTypeTag.U512: "U512",
    CLTypeTag.STRING: "String",
    CLTypeTag.PUBLIC_KEY: "PublicKey",
}
_NAME_TO_TAG = {name: tag for tag, name in _SIMPLE_NAMES.items()}


# ═══════════════════════════════════════════════════════════════════════════════
# TYPE DESCRIPTORS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CLType:
    """A CL type descriptor. `size` is set for ByteArray, `inner` for List."""

    tag: CLTypeTag
    size: int = 0
    inner: Optional["CLType"] = None

    @property
    def name(self) -> str:
        if self.tag == CLTypeTag.BYTE_ARRAY:
            return f"ByteArray({self.size})"
        if self.tag == CLTypeTag.LIST:
            return f"List({self.inner.name})"
        return _SIMPLE_NAMES.get(self.tag, self.tag.name)

    @property
    def max_value(self) -> Optional[int]:
        """Largest representable value for unsigned integer kinds."""
        if self.tag in _FIXED_UINTS:
            return (1 << (8 * _FIXED_UINTS[self.tag][0])) - 1
        if self.tag in _BIG_UINTS:
            return (1 << (8 * _BIG_UINTS[self.tag])) - 1
        return None

    def to_bytes(self) -> bytes:
        out = bytes([int(self.tag)])
        if self.tag == CLTypeTag.BYTE_ARRAY:
            out += struct.pack("<I", self.size)
        elif self.tag == CLTypeTag.LIST:
            out += self.inner.to_bytes()
        return out

    def to_json(self) -> Union[str, Dict[str, Any]]:
        if self.tag == CLTypeTag.BYTE_ARRAY:
            return {"ByteArray": self.size}
        if self.tag == CLTypeTag.LIST:
            return {"List": self.inner.to_json()}
        return _SIMPLE_NAMES[self.tag]

    @classmethod
    def from_json(cls, obj: Any) -> "CLType":
        if isinstance(obj, str) and obj in _NAME_TO_TAG:
            return cls(_NAME_TO_TAG[obj])
        if isinstance(obj, dict) and len(obj) == 1:
            if "ByteArray" in obj and isinstance(obj["ByteArray"], int):
                return byte_array(obj["ByteArray"])
            if "List" in obj:
                return list_of(cls.from_json(obj["List"]))
        raise SchemaMismatch(f"Unsupported CL type descriptor: {obj!r}")


def byte_array(size: int) -> CLType:
    return CLType(CLTypeTag.BYTE_ARRAY, size=size)


def list_of(inner: CLType) -> CLType:
    return CLType(CLTypeTag.LIST, inner=inner)


BOOL = CLType(CLTypeTag.BOOL)
U8 = CLType(CLTypeTag.U8)
U32 = CLType(CLTypeTag.U32)
U64 = CLType(CLTypeTag.U64)
U256 = CLType(CLTypeTag.U256)
U512 = CLType(CLTypeTag.U512)
STRING = CLType(CLTypeTag.STRING)
PUBLIC_KEY = CLType(CLTypeTag.PUBLIC_KEY)
ACCOUNT_HASH = byte_array(32)


# ═══════════════════════════════════════════════════════════════════════════════
# VALUE ENCODING
# ═══════════════════════════════════════════════════════════════════════════════

def _check_uint(cl_type: CLType, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise SchemaMismatch(f"{cl_type.name} expects an integer, got {type(value).__name__}")
    if value < 0 or value > cl_type.max_value:
        raise SchemaMismatch(f"{value} does not fit in {cl_type.name}")
    return value


def encode_bytes(data: bytes) -> bytes:
    """Length-prefixed byte string (u32 length)."""
    return struct.pack("<I", len(data)) + data


def encode_string(text: str) -> bytes:
    return encode_bytes(text.encode("utf-8"))


def encode_value(cl_type: CLType, value: Any) -> bytes:
    """Serialize `value` as `cl_type`. Raises SchemaMismatch on any misfit."""
    tag = cl_type.tag

    if tag in _FIXED_UINTS:
        return struct.pack(_FIXED_UINTS[tag][1], _check_uint(cl_type, value))

    if tag in _BIG_UINTS:
        number = _check_uint(cl_type, value)
        magnitude = number.to_bytes((number.bit_length() + 7) // 8, "little")
        return bytes([len(magnitude)]) + magnitude

    if tag == CLTypeTag.BOOL:
        if not isinstance(value, bool):
            raise SchemaMismatch(f"Bool expects True/False, got {value!r}")
        return b"\x01" if value else b"\x00"

    if tag == CLTypeTag.STRING:
        if not isinstance(value, str):
            raise SchemaMismatch(f"String expects str, got {type(value).__name__}")
        return encode_string(value)

    if tag == CLTypeTag.BYTE_ARRAY:
        if isinstance(value, AccountIdentity):
            value = value.value
        if not isinstance(value, (bytes, bytearray)) or len(value) != cl_type.size:
            raise SchemaMismatch(f"{cl_type.name} expects exactly {cl_type.size} bytes")
        return bytes(value)

    if tag == CLTypeTag.LIST:
        if isinstance(value, (str, bytes)) or not hasattr(value, "__iter__"):
            raise SchemaMismatch(f"{cl_type.name} expects a sequence")
        items = list(value)
        return struct.pack("<I", len(items)) + b"".join(
            encode_value(cl_type.inner, item) for item in items
        )

    if tag == CLTypeTag.PUBLIC_KEY:
        if not isinstance(value, PublicKey):
            raise SchemaMismatch(f"PublicKey expects a PublicKey, got {type(value).__name__}")
        return value.to_bytes()

    raise SchemaMismatch(f"Encoding {cl_type.name} is not supported")


# ═══════════════════════════════════════════════════════════════════════════════
# VALUE DECODING
# ═══════════════════════════════════════════════════════════════════════════════

def _take(data: bytes, offset: int, length: int) -> Tuple[bytes, int]:
    end = offset + length
    if end > len(data):
        raise SchemaMismatch(f"Truncated value: needed {length} bytes at offset {offset}")
    return data[offset:end], end


def _read(cl_type: CLType, data: bytes, offset: int) -> Tuple[Any, int]:
    tag = cl_type.tag

    if tag in _FIXED_UINTS:
        width, fmt = _FIXED_UINTS[tag]
        chunk, offset = _take(data, offset, width)
        return struct.unpack(fmt, chunk)[0], offset

    if tag in _BIG_UINTS:
        length_byte, offset = _take(data, offset, 1)
        if length_byte[0] > _BIG_UINTS[tag]:
            raise SchemaMismatch(f"{cl_type.name} length prefix {length_byte[0]} too large")
        chunk, offset = _take(data, offset, length_byte[0])
        return int.from_bytes(chunk, "little"), offset

    if tag == CLTypeTag.BOOL:
        chunk, offset = _take(data, offset, 1)
        if chunk[0] > 1:
            raise SchemaMismatch(f"Invalid Bool byte 0x{chunk[0]:02x}")
        return chunk[0] == 1, offset

    if tag == CLTypeTag.STRING:
        length, offset = _read(U32, data, offset)
        chunk, offset = _take(data, offset, length)
        try:
            return chunk.decode("utf-8"), offset
        except UnicodeDecodeError as e:
            raise SchemaMismatch(f"Invalid UTF-8 in String: {e}") from None

    if tag == CLTypeTag.BYTE_ARRAY:
        return _take(data, offset, cl_type.size)

    if tag == CLTypeTag.LIST:
        count, offset = _read(U32, data, offset)
        items = []
        for _ in range(count):
            item, offset = _read(cl_type.inner, data, offset)
            items.append(item)
        return items, offset

    if tag == CLTypeTag.PUBLIC_KEY:
        tag_byte, offset = _take(data, offset, 1)
        try:
            algorithm = KeyAlgorithm.from_tag(tag_byte[0])
            raw, offset = _take(data, offset, algorithm.key_length)
            return PublicKey(algorithm, raw), offset
        except InvalidKeyEncoding as e:
            raise SchemaMismatch(f"Invalid PublicKey: {e.message}") from None

    raise SchemaMismatch(f"Decoding {cl_type.name} is not supported")


def decode_value(cl_type: CLType, data: bytes) -> Any:
    """Parse bytes as `cl_type`; the whole buffer must be consumed."""
    value, offset = _read(cl_type, data, 0)
    if offset != len(data):
        raise SchemaMismatch(f"{len(data) - offset} trailing bytes after {cl_type.name}")
    return value


def to_parsed(cl_type: CLType, value: Any) -> Any:
    """JSON-friendly rendering matching the node's `parsed` field."""
    tag = cl_type.tag
    if tag in _BIG_UINTS:
        return str(value)
    if tag == CLTypeTag.BYTE_ARRAY:
        return bytes(value.value if isinstance(value, AccountIdentity) else value).hex()
    if tag == CLTypeTag.LIST:
        return [to_parsed(cl_type.inner, item) for item in value]
    if tag == CLTypeTag.PUBLIC_KEY:
        return value.to_hex()
    return value


# ═══════════════════════════════════════════════════════════════════════════════
# CLVALUE
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CLValue:
    """A value paired with its declared CL type."""

    cl_type: CLType
    value: Any

    def to_bytes(self) -> bytes:
        return encode_value(self.cl_type, self.value)

    def serialize(self) -> bytes:
        """Wire form inside runtime args: length-prefixed value bytes, then type."""
        return encode_bytes(self.to_bytes()) + self.cl_type.to_bytes()

    def to_json(self) -> Dict[str, Any]:
        return {
            "cl_type": self.cl_type.to_json(),
            "bytes": self.to_bytes().hex(),
            "parsed": to_parsed(self.cl_type, self.value),
        }

    @classmethod
    def from_json(cls, obj: Dict[str, Any]) -> "CLValue":
        """Rebuild from the node's `{cl_type, bytes, parsed}` shape (bytes win)."""
        if not isinstance(obj, dict) or "cl_type" not in obj or "bytes" not in obj:
            raise SchemaMismatch(f"Not a CLValue object: {obj!r}")
        cl_type = CLType.from_json(obj["cl_type"])
        try:
            raw = bytes.fromhex(obj["bytes"])
        except (TypeError, ValueError):
            raise SchemaMismatch("CLValue bytes are not valid hex") from None
        return cls(cl_type, decode_value(cl_type, raw))
