"""
CLValue Codec Unit Tests
========================
Byte layouts, width checks and decoding of stored values.
"""

import pytest

from tests.mocks.keys import ed25519_key


class TestIntegerEncoding:
    """Test fixed and variable width unsigned integers."""

    def test_u8(self):
        from guardian_recovery.protocol.clvalue import U8, encode_value

        assert encode_value(U8, 2) == b"\x02"
        assert encode_value(U8, 255) == b"\xff"

    def test_u32_little_endian(self):
        from guardian_recovery.protocol.clvalue import U32, encode_value

        assert encode_value(U32, 1) == b"\x01\x00\x00\x00"

    def test_u256_minimal_encoding(self):
        """Length byte followed by the minimal little-endian magnitude."""
        from guardian_recovery.protocol.clvalue import U256, encode_value

        assert encode_value(U256, 0) == b"\x00"
        assert encode_value(U256, 1) == b"\x01\x01"
        assert encode_value(U256, 256) == b"\x02\x00\x01"

    def test_u256_max(self):
        from guardian_recovery.protocol.clvalue import U256, encode_value

        encoded = encode_value(U256, 2**256 - 1)

        assert encoded[0] == 32
        assert encoded[1:] == b"\xff" * 32

    def test_u512_payment_amount(self):
        from guardian_recovery.protocol.clvalue import U512, encode_value

        # 5 CSPR in motes
        assert encode_value(U512, 5_000_000_000) == b"\x05\x00\xf2\x05\x2a\x01"

    @pytest.mark.parametrize("type_name,value", [
        ("U8", 256),
        ("U8", -1),
        ("U32", 2**32),
        ("U256", 2**256),
    ])
    def test_out_of_range_is_schema_mismatch(self, type_name, value):
        from guardian_recovery.errors import SchemaMismatch
        from guardian_recovery.protocol import clvalue

        with pytest.raises(SchemaMismatch):
            clvalue.encode_value(getattr(clvalue, type_name), value)

    def test_bool_is_not_an_integer(self):
        from guardian_recovery.errors import SchemaMismatch
        from guardian_recovery.protocol.clvalue import U8, encode_value

        with pytest.raises(SchemaMismatch):
            encode_value(U8, True)


class TestCompositeEncoding:
    """Test byte arrays, lists and public keys."""

    def test_byte_array_has_no_length_prefix(self):
        from guardian_recovery.protocol.clvalue import ACCOUNT_HASH, encode_value

        assert encode_value(ACCOUNT_HASH, b"\x07" * 32) == b"\x07" * 32

    def test_byte_array_accepts_identity(self):
        from guardian_recovery.identity.codec import derive_identity
        from guardian_recovery.protocol.clvalue import ACCOUNT_HASH, encode_value

        identity = derive_identity(ed25519_key(1))

        assert encode_value(ACCOUNT_HASH, identity) == identity.value

    def test_byte_array_wrong_size(self):
        from guardian_recovery.errors import SchemaMismatch
        from guardian_recovery.protocol.clvalue import ACCOUNT_HASH, encode_value

        with pytest.raises(SchemaMismatch):
            encode_value(ACCOUNT_HASH, b"\x07" * 31)

    def test_list_count_prefix(self):
        from guardian_recovery.protocol.clvalue import ACCOUNT_HASH, encode_value, list_of

        encoded = encode_value(list_of(ACCOUNT_HASH), [b"\x01" * 32, b"\x02" * 32])

        assert encoded[:4] == b"\x02\x00\x00\x00"
        assert encoded[4:36] == b"\x01" * 32
        assert len(encoded) == 68

    def test_public_key_tag_plus_raw(self):
        from guardian_recovery.identity.codec import PublicKey
        from guardian_recovery.protocol.clvalue import PUBLIC_KEY, encode_value

        key = PublicKey.from_hex(ed25519_key(9))

        assert encode_value(PUBLIC_KEY, key) == bytes.fromhex(ed25519_key(9))

    def test_string(self):
        from guardian_recovery.protocol.clvalue import STRING, encode_value

        assert encode_value(STRING, "abc") == b"\x03\x00\x00\x00abc"


class TestTypeDescriptors:
    """Test CL type tags and JSON names."""

    def test_type_bytes(self):
        from guardian_recovery.protocol.clvalue import ACCOUNT_HASH, U8, U256, list_of

        assert U8.to_bytes() == b"\x03"
        assert U256.to_bytes() == b"\x07"
        assert ACCOUNT_HASH.to_bytes() == b"\x0f\x20\x00\x00\x00"
        assert list_of(ACCOUNT_HASH).to_bytes() == b"\x0e\x0f\x20\x00\x00\x00"

    def test_json_forms(self):
        from guardian_recovery.protocol.clvalue import ACCOUNT_HASH, PUBLIC_KEY, U8, CLType, list_of

        assert U8.to_json() == "U8"
        assert PUBLIC_KEY.to_json() == "PublicKey"
        assert list_of(ACCOUNT_HASH).to_json() == {"List": {"ByteArray": 32}}
        assert CLType.from_json({"List": {"ByteArray": 32}}) == list_of(ACCOUNT_HASH)

    def test_unknown_descriptor(self):
        from guardian_recovery.errors import SchemaMismatch
        from guardian_recovery.protocol.clvalue import CLType

        with pytest.raises(SchemaMismatch):
            CLType.from_json({"Map": {"key": "String", "value": "U8"}})


class TestDecoding:
    """Test decoding of stored values."""

    def test_stored_guardian_list(self):
        from guardian_recovery.protocol.clvalue import ACCOUNT_HASH, CLValue, list_of

        stored = {
            "cl_type": {"List": {"ByteArray": 32}},
            "bytes": "02000000" + "aa" * 32 + "bb" * 32,
            "parsed": ["aa" * 32, "bb" * 32],
        }
        value = CLValue.from_json(stored)

        assert value.cl_type == list_of(ACCOUNT_HASH)
        assert value.value == [b"\xaa" * 32, b"\xbb" * 32]

    def test_stored_bool(self):
        from guardian_recovery.protocol.clvalue import CLValue

        assert CLValue.from_json({"cl_type": "Bool", "bytes": "01"}).value is True

    def test_trailing_bytes_rejected(self):
        from guardian_recovery.errors import SchemaMismatch
        from guardian_recovery.protocol.clvalue import U8, decode_value

        with pytest.raises(SchemaMismatch):
            decode_value(U8, b"\x01\x02")

    def test_truncated_rejected(self):
        from guardian_recovery.errors import SchemaMismatch
        from guardian_recovery.protocol.clvalue import U32, decode_value

        with pytest.raises(SchemaMismatch):
            decode_value(U32, b"\x01\x02")

    def test_public_key_list(self):
        from guardian_recovery.identity.codec import PublicKey
        from guardian_recovery.protocol.clvalue import PUBLIC_KEY, decode_value, list_of

        raw = b"\x01\x00\x00\x00" + bytes.fromhex(ed25519_key(4))

        assert decode_value(list_of(PUBLIC_KEY), raw) == [PublicKey.from_hex(ed25519_key(4))]

    def test_json_shape(self):
        from guardian_recovery.protocol.clvalue import U256, CLValue

        assert CLValue(U256, 42).to_json() == {"cl_type": "U256", "bytes": "012a", "parsed": "42"}

    def test_runtime_arg_serialization(self):
        """Inside runtime args: u32 length + value bytes, then the type tag."""
        from guardian_recovery.protocol.clvalue import U8, CLValue

        assert CLValue(U8, 2).serialize() == b"\x01\x00\x00\x00\x02\x03"
