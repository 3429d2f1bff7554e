import pytest
from cryptography.hazmat.primitives.asymmetric.utils import encode_dss_signature

from errors import FormatError
from signing.der import BitString, Integer, Other, RawPublicKey, Sequence, decode_public_key, decode_signature, parse

from .vectors import G_X, G_Y, SPKI_PREFIX


def test_parse_spki_shape(key_one_spki):
    node = parse(key_one_spki)
    assert isinstance(node, Sequence)
    algorithm, bits = node.children
    assert isinstance(algorithm, Sequence)
    assert all(isinstance(c, Other) and c.tag == 0x06 for c in algorithm.children)
    assert isinstance(bits, BitString)
    assert bits.unused_bits == 0
    assert len(bits.payload) == 65


def test_decode_public_key_known_vector(key_one_spki):
    pub = decode_public_key(key_one_spki)
    assert pub.to_bytes() == bytes.fromhex("04" + G_X + G_Y)
    assert pub.x == int(G_X, 16)
    assert pub.y == int(G_Y, 16)


def test_compressed_prefix_is_rejected():
    # same 65-byte payload length, 0x02 prefix
    der = bytes.fromhex(SPKI_PREFIX + "02" + G_X + G_Y)
    with pytest.raises(FormatError) as e:
        decode_public_key(der)
    assert e.value.code == "invalid_public_key_prefix"


def test_short_compressed_point_is_rejected():
    # real 33-byte compressed point, BIT STRING of 34 bytes
    der = bytes.fromhex("3036301006072a8648ce3d020106052b8104000a032200" + "02" + G_X)
    with pytest.raises(FormatError) as e:
        decode_public_key(der)
    assert e.value.code == "invalid_public_key_length"
    assert e.value.data["length"] == 33


def test_public_key_must_be_sequence_with_bit_string(key_one_spki):
    with pytest.raises(FormatError):
        decode_public_key(bytes.fromhex("020101"))
    # second element replaced by an INTEGER
    with pytest.raises(FormatError):
        decode_public_key(bytes.fromhex("3015301006072a8648ce3d020106052b8104000a020101"))


def test_trailing_and_truncated_input_rejected(key_one_spki):
    with pytest.raises(FormatError) as e:
        decode_public_key(key_one_spki + b"\x00")
    assert e.value.code == "der_trailing_bytes"
    with pytest.raises(FormatError) as e:
        decode_public_key(key_one_spki[:-1])
    assert e.value.code == "der_truncated"
    with pytest.raises(FormatError):
        decode_public_key(b"")


def test_raw_public_key_validates_itself():
    with pytest.raises(FormatError):
        RawPublicKey(b"\x04" + b"\x01" * 63)


def test_decode_signature_roundtrip_with_high_bit_integers():
    r = int("ff" * 32, 16) - 5
    s = 0x1234
    assert decode_signature(encode_dss_signature(r, s)) == (r, s)


def test_decode_signature_rejects_wrong_shapes():
    # three integers
    with pytest.raises(FormatError) as e:
        decode_signature(bytes.fromhex("3009020101020102020103"))
    assert e.value.data["length"] == 11
    # integer + octet string
    with pytest.raises(FormatError):
        decode_signature(bytes.fromhex("3006020101040102"))
    # not a sequence
    with pytest.raises(FormatError):
        decode_signature(bytes.fromhex("020101"))
    # negative r
    with pytest.raises(FormatError):
        decode_signature(bytes.fromhex("30060201ff020101"))


def test_long_form_length_is_parsed():
    payload = b"\x00" + b"\xab" * 200
    der = bytes([0x03, 0x81, len(payload)]) + payload
    node = parse(der)
    assert isinstance(node, BitString)
    assert node.payload == b"\xab" * 200


def test_non_minimal_length_rejected():
    with pytest.raises(FormatError) as e:
        parse(bytes.fromhex("02810101"))
    assert e.value.code == "der_bad_length"


def test_integer_node_value():
    assert parse(bytes.fromhex("02020080")) == Integer(128)


def _der_len(n):
    if n < 0x80:
        return bytes([n])
    body = n.to_bytes((n.bit_length() + 7) // 8, "big")
    return bytes([0x80 | len(body)]) + body


def _nested_sequences(depth):
    der = b""
    for _ in range(depth):
        der = b"\x30" + _der_len(len(der)) + der
    return der


def test_three_level_sequence_is_too_deep():
    with pytest.raises(FormatError) as e:
        parse(_nested_sequences(3))
    assert e.value.code == "der_too_deep"
    assert isinstance(parse(_nested_sequences(2)), Sequence)


def test_deeply_nested_public_key_reply_is_format_error():
    # ~4 KB of nested SEQUENCE headers must not reach the interpreter's recursion limit
    der = _nested_sequences(1100)
    with pytest.raises(FormatError) as e:
        decode_public_key(der)
    assert e.value.code == "der_too_deep"
    with pytest.raises(FormatError):
        decode_signature(der)


@pytest.mark.parametrize("hex_der", ["0202007f", "02020000", "0202ff80", "0202ffff"])
def test_non_minimal_integer_rejected(hex_der):
    with pytest.raises(FormatError) as e:
        parse(bytes.fromhex(hex_der))
    assert e.value.code == "der_bad_integer"


def test_sign_bit_padding_is_minimal():
    assert parse(bytes.fromhex("0202ff7f")) == Integer(-129)


def test_signature_decode_error_carries_length():
    der = bytes.fromhex("3006020101020101ff")
    with pytest.raises(FormatError) as e:
        decode_signature(der)
    assert e.value.code == "invalid_signature"
    assert e.value.data["length"] == len(der)
