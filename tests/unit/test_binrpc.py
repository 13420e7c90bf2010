"""
Test BINRPC codec
Wire encoding of requests and decoding of Kamailio replies
"""

import io

import pytest

from kamailio_exporter.kamailio import binrpc
from kamailio_exporter.kamailio.binrpc import (
    BinRPCError,
    BinRPCFault,
    Record,
    StructItem,
    TYPE_ARRAY,
    TYPE_DOUBLE,
    TYPE_INT,
    TYPE_STRING,
    TYPE_STRUCT,
)


def test_encode_small_int():
    assert binrpc.encode_value(0) == b"\x00"
    assert binrpc.encode_value(5) == b"\x10\x05"
    assert binrpc.encode_value(0x1234) == b"\x20\x12\x34"


def test_encode_negative_int_uses_four_bytes():
    assert binrpc.encode_value(-1) == b"\x40\xff\xff\xff\xff"


def test_encode_short_string_is_nul_terminated():
    assert binrpc.encode_value("ab") == b"\x31ab\x00"


def test_encode_string_with_separate_length():
    # 10 bytes including NUL do not fit in the 3 bit size field
    assert binrpc.encode_value("pkg.stats") == b"\x91\x0apkg.stats\x00"


def test_encode_double_is_scaled_by_thousand():
    assert binrpc.encode_value(1.5) == b"\x22\x05\xdc"


def test_encode_struct():
    assert binrpc.encode_value({"a": 1}) == b"\x03\x25a\x00\x10\x01\x83"


def test_encode_array():
    assert binrpc.encode_value([1, "x"]) == b"\x04\x10\x01\x21x\x00\x84"


def test_encode_unsupported_type():
    with pytest.raises(TypeError):
        binrpc.encode_value(object())


def test_build_request_header():
    packet, cookie = binrpc.build_request("pkg.stats", cookie=1)

    assert cookie == 1
    assert packet == b"\xa1\x00\x0c\x01" + b"\x91\x0apkg.stats\x00"


def test_build_request_with_param():
    packet, _ = binrpc.build_request("stats.fetch", "all", cookie=0x0102)
    request = binrpc.decode_packet(io.BytesIO(packet))

    assert request.message_type == binrpc.BINRPC_REQUEST
    assert request.cookie == 0x0102
    assert [r.value for r in request.records] == ["stats.fetch", "all"]
    # two cookie bytes announced in the header
    assert packet[1] & 0x03 == 1


def test_build_request_random_cookie():
    _, cookie = binrpc.build_request("pkg.stats")
    assert 0 <= cookie <= 0xFFFFFFFF


def test_decode_int_records():
    records = binrpc.decode_records(b"\x00\x10\x05\x40\xff\xff\xff\xfe")
    assert [r.value for r in records] == [0, 5, -2]
    assert all(r.type == TYPE_INT for r in records)


def test_decode_double():
    (record,) = binrpc.decode_records(b"\x22\x05\xdc")
    assert record.type == TYPE_DOUBLE
    assert record.value == 1.5


def test_decode_nested_struct_and_array():
    data = binrpc.encode_value({"name": "kamailio", "pids": [1, 2], "inner": {"x": 3}})
    (record,) = binrpc.decode_records(data)

    assert record.type == TYPE_STRUCT
    items = record.struct_items()
    assert [item.key for item in items] == ["name", "pids", "inner"]
    assert items[0].value == Record(TYPE_STRING, "kamailio")
    assert items[1].value.type == TYPE_ARRAY
    assert [r.value for r in items[1].value.value] == [1, 2]
    assert items[2].value.struct_items() == [StructItem("x", Record(TYPE_INT, 3))]


def test_decode_long_string():
    text = "x" * 300
    (record,) = binrpc.decode_records(binrpc.encode_value(text))
    assert record.value == text


def test_decode_truncated_record():
    with pytest.raises(BinRPCError, match="Truncated"):
        binrpc.decode_records(b"\x31ab")


def test_decode_unterminated_struct():
    with pytest.raises(BinRPCError):
        binrpc.decode_records(b"\x03\x25a\x00\x10\x01")


def test_decode_stray_end_marker():
    with pytest.raises(BinRPCError, match="container end"):
        binrpc.decode_records(b"\x83")


def test_decode_mismatched_end_marker():
    with pytest.raises(BinRPCError):
        binrpc.decode_records(b"\x04\x10\x01\x83")


def test_decode_unknown_record_type():
    with pytest.raises(BinRPCError, match="Unknown record type"):
        binrpc.decode_records(b"\x0f")


def test_record_as_int():
    assert Record(TYPE_INT, 7).as_int() == 7
    assert Record(TYPE_STRING, "42").as_int() == 42
    with pytest.raises(BinRPCError):
        Record(TYPE_STRING, "abc").as_int()
    with pytest.raises(BinRPCError):
        Record(TYPE_STRUCT, ()).as_int()


def test_record_as_str():
    assert Record(TYPE_STRING, "abc").as_str() == "abc"
    assert Record(TYPE_INT, 12).as_str() == "12"
    assert Record(TYPE_DOUBLE, 0.5).as_str() == "0.5"
    with pytest.raises(BinRPCError):
        Record(TYPE_ARRAY, ()).as_str()


def test_struct_items_rejects_scalars():
    with pytest.raises(BinRPCError, match="Expected struct"):
        Record(TYPE_INT, 1).struct_items()


def test_read_reply():
    reply = binrpc.build_reply(99, {"used": 1000}, "ok")
    records = binrpc.read_reply(io.BytesIO(reply), 99)

    assert len(records) == 2
    assert records[0].struct_items()[0].key == "used"
    assert records[1].value == "ok"


def test_read_empty_reply():
    assert binrpc.read_reply(io.BytesIO(binrpc.build_reply(5)), 5) == []


def test_read_reply_cookie_mismatch():
    with pytest.raises(BinRPCError, match="Cookie mismatch"):
        binrpc.read_reply(io.BytesIO(binrpc.build_reply(1, "ok")), 2)


def test_read_reply_fault():
    fault = binrpc.build_fault(7, 500, "command stats.fetch not found")

    with pytest.raises(BinRPCFault) as exc_info:
        binrpc.read_reply(io.BytesIO(fault), 7)

    assert exc_info.value.code == 500
    assert exc_info.value.message == "command stats.fetch not found"


def test_read_reply_rejects_request_packet():
    packet, cookie = binrpc.build_request("pkg.stats", cookie=3)
    with pytest.raises(BinRPCError, match="Unexpected message type"):
        binrpc.read_reply(io.BytesIO(packet), cookie)


def test_decode_packet_bad_magic():
    with pytest.raises(BinRPCError, match="Bad magic"):
        binrpc.decode_packet(io.BytesIO(b"\xb1\x10\x00\x01"))


def test_decode_packet_bad_version():
    with pytest.raises(BinRPCError, match="version"):
        binrpc.decode_packet(io.BytesIO(b"\xa2\x10\x00\x01"))


def test_decode_packet_truncated_body():
    reply = binrpc.build_reply(1, "hello")
    with pytest.raises(BinRPCError, match="Connection closed"):
        binrpc.decode_packet(io.BytesIO(reply[:-2]))
