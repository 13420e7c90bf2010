"""
BINRPC codec for the Kamailio ctl module
Encodes requests and decodes replies of Kamailio's binary RPC protocol
"""

import random
from dataclasses import dataclass
from typing import Any, BinaryIO, List, Optional, Sequence, Tuple

import structlog

logger = structlog.get_logger(__name__)

BINRPC_MAGIC = 0xA
BINRPC_VERSION = 0x1

# Message types (high nibble of the second header byte)
BINRPC_REQUEST = 0x0
BINRPC_REPLY = 0x1
BINRPC_FAULT = 0x3

# Record types
TYPE_INT = 0x0
TYPE_STRING = 0x1
TYPE_DOUBLE = 0x2
TYPE_STRUCT = 0x3
TYPE_ARRAY = 0x4
TYPE_AVP = 0x5
TYPE_BYTES = 0x6

TYPE_NAMES = {
    TYPE_INT: "int",
    TYPE_STRING: "string",
    TYPE_DOUBLE: "double",
    TYPE_STRUCT: "struct",
    TYPE_ARRAY: "array",
    TYPE_AVP: "avp",
    TYPE_BYTES: "bytes",
}

_END_FLAG = 0x80
_MAX_COOKIE = 0xFFFFFFFF


class BinRPCError(Exception):
    """Malformed, truncated or unexpected BINRPC data"""
    pass


class BinRPCFault(BinRPCError):
    """Fault reply sent back by Kamailio"""

    def __init__(self, code: int, message: str):
        super().__init__(f"{code} {message}")
        self.code = code
        self.message = message


@dataclass(frozen=True)
class StructItem:
    """Named member of a struct record"""
    key: str
    value: "Record"


@dataclass(frozen=True)
class Record:
    """Decoded BINRPC value with its wire type"""
    type: int
    value: Any

    @property
    def type_name(self) -> str:
        return TYPE_NAMES.get(self.type, f"unknown({self.type})")

    def as_int(self) -> int:
        """Integer value of the record.

        Strings holding a decimal integer are accepted as well, everything
        else raises BinRPCError.
        """
        if self.type == TYPE_INT:
            return self.value
        if self.type == TYPE_STRING:
            try:
                return int(self.value)
            except ValueError:
                raise BinRPCError(f"String value {self.value!r} is not an integer")
        raise BinRPCError(f"Cannot convert {self.type_name} record to int")

    def as_str(self) -> str:
        """String form of a scalar record"""
        if self.type in (TYPE_STRING, TYPE_AVP):
            return self.value
        if self.type == TYPE_INT:
            return str(self.value)
        if self.type == TYPE_DOUBLE:
            return repr(self.value)
        raise BinRPCError(f"Cannot convert {self.type_name} record to string")

    def struct_items(self) -> List[StructItem]:
        if self.type != TYPE_STRUCT:
            raise BinRPCError(f"Expected struct record, got {self.type_name}")
        return list(self.value)


@dataclass(frozen=True)
class Packet:
    """A complete BINRPC message"""
    message_type: int
    cookie: int
    records: List[Record]


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------

def _min_size(value: int) -> int:
    """Smallest number of bytes (at least one) holding value big-endian"""
    size = 1
    while value >> (8 * size):
        size += 1
    return size


def _encode_record(record_type: int, payload: bytes) -> bytes:
    length = len(payload)
    if length < 8:
        return bytes([(length << 4) | record_type]) + payload
    length_size = _min_size(length)
    header = bytes([_END_FLAG | (length_size << 4) | record_type])
    return header + length.to_bytes(length_size, "big") + payload


def _int_payload(value: int) -> bytes:
    if value == 0:
        return b""
    if value < 0:
        return (value & 0xFFFFFFFF).to_bytes(4, "big")
    return value.to_bytes(_min_size(value), "big")


def encode_value(value: Any) -> bytes:
    """Encode a Python value as a BINRPC record.

    dict -> struct, list/tuple -> array, bool/int -> int, float -> double,
    str -> string, bytes -> bytes. Record instances are re-encoded as is.
    """
    if isinstance(value, Record):
        return _encode_typed(value.type, value.value)
    if isinstance(value, dict):
        return _encode_typed(TYPE_STRUCT, [StructItem(k, v) for k, v in value.items()])
    if isinstance(value, (list, tuple)):
        return _encode_typed(TYPE_ARRAY, value)
    if isinstance(value, bool):
        return _encode_typed(TYPE_INT, int(value))
    if isinstance(value, int):
        return _encode_typed(TYPE_INT, value)
    if isinstance(value, float):
        return _encode_typed(TYPE_DOUBLE, value)
    if isinstance(value, str):
        return _encode_typed(TYPE_STRING, value)
    if isinstance(value, (bytes, bytearray)):
        return _encode_typed(TYPE_BYTES, bytes(value))
    raise TypeError(f"Cannot encode {type(value).__name__} as BINRPC record")


def _encode_typed(record_type: int, value: Any) -> bytes:
    if record_type == TYPE_INT:
        return _encode_record(TYPE_INT, _int_payload(value))
    if record_type == TYPE_DOUBLE:
        return _encode_record(TYPE_DOUBLE, _int_payload(int(round(value * 1000))))
    if record_type in (TYPE_STRING, TYPE_AVP):
        return _encode_record(record_type, value.encode("utf-8") + b"\0")
    if record_type == TYPE_BYTES:
        return _encode_record(TYPE_BYTES, value)
    if record_type == TYPE_STRUCT:
        body = bytearray([TYPE_STRUCT])
        for item in value:
            if not isinstance(item, StructItem):
                item = StructItem(*item)
            body += _encode_typed(TYPE_AVP, item.key)
            body += encode_value(item.value)
        body.append(_END_FLAG | TYPE_STRUCT)
        return bytes(body)
    if record_type == TYPE_ARRAY:
        body = bytearray([TYPE_ARRAY])
        for element in value:
            body += encode_value(element)
        body.append(_END_FLAG | TYPE_ARRAY)
        return bytes(body)
    raise BinRPCError(f"Unknown record type {record_type}")


def encode_packet(message_type: int, cookie: int, body: bytes) -> bytes:
    """Prefix a record body with the BINRPC packet header"""
    if not 0 <= cookie <= _MAX_COOKIE:
        raise ValueError(f"Cookie out of range: {cookie}")
    length_size = _min_size(len(body))
    if length_size > 4:
        raise ValueError(f"Packet body too large: {len(body)} bytes")
    cookie_size = _min_size(cookie)
    header = bytes([
        (BINRPC_MAGIC << 4) | BINRPC_VERSION,
        (message_type << 4) | ((length_size - 1) << 2) | (cookie_size - 1),
    ])
    return header + len(body).to_bytes(length_size, "big") + cookie.to_bytes(cookie_size, "big") + body


def build_request(command: str, *params: Any, cookie: Optional[int] = None) -> Tuple[bytes, int]:
    """Build a request packet for command.

    Returns the encoded packet and the cookie the reply must carry.
    """
    if cookie is None:
        cookie = random.randint(0, _MAX_COOKIE)
    body = encode_value(command) + b"".join(encode_value(p) for p in params)
    return encode_packet(BINRPC_REQUEST, cookie, body), cookie


def build_reply(cookie: int, *values: Any) -> bytes:
    return encode_packet(BINRPC_REPLY, cookie, b"".join(encode_value(v) for v in values))


def build_fault(cookie: int, code: int, message: str) -> bytes:
    return encode_packet(BINRPC_FAULT, cookie, encode_value(code) + encode_value(message))


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

class _ContainerEnd:
    """End marker of a struct or array"""

    def __init__(self, record_type: int):
        self.type = record_type


class _Decoder:
    def __init__(self, data: bytes):
        self.data = data
        self.pos = 0

    @property
    def exhausted(self) -> bool:
        return self.pos >= len(self.data)

    def _take(self, size: int) -> bytes:
        end = self.pos + size
        if end > len(self.data):
            raise BinRPCError(
                f"Truncated record: need {size} bytes at offset {self.pos}, "
                f"{len(self.data) - self.pos} left"
            )
        chunk = self.data[self.pos:end]
        self.pos = end
        return chunk

    def read(self):
        header = self._take(1)[0]
        end_flag = header & _END_FLAG
        size = (header >> 4) & 0x07
        record_type = header & 0x0F

        if record_type in (TYPE_STRUCT, TYPE_ARRAY):
            if end_flag:
                return _ContainerEnd(record_type)
            if record_type == TYPE_STRUCT:
                return self._read_struct()
            return self._read_array()

        if end_flag:
            size = int.from_bytes(self._take(size), "big")
        payload = self._take(size)

        if record_type == TYPE_INT:
            return Record(TYPE_INT, _decode_int(payload))
        if record_type == TYPE_DOUBLE:
            return Record(TYPE_DOUBLE, _decode_int(payload) / 1000.0)
        if record_type in (TYPE_STRING, TYPE_AVP):
            return Record(record_type, _decode_str(payload))
        if record_type == TYPE_BYTES:
            return Record(TYPE_BYTES, payload)
        raise BinRPCError(f"Unknown record type {record_type} at offset {self.pos - size - 1}")

    def _read_struct(self) -> Record:
        items = []
        while True:
            name = self.read()
            if isinstance(name, _ContainerEnd):
                if name.type != TYPE_STRUCT:
                    raise BinRPCError("Array end marker inside struct")
                return Record(TYPE_STRUCT, tuple(items))
            if name.type not in (TYPE_AVP, TYPE_STRING):
                raise BinRPCError(f"Struct member name must be avp, got {name.type_name}")
            value = self.read()
            if isinstance(value, _ContainerEnd):
                raise BinRPCError(f"Struct member {name.value!r} has no value")
            items.append(StructItem(name.value, value))

    def _read_array(self) -> Record:
        elements = []
        while True:
            element = self.read()
            if isinstance(element, _ContainerEnd):
                if element.type != TYPE_ARRAY:
                    raise BinRPCError("Struct end marker inside array")
                return Record(TYPE_ARRAY, tuple(elements))
            elements.append(element)


def _decode_int(payload: bytes) -> int:
    value = int.from_bytes(payload, "big")
    # ints are 32 bit on the wire
    if len(payload) == 4 and value & 0x80000000:
        value -= 1 << 32
    return value


def _decode_str(payload: bytes) -> str:
    if payload.endswith(b"\0"):
        payload = payload[:-1]
    return payload.decode("utf-8", errors="replace")


def decode_records(data: bytes) -> List[Record]:
    """Decode the top-level records of a packet body"""
    decoder = _Decoder(data)
    records = []
    while not decoder.exhausted:
        record = decoder.read()
        if isinstance(record, _ContainerEnd):
            raise BinRPCError("Unexpected container end marker at top level")
        records.append(record)
    return records


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    data = b""
    while len(data) < size:
        chunk = stream.read(size - len(data))
        if not chunk:
            raise BinRPCError(f"Connection closed after {len(data)} of {size} bytes")
        data += chunk
    return data


def decode_packet(stream: BinaryIO) -> Packet:
    """Read one complete packet from a binary stream"""
    header = _read_exact(stream, 2)
    if header[0] >> 4 != BINRPC_MAGIC:
        raise BinRPCError(f"Bad magic byte 0x{header[0]:02x}")
    if header[0] & 0x0F != BINRPC_VERSION:
        raise BinRPCError(f"Unsupported BINRPC version {header[0] & 0x0F}")

    message_type = header[1] >> 4
    length_size = ((header[1] >> 2) & 0x03) + 1
    cookie_size = (header[1] & 0x03) + 1
    length = int.from_bytes(_read_exact(stream, length_size), "big")
    cookie = int.from_bytes(_read_exact(stream, cookie_size), "big")
    body = _read_exact(stream, length) if length else b""

    return Packet(message_type, cookie, decode_records(body))


def read_reply(stream: BinaryIO, cookie: int) -> List[Record]:
    """Read the reply to the request identified by cookie.

    Raises BinRPCFault for fault replies and BinRPCError for anything that
    is not a well-formed reply carrying the expected cookie.
    """
    packet = decode_packet(stream)
    if packet.cookie != cookie:
        raise BinRPCError(f"Cookie mismatch: sent {cookie:#x}, received {packet.cookie:#x}")

    if packet.message_type == BINRPC_FAULT:
        raise _fault_from_records(packet.records)
    if packet.message_type != BINRPC_REPLY:
        raise BinRPCError(f"Unexpected message type {packet.message_type} in reply")

    logger.debug("Decoded BINRPC reply", cookie=cookie, records=len(packet.records))
    return packet.records


def _fault_from_records(records: Sequence[Record]) -> BinRPCFault:
    code = 0
    message = ""
    if records:
        try:
            code = records[0].as_int()
        except BinRPCError:
            message = records[0].as_str() if records[0].type == TYPE_STRING else ""
    if len(records) > 1 and records[1].type == TYPE_STRING:
        message = records[1].value
    return BinRPCFault(code, message)
