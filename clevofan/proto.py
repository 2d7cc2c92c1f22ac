"""Message framing between the controller and the daemon.

A message is a fixed 13-byte header (version, timestamp, packet length),
followed by the encoded packet, followed by each payload in turn.  The
packet lists the length of every payload.

Streams passed to ``send_msg`` and ``recv_msg`` need ``write(data)`` and
``read(length)`` methods; ``read`` returns exactly ``length`` bytes and
both raise ``OSError`` on failure.
"""

from __future__ import annotations

import dataclasses
import enum
import struct
import time
from dataclasses import dataclass, field
from typing import ClassVar, Optional

from .codec import CodecError, Decoder, Encoder
from .fields import FieldError

_HEADER = struct.Struct("<BQI")


class ProtoErrorKind(enum.Enum):
    IO = "io"
    PARSE = "parse"
    OTHER = "other"


class ProtoError(Exception):
    """Failure while sending, receiving or parsing a message."""

    def __init__(self, kind: ProtoErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __str__(self) -> str:
        return f"{self.kind.value} error: {self.message}"

    @classmethod
    def from_field_error(cls, err: FieldError) -> ProtoError:
        return cls(ProtoErrorKind.PARSE, f"Field error: {err}")


class MsgMode(enum.Enum):
    REQUEST = 0
    REPLY = 1
    NOTIFY = 2


class MsgErrorKind(enum.Enum):
    UNSUPPORTED_OPERATION = 0
    INVALID_COMMAND = 1
    DEVICE_ERROR = 2
    TIMEOUT = 3
    SERVER_ERROR = 4
    UNKNOWN = 5


@dataclass(frozen=True)
class MsgError:
    """Error reported back inside a reply packet."""

    kind: MsgErrorKind
    message: str

    def __str__(self) -> str:
        return f"{self.kind.name}: {self.message}"


class MsgCommand(enum.Enum):
    GET_COMPONENT_LIST = 0
    GET_STATUS = 1
    GET_FAN_SPEED = 2
    SET_FREQ = 3
    SET_FAN_SPEED = 4
    SET_FAN_AUTO = 5

    def __str__(self) -> str:
        return _COMMAND_NAMES[self]


_COMMAND_NAMES = {
    MsgCommand.GET_COMPONENT_LIST: "GetComponentList",
    MsgCommand.GET_STATUS: "GetCpuStatus",
    MsgCommand.SET_FREQ: "SetCpuFreq",
    MsgCommand.SET_FAN_SPEED: "SetCpuFanSpeed",
    MsgCommand.GET_FAN_SPEED: "GetCpuFanSpeed",
    MsgCommand.SET_FAN_AUTO: "SetCpuAuto",
}


def _encode_variant(encoder: Encoder, member: enum.Enum) -> None:
    encoder.varint(member.value)


def _decode_variant(decoder: Decoder, enum_cls):
    value = decoder.varint(32)
    try:
        return enum_cls(value)
    except ValueError as err:
        raise CodecError(f"unknown {enum_cls.__name__} variant {value}") from err


def _write_uint(encoder: Encoder, value: int, bits: int) -> None:
    if not 0 <= value < 1 << bits:
        raise CodecError(f"integer {value} does not fit in {bits} bits")
    encoder.varint(value)


@dataclass
class MsgHeader:
    """Fixed-size header preceding every packet."""

    SIZE: ClassVar[int] = _HEADER.size

    version: int
    timestamp: int
    packet_length: int

    @classmethod
    def create(cls, version: int, packet_length: int) -> MsgHeader:
        """Build a header stamped with the current time in seconds."""
        return cls(version, int(time.time()), packet_length)

    def to_bytes(self) -> bytes:
        try:
            return _HEADER.pack(self.version, self.timestamp, self.packet_length)
        except struct.error as err:
            raise ProtoError(ProtoErrorKind.PARSE, f"Encode error: {err}") from err

    @classmethod
    def from_bytes(cls, data: bytes) -> MsgHeader:
        if len(data) < cls.SIZE:
            raise ProtoError(
                ProtoErrorKind.PARSE,
                f"Decode error: header needs {cls.SIZE} bytes, got {len(data)}",
            )
        return cls(*_HEADER.unpack_from(data))


@dataclass
class MsgPacket:
    """Command, addressing and status of a message."""

    mode: MsgMode
    error: Optional[MsgError]
    sequence: int
    id_num: int
    command: MsgCommand
    payload_length: list[int] = field(default_factory=list)

    def serialize(self) -> bytes:
        encoder = Encoder()
        try:
            _encode_variant(encoder, self.mode)
            if self.error is None:
                encoder.fixed(0, 1)
            else:
                encoder.fixed(1, 1)
                _encode_variant(encoder, self.error.kind)
                encoder.string(self.error.message)
            _write_uint(encoder, self.sequence, 64)
            encoder.fixed(self.id_num, 1)
            _encode_variant(encoder, self.command)
            encoder.varint(len(self.payload_length))
            for length in self.payload_length:
                _write_uint(encoder, length, 32)
        except CodecError as err:
            raise ProtoError(ProtoErrorKind.PARSE, f"Encode error: {err}") from err
        return encoder.getvalue()

    @classmethod
    def deserialize(cls, data: bytes) -> MsgPacket:
        decoder = Decoder(data)
        try:
            mode = _decode_variant(decoder, MsgMode)
            tag = decoder.fixed(1)
            if tag == 0:
                error = None
            elif tag == 1:
                kind = _decode_variant(decoder, MsgErrorKind)
                error = MsgError(kind, decoder.string())
            else:
                raise CodecError(f"invalid option tag {tag}")
            sequence = decoder.varint(64)
            id_num = decoder.fixed(1)
            command = _decode_variant(decoder, MsgCommand)
            count = decoder.varint(64)
            lengths = [decoder.varint(32) for _ in range(count)]
        except CodecError as err:
            raise ProtoError(ProtoErrorKind.PARSE, f"Decode error: {err}") from err
        return cls(mode, error, sequence, id_num, command, lengths)


@dataclass(init=False)
class MsgBody:
    """A packet with its payloads; the packet's payload lengths match them."""

    packet: MsgPacket
    payload: list[bytes]

    def __init__(self, packet: MsgPacket, payload) -> None:
        self.payload = [bytes(item) for item in payload]
        self.packet = dataclasses.replace(
            packet, payload_length=[len(item) for item in self.payload]
        )


@dataclass
class Msg:
    header: MsgHeader
    body: MsgBody


def recv_msg(stream) -> MsgBody:
    """Read one message from ``stream``."""
    try:
        header = MsgHeader.from_bytes(stream.read(MsgHeader.SIZE))
        packet = MsgPacket.deserialize(stream.read(header.packet_length))
        payload = [stream.read(length) for length in packet.payload_length]
    except OSError as err:
        raise ProtoError(ProtoErrorKind.IO, str(err)) from err
    return MsgBody(packet, payload)


def send_msg(stream, body: MsgBody) -> None:
    """Write one message to ``stream``."""
    packet_bin = body.packet.serialize()
    header_bin = MsgHeader.create(1, len(packet_bin)).to_bytes()
    try:
        stream.write(header_bin)
        stream.write(packet_bin)
        if body.packet.payload_length:
            for item in body.payload:
                stream.write(item)
    except OSError as err:
        raise ProtoError(ProtoErrorKind.IO, str(err)) from err