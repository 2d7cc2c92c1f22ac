"""Values exchanged between the controller and the daemon."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from .codec import CodecError, Decoder, Encoder


class FieldError(Exception):
    """A field holds an invalid value or could not be parsed."""

    def __init__(self, message: str, *, invalid_value: bool = False) -> None:
        super().__init__(message)
        self.message = message
        self.invalid_value = invalid_value

    def __str__(self) -> str:
        prefix = "Invalid value" if self.invalid_value else "Parse error"
        return f"{prefix}: {self.message}"


def _check_uint(owner: str, name: str, value: int, bits: int) -> None:
    if not 0 <= value < 1 << bits:
        raise FieldError(
            f"{owner}.{name}={value!r} is outside 0..{(1 << bits) - 1}",
            invalid_value=True,
        )


def _write_uint(encoder: Encoder, value: int, bits: int) -> None:
    if not 0 <= value < 1 << bits:
        raise CodecError(f"integer {value} does not fit in {bits} bits")
    encoder.varint(value)


class Field:
    """Mixin giving a value its byte-level form.

    Subclasses provide ``encode`` and ``decode``; ``serialize`` and
    ``deserialize`` wrap them and report failures as ``FieldError``.
    """

    __slots__ = ()

    def serialize(self) -> bytes:
        encoder = Encoder()
        try:
            self.encode(encoder)
        except CodecError as err:
            raise FieldError(f"encode error: {err}") from err
        return encoder.getvalue()

    @classmethod
    def deserialize(cls, data: bytes):
        try:
            return cls.decode(Decoder(data))
        except CodecError as err:
            raise FieldError(f"decode error: {err}") from err

    def encode(self, encoder: Encoder) -> None:
        raise NotImplementedError(f"{type(self).__name__} does not define encode")

    @classmethod
    def decode(cls, decoder: Decoder):
        raise NotImplementedError(f"{cls.__name__} does not define decode")


def _encode_variant(member: enum.IntEnum, encoder: Encoder) -> None:
    encoder.varint(int(member))


def _decode_variant(cls, decoder: Decoder):
    value = decoder.varint(32)
    try:
        return cls(value)
    except ValueError as err:
        raise CodecError(f"unknown {cls.__name__} variant {value}") from err


class Category(Field, enum.IntEnum):
    """Kind of hardware component."""

    CPU = 1
    GPU = 2
    FAN = 3

    def encode(self, encoder: Encoder) -> None:
        _encode_variant(self, encoder)

    @classmethod
    def decode(cls, decoder: Decoder) -> Category:
        return _decode_variant(cls, decoder)


class FanIndex(Field, enum.IntEnum):
    """Which fan a command refers to."""

    ALL = 0
    CPU = 1
    GPU = 2

    def serialize(self) -> bytes:
        return Field.serialize(self)

    @classmethod
    def deserialize(cls, data: bytes) -> FanIndex:
        try:
            return cls.decode(Decoder(data))
        except CodecError as err:
            raise FieldError(f"decode error: {err}") from err

    def encode(self, encoder: Encoder) -> None:
        _encode_variant(self, encoder)

    @classmethod
    def decode(cls, decoder: Decoder) -> FanIndex:
        return _decode_variant(cls, decoder)


@dataclass
class Desc(Field):
    """Description of a component: its category, index and name."""

    category: Category
    index: int
    name: str

    def __post_init__(self) -> None:
        self.category = Category(self.category)
        _check_uint("Desc", "index", self.index, 8)

    def encode(self, encoder: Encoder) -> None:
        self.category.encode(encoder)
        encoder.fixed(self.index, 1)
        encoder.string(self.name)

    @classmethod
    def decode(cls, decoder: Decoder) -> Desc:
        category = Category.decode(decoder)
        index = decoder.fixed(1)
        return cls(category, index, decoder.string())


@dataclass
class FanSpeed(Field):
    """Measured fan speed in revolutions per minute."""

    rpm: int = 0

    def __post_init__(self) -> None:
        _check_uint("FanSpeed", "rpm", self.rpm, 32)

    def encode(self, encoder: Encoder) -> None:
        _write_uint(encoder, self.rpm, 32)

    @classmethod
    def decode(cls, decoder: Decoder) -> FanSpeed:
        return cls(decoder.varint(32))


@dataclass
class TargetFanSpeed(Field):
    """Requested fan duty cycle in percent."""

    duty: int = 0

    def __post_init__(self) -> None:
        _check_uint("TargetFanSpeed", "duty", self.duty, 32)

    def encode(self, encoder: Encoder) -> None:
        _write_uint(encoder, self.duty, 32)

    @classmethod
    def decode(cls, decoder: Decoder) -> TargetFanSpeed:
        return cls(decoder.varint(32))


@dataclass
class Freq(Field):
    """Per-core frequencies in MHz."""

    value: list[int] = field(default_factory=list)

    def __post_init__(self) -> None:
        for item in self.value:
            _check_uint("Freq", "value", item, 64)

    def encode(self, encoder: Encoder) -> None:
        encoder.varint(len(self.value))
        for item in self.value:
            _write_uint(encoder, item, 64)

    @classmethod
    def decode(cls, decoder: Decoder) -> Freq:
        count = decoder.varint(64)
        return cls([decoder.varint(64) for _ in range(count)])


@dataclass
class TargetFreq(Field):
    """Requested frequency range."""

    min: int = 0
    max: int = 0

    def __post_init__(self) -> None:
        _check_uint("TargetFreq", "min", self.min, 32)
        _check_uint("TargetFreq", "max", self.max, 32)

    def encode(self, encoder: Encoder) -> None:
        _write_uint(encoder, self.min, 32)
        _write_uint(encoder, self.max, 32)

    @classmethod
    def decode(cls, decoder: Decoder) -> TargetFreq:
        low = decoder.varint(32)
        return cls(low, decoder.varint(32))


@dataclass
class Power(Field):
    """Power consumption in milliwatts."""

    value: int = 0

    def __post_init__(self) -> None:
        _check_uint("Power", "value", self.value, 64)

    def encode(self, encoder: Encoder) -> None:
        _write_uint(encoder, self.value, 64)

    @classmethod
    def decode(cls, decoder: Decoder) -> Power:
        return cls(decoder.varint(64))


@dataclass
class TargetPower(Field):
    """Requested power limit in watts."""

    max: int = 0

    def __post_init__(self) -> None:
        _check_uint("TargetPower", "max", self.max, 64)

    def encode(self, encoder: Encoder) -> None:
        _write_uint(encoder, self.max, 64)

    @classmethod
    def decode(cls, decoder: Decoder) -> TargetPower:
        return cls(decoder.varint(64))


@dataclass
class Temp(Field):
    """Temperature reading as reported by the sensor."""

    value: int = 0

    def __post_init__(self) -> None:
        _check_uint("Temp", "value", self.value, 64)

    def encode(self, encoder: Encoder) -> None:
        _write_uint(encoder, self.value, 64)

    @classmethod
    def decode(cls, decoder: Decoder) -> Temp:
        return cls(decoder.varint(64))


@dataclass
class Usage(Field):
    """Per-core usage in percent."""

    value: list[float] = field(default_factory=list)

    def encode(self, encoder: Encoder) -> None:
        encoder.varint(len(self.value))
        for item in self.value:
            encoder.float32(item)

    @classmethod
    def decode(cls, decoder: Decoder) -> Usage:
        count = decoder.varint(64)
        return cls([decoder.float32() for _ in range(count)])


@dataclass
class CpuStatus(Field):
    """Snapshot of a processor's state."""

    freq: Freq
    usage: Usage
    power: Power
    temp: Temp

    def encode(self, encoder: Encoder) -> None:
        self.freq.encode(encoder)
        self.usage.encode(encoder)
        self.power.encode(encoder)
        self.temp.encode(encoder)

    @classmethod
    def decode(cls, decoder: Decoder) -> CpuStatus:
        freq = Freq.decode(decoder)
        usage = Usage.decode(decoder)
        power = Power.decode(decoder)
        return cls(freq, usage, power, Temp.decode(decoder))


@dataclass
class GpuStatus(Field):
    """Snapshot of a graphics processor's state."""

    freq: Freq
    power: Power
    temp: Temp
    usage: Usage
    fan_speed: FanSpeed

    def encode(self, encoder: Encoder) -> None:
        self.freq.encode(encoder)
        self.power.encode(encoder)
        self.temp.encode(encoder)
        self.usage.encode(encoder)
        self.fan_speed.encode(encoder)

    @classmethod
    def decode(cls, decoder: Decoder) -> GpuStatus:
        freq = Freq.decode(decoder)
        power = Power.decode(decoder)
        temp = Temp.decode(decoder)
        usage = Usage.decode(decoder)
        return cls(freq, power, temp, usage, FanSpeed.decode(decoder))


@dataclass
class ComponentList(Field):
    """Components offered by the daemon, keyed by their id number."""

    components: dict[int, Desc] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for key in self.components:
            _check_uint("ComponentList", "key", key, 8)

    def encode(self, encoder: Encoder) -> None:
        encoder.varint(len(self.components))
        for key, desc in self.components.items():
            encoder.fixed(key, 1)
            desc.encode(encoder)

    @classmethod
    def decode(cls, decoder: Decoder) -> ComponentList:
        components: dict[int, Desc] = {}
        for _ in range(decoder.varint(64)):
            key = decoder.fixed(1)
            components[key] = Desc.decode(decoder)
        return cls(components)