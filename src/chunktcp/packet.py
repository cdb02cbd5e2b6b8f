"""Fixed-size packet framing.

A message is cut into packets of exactly ``packet_size`` bytes. Byte 0 holds
the number of payload bytes that follow; the rest of the packet is padding.
The first packet carrying fewer than ``packet_size - 1`` payload bytes ends
the message.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator

from .constants import DEFAULT_PACKET_SIZE, MAX_PACKET_SIZE, MIN_PACKET_SIZE
from .errors import InvalidPacketLength


def check_packet_size(packet_size: int) -> int:
    if not MIN_PACKET_SIZE <= packet_size <= MAX_PACKET_SIZE:
        raise ValueError(
            f"packet size must be in {MIN_PACKET_SIZE}..{MAX_PACKET_SIZE}, got {packet_size}"
        )
    return packet_size


def max_payload(packet_size: int) -> int:
    return packet_size - 1


@dataclass(frozen=True, slots=True)
class Packet:
    packet_size: int
    payload: bytes = b""

    def __post_init__(self) -> None:
        check_packet_size(self.packet_size)
        if len(self.payload) > max_payload(self.packet_size):
            raise ValueError(
                f"payload of {len(self.payload)} bytes does not fit a {self.packet_size}-byte packet"
            )

    @property
    def count(self) -> int:
        return len(self.payload)

    @property
    def last(self) -> bool:
        # A size-1 packet can never carry payload, so nothing can follow it.
        return self.count < max(1, max_payload(self.packet_size))

    def to_bytes(self) -> bytes:
        padding = b"\x00" * (max_payload(self.packet_size) - self.count)
        return bytes((self.count,)) + self.payload + padding

    @staticmethod
    def from_bytes(raw: bytes, packet_size: int = DEFAULT_PACKET_SIZE) -> "Packet":
        if len(raw) != packet_size:
            raise InvalidPacketLength(
                f"invalid received packet length: expected {packet_size}, got {len(raw)}"
            )
        count = raw[0]
        if count > max_payload(packet_size):
            raise InvalidPacketLength(
                f"chunk length {count} exceeds packet capacity {max_payload(packet_size)}"
            )
        return Packet(packet_size=packet_size, payload=bytes(raw[1 : 1 + count]))


def packet_count(length: int, packet_size: int, terminate: bool = True) -> int:
    stride = max_payload(check_packet_size(packet_size))
    if stride == 0:
        if length:
            raise ValueError("a 1-byte packet carries no payload")
        return 1 if terminate else 0
    if terminate:
        return length // stride + 1
    return -(-length // stride)


def encode(data: bytes, packet_size: int = DEFAULT_PACKET_SIZE, *, terminate: bool = True) -> Iterator[bytes]:
    """Yield the wire packets for ``data``.

    With ``terminate`` (the default) the last packet is always short, so a
    message whose length is a multiple of ``packet_size - 1`` (or zero) is
    followed by an empty packet. ``terminate=False`` stops after the last
    full chunk, which a receiver cannot tell apart from an unfinished message.
    """
    stride = max_payload(check_packet_size(packet_size))
    if stride == 0 and data:
        raise ValueError("a 1-byte packet carries no payload")

    view = memoryview(data)
    offset = 0
    count = 0
    while offset < len(view):
        count = min(stride, len(view) - offset)
        yield Packet(packet_size, bytes(view[offset : offset + count])).to_bytes()
        offset += count

    if terminate and (not view or count == stride):
        yield Packet(packet_size).to_bytes()


@dataclass(slots=True)
class Decoder:
    """Reassembles one message from packets fed in order."""

    packet_size: int = DEFAULT_PACKET_SIZE
    _buf: bytearray = field(default_factory=bytearray)
    _done: bool = False

    def __post_init__(self) -> None:
        check_packet_size(self.packet_size)

    @property
    def done(self) -> bool:
        return self._done

    def feed(self, raw: bytes) -> bool:
        """Consume one packet; return True once the message is complete."""
        if self._done:
            raise ValueError("message already complete")
        packet = Packet.from_bytes(raw, self.packet_size)
        self._buf += packet.payload
        self._done = packet.last
        return self._done

    def message(self) -> bytes:
        if not self._done:
            raise ValueError("message incomplete")
        return bytes(self._buf)

    def reset(self) -> None:
        self._buf.clear()
        self._done = False


def decode(packets: Iterable[bytes], packet_size: int = DEFAULT_PACKET_SIZE) -> bytes:
    decoder = Decoder(packet_size)
    for raw in packets:
        if decoder.feed(raw):
            return decoder.message()
    raise InvalidPacketLength("packet stream ended before the final packet")
