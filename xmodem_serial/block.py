# block.py
#
# <SOH><blk #><255-blk #><--128 data bytes--><cksum>
from __future__ import annotations

from dataclasses import dataclass
from typing import BinaryIO, Optional

from .constants import BLOCK_SIZE, PACKET_SIZE, SOH, SUB


def calc_checksum(data) -> int:
    # payload bytes are summed as signed 8-bit values, then cut to 8 bits
    total = 0
    for byte in data:
        total += byte - 0x100 if byte & 0x80 else byte
    return total & 0xFF


def next_sequence(seq: int) -> int:
    return (seq + 1) & 0xFF


def frame(seq: int, payload: bytes) -> bytes:
    """Build the 132-byte wire block for ``payload``, padding it with SUB."""
    if len(payload) > PACKET_SIZE:
        raise ValueError(f"payload too large: {len(payload)}")
    seq &= 0xFF
    data = bytes(payload) + bytes([SUB]) * (PACKET_SIZE - len(payload))
    return Block(seq, ~seq & 0xFF, data, calc_checksum(data)).to_bytes()


def read_payload(source: BinaryIO) -> bytes:
    data = source.read(PACKET_SIZE)
    while data and len(data) < PACKET_SIZE:
        more = source.read(PACKET_SIZE - len(data))
        if not more:
            break
        data += more
    return data


def assemble(seq: int, source: BinaryIO) -> Optional[bytes]:
    """Frame the next payload from ``source``; None once it has nothing left."""
    data = read_payload(source)
    if not data:
        return None
    return frame(seq, data)


@dataclass(frozen=True, slots=True)
class Block:
    seq: int
    complement: int
    payload: bytes
    checksum: int

    @property
    def intact(self) -> bool:
        return (
            self.complement == ~self.seq & 0xFF
            and self.checksum == calc_checksum(self.payload)
        )

    def to_bytes(self) -> bytes:
        return bytes([SOH, self.seq, self.complement]) + self.payload + bytes([self.checksum])

    @staticmethod
    def from_bytes(raw) -> "Block":
        if len(raw) < BLOCK_SIZE:
            raise ValueError(f"block too short: {len(raw)} bytes")
        return Block(
            seq=raw[1],
            complement=raw[2],
            payload=bytes(raw[3:3 + PACKET_SIZE]),
            checksum=raw[BLOCK_SIZE - 1],
        )


def verify(raw) -> bool:
    """True when the sequence complement and the checksum both match.

    The sequence number itself is not compared with anything here.
    """
    if len(raw) < BLOCK_SIZE:
        return False
    return Block.from_bytes(raw).intact
