"""Single-register I2C frame helpers and bus-level flag enums."""

from __future__ import annotations

from enum import IntEnum

__all__ = [
    "AckBit",
    "BusyFlag",
    "RwBit",
    "check_rw",
    "receive_frame",
    "scan_addr",
    "send_addr",
    "send_frame",
]


class BusyFlag(IntEnum):
    """Whether a master currently owns the bus."""

    FREE = 0x00
    BUSY = 0x01


class RwBit(IntEnum):
    """Direction bit appended to a slave address."""

    WRITE = 0x00
    READ = 0x01


class AckBit(IntEnum):
    """Acknowledge bit values."""

    ACK = 0x00
    NACK = 0x01


def send_frame(mem: bytearray, frame: int) -> None:
    """Place one byte-sized frame on the bus."""
    mem[0] = frame & 0xFF


def send_addr(mem: bytearray, slave_addr: int, rw: RwBit) -> None:
    """Place a 7-bit slave address followed by the read/write bit on the bus."""
    send_frame(mem, (slave_addr << 1) | int(rw))


def receive_frame(mem: bytearray) -> int:
    """Return the frame currently on the bus."""
    return mem[0]


def scan_addr(mem: bytearray, device_addr: int) -> bool:
    """Return True if the address frame on the bus targets ``device_addr``."""
    return (mem[0] >> 1) == device_addr


def check_rw(mem: bytearray) -> RwBit:
    """Return the read/write bit of the address frame on the bus."""
    return RwBit(mem[0] & 0x01)