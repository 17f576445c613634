"""DUML packet framing, checksums and serial reading helpers."""

from __future__ import annotations

import time
from typing import Optional, Protocol, Tuple

HEADER_BYTE = 0x55
HEADER_SEED = 0x77
CRC_SEED = 0x3692  # P3/P4/Mavic seed
PROTOCOL_VERSION = 0x04
MIN_PACKET_LENGTH = 13
MAX_PACKET_LENGTH = 0x3FF
STICK_PACKET_LENGTH = 38
_LENGTH_MASK = 0x03FF


class DumlError(Exception):
    """Raised when a DUML packet cannot be built, read or validated."""


class SerialLike(Protocol):
    """The part of a serial port these helpers use."""

    def read(self, size: int = 1) -> bytes: ...

    def write(self, data: bytes) -> Optional[int]: ...


def _reflected_table(poly: int) -> tuple[int, ...]:
    table = []
    for value in range(256):
        crc = value
        for _ in range(8):
            crc = (crc >> 1) ^ poly if crc & 1 else crc >> 1
        table.append(crc)
    return tuple(table)


_CRC16_TABLE = _reflected_table(0x8408)
_CRC8_TABLE = _reflected_table(0x8C)


def calc_checksum(data: bytes) -> int:
    """Return the 16-bit DUML packet checksum of ``data``."""
    crc = CRC_SEED
    for byte in data:
        crc = (crc >> 8) ^ _CRC16_TABLE[(byte ^ crc) & 0xFF]
    return crc


def calc_header_checksum(seed: int, data: bytes) -> int:
    """Return the 8-bit header checksum of ``data`` starting from ``seed``."""
    crc = seed & 0xFF
    for byte in data:
        crc = _CRC8_TABLE[(byte ^ crc) & 0xFF]
    return crc


def read_bytes(port: SerialLike, count: int) -> bytes:
    """Read exactly ``count`` bytes, waiting through empty reads."""
    received = bytearray()
    while len(received) < count:
        chunk = port.read(count - len(received))
        if not chunk:
            time.sleep(0.005)
            continue
        received += chunk
    return bytes(received)


def read_packet_header(port: SerialLike) -> Tuple[bytes, int]:
    """Read the 4-byte header; return it with the packet length it declares."""
    try:
        start = port.read(1)
    except OSError as exc:
        raise DumlError("invalid start byte") from exc
    if len(start) != 1 or start[0] != HEADER_BYTE:
        raise DumlError("invalid start byte")

    try:
        length_bytes = read_bytes(port, 2)
    except OSError as exc:
        raise DumlError(f"failed to read header: {exc}") from exc
    length = int.from_bytes(length_bytes, "little") & _LENGTH_MASK

    try:
        checksum = port.read(1)
    except OSError as exc:
        raise DumlError(f"failed to read checksum: {exc}") from exc
    if len(checksum) != 1:
        raise DumlError("failed to read checksum")

    return start + length_bytes + checksum, length


def read_packet(port: SerialLike) -> bytes:
    """Read one whole packet (header and body) without validating it."""
    header, length = read_packet_header(port)
    remaining = length - len(header)
    if remaining <= 0:
        return header
    try:
        body = read_bytes(port, remaining)
    except OSError as exc:
        raise DumlError(f"failed to read packet body: {exc}") from exc
    return header + body


def validate_packet(packet: bytes) -> None:
    """Check the length, header checksum and CRC16 of a stick packet."""
    if len(packet) < STICK_PACKET_LENGTH:
        raise DumlError("invalid packet length")
    if calc_header_checksum(HEADER_SEED, packet[:3]) != packet[3]:
        raise DumlError("header checksum mismatch")
    if calc_checksum(packet[:-2]) != int.from_bytes(packet[-2:], "little"):
        raise DumlError("CRC16 checksum mismatch")


def build_duml(
    sequence_number: int,
    source_address: int,
    target_address: int,
    command_type: int,
    command_set: int,
    command_id: int,
    payload: Optional[bytes] = None,
) -> bytes:
    """Build a complete DUML packet with both checksums."""
    payload = bytes(payload or b"")
    length = MIN_PACKET_LENGTH + len(payload)
    if length > MAX_PACKET_LENGTH:
        raise DumlError("packet too large")

    packet = bytearray([HEADER_BYTE, length & 0xFF, (length >> 8) | PROTOCOL_VERSION])
    packet.append(calc_header_checksum(HEADER_SEED, packet))
    packet += bytes([source_address, target_address])
    packet += (sequence_number & 0xFFFF).to_bytes(2, "little")
    packet += bytes([command_type, command_set, command_id])
    packet += payload
    packet += calc_checksum(packet).to_bytes(2, "little")
    return bytes(packet)