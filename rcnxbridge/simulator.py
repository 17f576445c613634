"""A stand-in remote controller that answers a translator over a serial port."""

from __future__ import annotations

import argparse
import logging
import math
import signal
import threading
import time
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

import serial
from serial.tools import list_ports

from rcnxbridge.duml import (
    HEADER_BYTE,
    HEADER_SEED,
    MIN_PACKET_LENGTH,
    DumlError,
    SerialLike,
    build_duml,
    calc_checksum,
    calc_header_checksum,
    read_packet,
)

logger = logging.getLogger(__name__)

BAUD_RATE = 115200
INITIAL_SEQUENCE = 0x4321
STICK_PAYLOAD_LENGTH = 25
_STICK_OFFSETS = (2, 5, 8, 11, 14)


@dataclass(frozen=True)
class DumlPacket:
    """The fields of a parsed DUML packet."""

    source_address: int
    target_address: int
    sequence_number: int
    command_type: int
    command_set: int
    command_id: int
    payload: bytes


def parse_duml_packet(packet: bytes) -> DumlPacket:
    """Check a DUML packet's framing and checksums and return its fields."""
    if len(packet) < MIN_PACKET_LENGTH:
        raise DumlError("packet too short")
    if packet[0] != HEADER_BYTE:
        raise DumlError(f"invalid packet header: expected 0x55, got 0x{packet[0]:02X}")

    length = int.from_bytes(packet[1:3], "little") & 0x03FF
    if length != len(packet):
        raise DumlError(f"invalid packet length: expected {len(packet)}, got {length}")

    header_crc = calc_header_checksum(HEADER_SEED, packet[:3])
    if header_crc != packet[3]:
        raise DumlError(
            f"header checksum mismatch: expected 0x{header_crc:02X}, got 0x{packet[3]:02X}"
        )

    expected = int.from_bytes(packet[-2:], "little")
    calculated = calc_checksum(packet[:-2])
    if expected != calculated:
        raise DumlError(
            f"packet checksum mismatch: expected 0x{expected:04X}, got 0x{calculated:04X}"
        )

    return DumlPacket(
        source_address=packet[4],
        target_address=packet[5],
        sequence_number=int.from_bytes(packet[6:8], "little"),
        command_type=packet[8],
        command_set=packet[9],
        command_id=packet[10],
        payload=bytes(packet[11:-2]),
    )


def _to_raw(value: int) -> int:
    """Map a gamepad axis value (-32768..32767) to the controller's 364..1684 range."""
    value = max(-32768, min(32767, value))
    scaled = abs(value) * 165 // (2 * 4096)
    if value < 0:
        scaled = -scaled
    return (scaled + 1024) & 0xFFFF


def create_stick_data_payload(
    right_h: int, right_v: int, left_v: int, left_h: int, camera: int
) -> bytes:
    """Build the 25-byte payload that makes a 38-byte stick data packet."""
    payload = bytearray(STICK_PAYLOAD_LENGTH)
    for offset, value in zip(_STICK_OFFSETS, (right_h, right_v, left_v, left_h, camera)):
        payload[offset : offset + 2] = _to_raw(value).to_bytes(2, "little")
    return bytes(payload)


def generate_motion(t: float) -> Tuple[int, int, int, int, int]:
    """Return (right_h, right_v, left_v, left_h, camera) for time ``t`` in seconds."""
    right_h = int(25000 * math.sin(t))
    right_v = int(25000 * math.cos(t))
    left_h = int(20000 * math.sin(t))
    left_v = int(20000 * math.sin(t * 2))
    camera = int(30000 * math.sin(t / 2))
    return right_h, right_v, left_v, left_h, camera


def _is_usb(port_info) -> bool:
    return getattr(port_info, "vid", None) is not None


def choose_port(ports: Sequence) -> str:
    """Pick the first USB port whose name does not mention bluetooth."""
    if not ports:
        raise LookupError("No COM ports available")
    for port_info in ports:
        if _is_usb(port_info) and "bluetooth" not in port_info.device:
            return port_info.device
    raise LookupError("No suitable COM port found")


def show_usb_ports(ports: Optional[Iterable] = None) -> None:
    """Print every serial port, then the USB ones."""
    ports = list(list_ports.comports() if ports is None else ports)
    if not ports:
        print("No serial ports found!")
        return

    print(f"Found USB ports: {len(ports)}")
    for port_info in ports:
        print(f"Product: {getattr(port_info, 'product', None) or ''}")
        print(f"Port name: {port_info.device}")

    print("Found USB ports")
    for port_info in filter(_is_usb, ports):
        print(f"Product: {getattr(port_info, 'product', None) or ''}")
        print(f"Port name: {port_info.device}")


class Simulator:
    """Answers channel-value requests with generated stick motion."""

    def __init__(self, port: SerialLike, verbose: bool = False) -> None:
        self.port = port
        self.verbose = verbose
        self.sequence_number = INITIAL_SEQUENCE
        self.simulator_mode = False

    def send_duml(
        self,
        source_address: int,
        target_address: int,
        command_type: int,
        command_set: int,
        command_id: int,
        payload: Optional[bytes] = None,
    ) -> bytes:
        """Write one packet to the port and advance the sequence number."""
        packet = build_duml(
            self.sequence_number,
            source_address,
            target_address,
            command_type,
            command_set,
            command_id,
            payload,
        )
        self.port.write(packet)
        self.sequence_number = (self.sequence_number + 1) & 0xFFFF
        return packet

    def handle_stick_data_request(self, t: Optional[float] = None) -> bytes:
        """Send a stick data packet for time ``t`` (now if not given)."""
        if t is None:
            t = time.time()
        payload = create_stick_data_payload(*generate_motion(t))
        return self.send_duml(0x06, 0x0A, 0x40, 0x06, 0x01, payload)

    def handle_packet(self, packet: bytes) -> None:
        """Act on one received packet; raises DumlError if it is malformed."""
        parsed = parse_duml_packet(packet)
        if parsed.command_type != 0x40 or parsed.command_set != 0x06:
            return
        if parsed.command_id == 0x01:
            if self.verbose:
                logger.info("Received channel values request, sending stick data")
            try:
                self.handle_stick_data_request()
            except (OSError, DumlError) as exc:
                logger.error("Error sending stick data: %s", exc)
        elif parsed.command_id == 0x24:
            if parsed.payload[:1] == b"\x01":
                logger.info("Simulator mode enabled")
                self.simulator_mode = True

    def run(self, stop_event: threading.Event) -> None:
        """Read and answer packets until ``stop_event`` is set."""
        while not stop_event.is_set():
            try:
                packet = read_packet(self.port)
            except DumlError as exc:
                if self.verbose:
                    logger.info("Read error: %s", exc)
                continue
            try:
                self.handle_packet(packet)
            except DumlError as exc:
                logger.error("Error parsing packet: %s", exc)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the simulator on a serial port until interrupted."""
    parser = argparse.ArgumentParser(
        prog="rcnx-simulator",
        description="Simulate a DJI remote controller for testing purposes.",
    )
    parser.add_argument(
        "-port",
        "--port",
        default="",
        help="COM port to use (if not specified, will use the first available port)",
    )
    parser.add_argument(
        "-verbose", "--verbose", action="store_true", help="Enable verbose logging"
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")
    logger.info("DJI RC-Nx Simulator starting...")
    logger.info("This program simulates a DJI remote controller for testing purposes")

    try:
        ports = list_ports.comports()
    except OSError as exc:
        logger.error("Error getting port list: %s", exc)
        return 1

    port_name = args.port
    if not port_name:
        try:
            port_name = choose_port(ports)
        except LookupError as exc:
            logger.error("%s", exc)
            return 1

    logger.info("Using COM port: %s", port_name)
    try:
        port = serial.Serial(port_name, BAUD_RATE, timeout=0.1)
    except serial.SerialException as exc:
        logger.error("Failed to open COM port: %s", exc)
        return 1

    stop_event = threading.Event()

    def _request_stop(signum, frame):
        stop_event.set()

    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            signal.signal(signum, _request_stop)
        except ValueError:
            pass

    with port:
        logger.info("Port opened successfully. Simulating DJI USB VCOM For Protocol")
        logger.info("Waiting for commands from the translator program...")
        simulator = Simulator(port, args.verbose)
        worker = threading.Thread(target=simulator.run, args=(stop_event,), daemon=True)
        worker.start()
        try:
            while not stop_event.wait(0.5):
                pass
        except KeyboardInterrupt:
            stop_event.set()
        logger.info("Shutting down...")
        worker.join(timeout=1.0)
    return 0