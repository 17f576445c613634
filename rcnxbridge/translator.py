"""Turns remote-controller stick reports into virtual gamepad state."""

from __future__ import annotations

import enum
import logging
import threading
import traceback
from dataclasses import dataclass, replace
from typing import Callable, Iterable, List, Optional, Protocol

from rcnxbridge.duml import (
    STICK_PACKET_LENGTH,
    DumlError,
    SerialLike,
    build_duml,
    read_packet,
    validate_packet,
)

logger = logging.getLogger(__name__)

INITIAL_SEQUENCE = 0x34EB
DJI_PRODUCT = "DJI USB VCOM For Protocol"
BAUD_RATE = 115200
RAW_CENTER = 1024
BUTTON_THRESHOLD = 32000
GAMEPAD_INTERVAL = 0.1
SERIAL_INTERVAL = 0.01
REQUEST_RETRY_DELAY = 0.1

_AXIS_OFFSETS = (13, 16, 19, 22, 25)


class Button(enum.IntEnum):
    """Xbox 360 buttons the translator drives."""

    B = 0x2000
    Y = 0x8000


class GamepadLike(Protocol):
    """The part of a virtual Xbox 360 gamepad the translator uses."""

    def left_joystick(self, x: int, y: int) -> None: ...

    def right_joystick(self, x: int, y: int) -> None: ...

    def press_button(self, button: Button) -> None: ...

    def release_button(self, button: Button) -> None: ...

    def update(self) -> None: ...


@dataclass(frozen=True)
class StickState:
    """Stick and dial positions in gamepad range (-32768..32767)."""

    right_horizontal: int = 0
    right_vertical: int = 0
    left_vertical: int = 0
    left_horizontal: int = 0
    camera_dial: int = 0


def _to_int16(value: int) -> int:
    return ((value + 0x8000) & 0xFFFF) - 0x8000


def parse_input(raw: bytes) -> int:
    """Map a little-endian controller value (364..1024..1684) to gamepad range."""
    value = int.from_bytes(raw[:2], "little") - RAW_CENTER
    scaled = abs(value) * 2 * 4096 // 165
    mapped = -scaled if value < 0 else scaled
    if mapped >= 32768:
        mapped = 32767
    return _to_int16(mapped)


def get_stick_status(packet: bytes) -> StickState:
    """Validate a stick data packet and decode its axes; raises DumlError."""
    validate_packet(packet)
    right_h, right_v, left_v, left_h, camera = (
        parse_input(packet[offset : offset + 2]) for offset in _AXIS_OFFSETS
    )
    return StickState(
        right_horizontal=right_h,
        right_vertical=right_v,
        left_vertical=left_v,
        left_horizontal=left_h,
        camera_dial=camera,
    )


def find_dji_port(ports: Iterable) -> str:
    """Return the device name of the first DJI protocol USB port."""
    for port_info in ports:
        is_usb = getattr(port_info, "vid", None) is not None
        if is_usb and getattr(port_info, "product", None) == DJI_PRODUCT:
            return port_info.device
    raise LookupError(f"{DJI_PRODUCT} not found")


class Translator:
    """Polls the controller over serial and mirrors its sticks on a gamepad."""

    def __init__(
        self,
        port: Optional[SerialLike],
        gamepad: Optional[GamepadLike],
        log: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.port = port
        self.gamepad = gamepad
        self.log = log if log is not None else logger.info
        self.sequence_number = INITIAL_SEQUENCE
        self._state = StickState()
        self._lock = threading.Lock()
        self._stop_event: Optional[threading.Event] = None
        self._threads: List[threading.Thread] = []

    @property
    def state(self) -> StickState:
        """The latest decoded stick state."""
        with self._lock:
            return self._state

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
        if self.port is None:
            raise DumlError("serial port is not open")
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

    def enable_simulator_mode(self) -> bytes:
        """Ask the controller for faster stick position updates."""
        return self.send_duml(0x0A, 0x06, 0x40, 0x06, 0x24, b"\x01")

    def request_channel_values(self) -> bytes:
        """Ask the controller for its latest channel values."""
        return self.send_duml(0x0A, 0x06, 0x40, 0x06, 0x01, None)

    def poll(self) -> Optional[StickState]:
        """Request and read one reply; return the new state for a stick packet."""
        self.request_channel_values()
        if self.port is None:
            raise DumlError("serial port is not open")
        packet = read_packet(self.port)
        if len(packet) != STICK_PACKET_LENGTH:
            return None
        state = get_stick_status(packet)
        with self._lock:
            self._state = state
        return state

    def apply_to_gamepad(self) -> None:
        """Push the current state to the gamepad, pressing Y or B at dial extremes."""
        gamepad = self.gamepad
        if gamepad is None:
            return
        state = self.state
        gamepad.left_joystick(state.left_horizontal, state.left_vertical)
        gamepad.right_joystick(state.right_horizontal, state.right_vertical)
        if state.camera_dial > BUTTON_THRESHOLD:
            gamepad.press_button(Button.Y)
        elif state.camera_dial < -BUTTON_THRESHOLD:
            gamepad.press_button(Button.B)
        else:
            gamepad.release_button(Button.Y)
            gamepad.release_button(Button.B)
        gamepad.update()

    def run_serial_loop(self, stop_event: threading.Event) -> None:
        """Poll the controller until ``stop_event`` is set."""
        try:
            self.enable_simulator_mode()
        except (OSError, DumlError) as exc:
            self.log(f"Error sending DUML command: {exc}")

        while not stop_event.is_set():
            if self.port is None:
                self.log("Serial port is no longer available")
                return
            try:
                self.request_channel_values()
            except (OSError, DumlError) as exc:
                self.log(f"Error requesting channel values: {exc}")
                stop_event.wait(REQUEST_RETRY_DELAY)
                continue
            try:
                packet = read_packet(self.port)
            except (OSError, DumlError) as exc:
                self.log(f"Error reading packet: {exc}")
                continue
            if len(packet) == STICK_PACKET_LENGTH:
                try:
                    state = get_stick_status(packet)
                except DumlError as exc:
                    self.log(f"Error validating packet: {exc}")
                    continue
                with self._lock:
                    self._state = state
            stop_event.wait(SERIAL_INTERVAL)
        self.log("Serial read loop stopped")

    def run_gamepad_loop(self, stop_event: threading.Event) -> None:
        """Refresh the gamepad every 100 ms until ``stop_event`` is set."""
        self.log("Gamepad update loop started.")
        while not stop_event.wait(GAMEPAD_INTERVAL):
            try:
                self.apply_to_gamepad()
            except Exception as exc:  # the gamepad backend may raise anything
                self.log(f"Error updating gamepad state: {exc}")
        self.log("Gamepad update loop stopped.")

    def _guarded(self, name: str, target: Callable[[threading.Event], None]):
        def runner(stop_event: threading.Event) -> None:
            try:
                target(stop_event)
            except Exception as exc:
                self.log(f"PANIC in {name} thread: {exc}\n{traceback.format_exc()}")

        return runner

    def start(self) -> None:
        """Reset the gamepad and start the gamepad and serial threads."""
        if self._threads:
            raise RuntimeError("translator already running")
        reset = getattr(self.gamepad, "reset", None)
        if callable(reset):
            reset()
        self.log("Starting translator process...")
        stop_event = threading.Event()
        self._stop_event = stop_event
        self._threads = [
            threading.Thread(
                target=self._guarded(name, target),
                args=(stop_event,),
                name=name,
                daemon=True,
            )
            for name, target in (
                ("GamepadUpdate", self.run_gamepad_loop),
                ("SerialReadLoop", self.run_serial_loop),
            )
        ]
        for thread in self._threads:
            thread.start()

    def stop(self) -> None:
        """Stop the threads and close the port and gamepad."""
        if self._stop_event is not None:
            self._stop_event.set()
        for thread in self._threads:
            thread.join(timeout=1.0)
        self._threads = []
        self._stop_event = None

        for resource in (self.port, self.gamepad):
            close = getattr(resource, "close", None)
            if callable(close):
                try:
                    close()
                except OSError as exc:
                    self.log(f"Error closing resource: {exc}")
        self.port = None
        self.gamepad = None
        self.log("Translator stopped.")