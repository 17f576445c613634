# rcnxbridge

Tools for talking to a DJI RC-Nx remote controller over its USB virtual
serial port ("DJI USB VCOM For Protocol"):

- `rcnxbridge.duml`: building, reading and validating DUML packets,
  including the 8-bit header checksum and the CRC16.
- `rcnxbridge.translator`: polls the controller for its stick positions and
  passes them on to a gamepad object that you supply.
- `rcnxbridge.simulator`: a stand-in for the controller that answers
  channel-value requests with generated stick movement, so the translator
  can be tried without the real hardware.

## Installation

```
pip install rcnxbridge
```

For running the tests:

```
pip install "rcnxbridge[test]"
pytest
```

## Working with DUML packets

```python
from rcnxbridge.duml import build_duml, read_packet, validate_packet, DumlError

# Ask the controller for its latest channel values.
packet = build_duml(0x34EB, 0x0A, 0x06, 0x40, 0x06, 0x01, None)
```

- `build_duml(sequence_number, source_address, target_address, command_type,
  command_set, command_id, payload)` returns the whole packet as `bytes`. It
  raises `DumlError` if the packet would be longer than 0x3FF bytes.
- `calc_checksum(data)` and `calc_header_checksum(seed, data)` compute the
  packet CRC16 and the header checksum.
- `read_bytes(port, count)` reads exactly `count` bytes from a serial port,
  waiting through empty reads. `read_packet_header(port)` reads the four
  header bytes and returns them with the length the header declares;
  `read_packet(port)` reads a whole packet. These raise `DumlError` when the
  start byte is wrong or a read fails.
- `validate_packet(packet)` raises `DumlError` when a stick-data packet is
  shorter than 38 bytes or its header checksum or CRC16 does not match.

## Translating sticks to a gamepad

`rcnxbridge.translator` provides:

- `parse_input(raw)`: maps a little-endian raw stick reading (364 to 1024 to
  1684) to the gamepad range (-32768 to 0 to 32767).
- `get_stick_status(packet)`: validates a 38-byte stick packet and returns a
  `StickState` with `right_horizontal`, `right_vertical`, `left_vertical`,
  `left_horizontal` and `camera_dial`.
- `find_dji_port(ports)`: returns the device name of the first USB port whose
  product is "DJI USB VCOM For Protocol", for example from
  `serial.tools.list_ports.comports()`; raises `LookupError` otherwise.
- `Button`: the Xbox 360 `Y` and `B` button values.
- `Translator(port, gamepad, log)`: given an open serial port, a gamepad
  object and an optional logging callable, it can
  - `enable_simulator_mode()` and `request_channel_values()` (send the
    matching DUML commands),
  - `poll()` once (request, read one reply, and return the new `StickState`
    for a 38-byte packet or `None` otherwise),
  - `apply_to_gamepad()`: push the current state to the gamepad, pressing Y
    when the camera dial is above 32000, B when it is below -32000, and
    releasing both otherwise,
  - `start()` two background threads that keep polling the controller and
    refreshing the gamepad every 100 ms, and `stop()` them, closing the port
    and the gamepad.

```python
import serial
from serial.tools import list_ports
from rcnxbridge.translator import Translator, find_dji_port

port = serial.Serial(find_dji_port(list_ports.comports()), 115200, timeout=0.1)
translator = Translator(port, my_gamepad, print)
translator.start()
...
translator.stop()
```

The gamepad object needs `left_joystick(x, y)`, `right_joystick(x, y)`,
`press_button(button)`, `release_button(button)` and `update()`; if it has
`reset()` it is called by `start()`, and if it has `close()` it is called by
`stop()`.

### What is not included

The package has no virtual gamepad driver of its own and no window or
command for running the translator: you supply the gamepad object and call
`Translator` from your own code.

## Running the simulator

Connect one end of a virtual serial port pair to the translator and run the
simulator on the other end:

```
rcnxbridge-simulator --port COM2 --verbose
```

If you leave out `--port`, the simulator takes the first USB serial port
whose name does not contain "bluetooth". It logs "Simulator mode enabled"
when asked to enter simulator mode and answers each channel-value request
with a stick-data packet. Stop it with Ctrl+C. It exits with status 1 when
no port can be found or opened.

From code, `Simulator(port, verbose)` offers `handle_packet(packet)`,
`handle_stick_data_request(t)` and `run(stop_event)`; `parse_duml_packet`
returns a `DumlPacket`, `create_stick_data_payload` and `generate_motion`
build the simulated stick data, `choose_port` picks a port, and
`show_usb_ports` prints the serial ports found.