import pytest

from rcnxbridge.duml import (
    DumlError,
    build_duml,
    calc_checksum,
    calc_header_checksum,
    read_bytes,
    read_packet,
    read_packet_header,
    validate_packet,
)


class FakePort:
    def __init__(self, data=b"", chunk=None):
        self.incoming = bytearray(data)
        self.chunk = chunk
        self.calls = 0

    def read(self, size=1):
        self.calls += 1
        if not self.incoming:
            raise OSError("port exhausted")
        take = size if self.chunk is None else min(size, self.chunk)
        data = bytes(self.incoming[:take])
        del self.incoming[:take]
        return data

    def write(self, data):
        return len(data)


def _stick_packet():
    return build_duml(0x34EB, 0x06, 0x0A, 0x40, 0x06, 0x01, bytes(range(25)))


def test_checksum_of_nothing_is_seed():
    assert calc_checksum(b"") == 0x3692


def test_header_checksum_of_nothing_is_seed():
    assert calc_header_checksum(0x77, b"") == 0x77


@pytest.mark.parametrize("data,expected", [(b"\x01", 0x5E), (b"\x80", 0x8C)])
def test_header_checksum_table_values(data, expected):
    assert calc_header_checksum(0, data) == expected


def test_built_packet_layout():
    packet = build_duml(0x34EB, 0x0A, 0x06, 0x40, 0x06, 0x01, None)
    assert len(packet) == 13
    assert packet[0] == 0x55
    assert packet[1] == 13
    assert packet[2] == 0x04
    assert packet[4:6] == bytes([0x0A, 0x06])
    assert packet[6:8] == (0x34EB).to_bytes(2, "little")
    assert packet[8:11] == bytes([0x40, 0x06, 0x01])


def test_built_packet_checksums_consistent():
    packet = build_duml(0x1234, 0x0A, 0x06, 0x40, 0x06, 0x24, b"\x01")
    assert packet[3] == calc_header_checksum(0x77, packet[:3])
    assert int.from_bytes(packet[-2:], "little") == calc_checksum(packet[:-2])
    assert packet[11:12] == b"\x01"


def test_crc_residue_is_zero():
    packet = _stick_packet()
    assert calc_checksum(packet) == 0
    assert calc_header_checksum(0x77, packet[:4]) == 0


def test_sequence_number_wraps_to_16_bits():
    packet = build_duml(0x1FFFF, 1, 2, 3, 4, 5)
    assert packet[6:8] == b"\xff\xff"


def test_packet_too_large():
    with pytest.raises(DumlError, match="too large"):
        build_duml(0, 1, 2, 3, 4, 5, bytes(0x3FF - 13 + 1))


def test_largest_packet_allowed():
    packet = build_duml(0, 1, 2, 3, 4, 5, bytes(0x3FF - 13))
    assert len(packet) == 0x3FF
    assert int.from_bytes(packet[1:3], "little") & 0x3FF == 0x3FF


def test_validate_accepts_stick_packet():
    packet = _stick_packet()
    assert len(packet) == 38
    validate_packet(packet)
    assert packet[3] == calc_header_checksum(0x77, packet[:3])


def test_validate_rejects_short_packet():
    with pytest.raises(DumlError, match="invalid packet length"):
        validate_packet(build_duml(0, 1, 2, 3, 4, 5, bytes(10)))


def test_validate_rejects_bad_header_checksum():
    packet = bytearray(_stick_packet())
    packet[3] ^= 0xFF
    with pytest.raises(DumlError, match="header checksum"):
        validate_packet(bytes(packet))


def test_validate_rejects_bad_crc():
    packet = bytearray(_stick_packet())
    packet[20] ^= 0x01
    with pytest.raises(DumlError, match="CRC16"):
        validate_packet(bytes(packet))


def test_read_bytes_handles_partial_reads():
    port = FakePort(b"abcdef", chunk=1)
    assert read_bytes(port, 4) == b"abcd"
    assert port.calls == 4


def test_read_packet_header():
    packet = _stick_packet()
    header, length = read_packet_header(FakePort(packet))
    assert header == packet[:4]
    assert length == 38


def test_read_packet_header_rejects_bad_start():
    with pytest.raises(DumlError, match="invalid start byte"):
        read_packet_header(FakePort(b"\x00\x01\x02\x03"))


def test_read_packet_header_on_empty_port():
    with pytest.raises(DumlError, match="invalid start byte"):
        read_packet_header(FakePort(b""))


def test_read_packet_header_missing_checksum():
    with pytest.raises(DumlError, match="checksum"):
        read_packet_header(FakePort(b"\x55\x0d\x04"))


def test_read_packet_round_trip_chunked():
    packet = _stick_packet()
    assert read_packet(FakePort(packet + b"\x55", chunk=3)) == packet


def test_read_packet_short_body():
    packet = _stick_packet()
    with pytest.raises(DumlError, match="body"):
        read_packet(FakePort(packet[:20]))