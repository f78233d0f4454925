"""Zeo raw data protocol framing and checksum.

Frame format (multi-byte fields little-endian):
    "A4" [checksum] [len:2] [~len:2] [time_low] [subsec:2] [seq] [id] [payload...]

- Marker: ASCII "A4" (2 bytes)
- Checksum: (id + sum(payload)) % 256
- Length: 2 bytes, counts the identifier byte plus the payload
- Inverse length: bitwise complement of length, sent for redundancy
- Time low: lower 8 bits of the base station's unix time
- Sub-second: 16-bit counter, observed to reach about 16 per second
- Sequence: 8-bit, wraps after 255
- Identifier: data type of the payload

The serial port runs at 38400 baud, no parity, one stop bit.
"""

import struct

MARKER = b"A4"
MARKER_SIZE = 2
HEADER = struct.Struct("<BHHBHBB")  # checksum, len, ~len, time_low, subsec, seq, id
HEADER_SIZE = HEADER.size  # bytes following the marker
MIN_REMAINING = 14  # bytes required after the marker before decoding
MAX_PAYLOAD_SIZE = 256  # a waveform: 128 samples of 2 bytes
MAX_FRAME_SIZE = MARKER_SIZE + HEADER_SIZE + MAX_PAYLOAD_SIZE
BAUD_RATE = 38400


def checksum(identifier: int, payload: bytes) -> int:
    """Calculate the one-byte checksum over identifier and payload."""
    return (identifier + sum(payload)) % 256


def encode_frame(
    identifier: int,
    payload: bytes,
    *,
    time_low: int = 0,
    subsecond: int = 0,
    sequence: int = 0,
) -> bytes:
    """Encode a payload into a framed packet."""
    length = len(payload) + 1
    return (
        MARKER
        + HEADER.pack(
            checksum(identifier, payload),
            length,
            ~length & 0xFFFF,
            time_low & 0xFF,
            subsecond & 0xFFFF,
            sequence & 0xFF,
            identifier,
        )
        + payload
    )
