"""Streaming decoder turning serial bytes into Zeo packets.

The session never reads from the port and never blocks. The caller appends
whatever bytes arrived and calls ``decode_next()`` until it returns
``AwaitingMoreData``::

    session = DecodeSession()
    session.append(chunk)
    for outcome in session.drain():
        ...

A rejected frame only consumes its own bytes, so the next call resumes
scanning for a marker right after it.
"""

import logging
import struct
from collections import Counter
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum

from .clock import (
    Correction,
    SequenceGap,
    SequenceTracker,
    SubsecondHistogram,
    TimestampReconciler,
)
from .protocol import HEADER, HEADER_SIZE, MARKER, MARKER_SIZE, MIN_REMAINING, checksum
from .reservoir import DEFAULT_CAPACITY, ByteReservoir
from .tables import DataType, Unrecognized

logger = logging.getLogger(__name__)

# checksum byte followed by length and inverse length
_LENGTHS = struct.Struct("<xHH")


class FailureKind(Enum):
    LENGTH_MISMATCH = "length mismatch"
    CHECKSUM_MISMATCH = "checksum mismatch"
    TRUNCATED_PAYLOAD = "truncated payload"
    UNKNOWN_DATA_TYPE = "unknown data type"


@dataclass(frozen=True)
class Packet:
    """A validated frame, with time and version filled in from carried state."""

    timestamp: int | None  # seconds, None until a ZeoTimestamp frame is seen
    subsecond: int
    version: int | None  # None until a Version frame is seen
    data_type: DataType
    payload: bytes
    sequence: int
    time_low: int
    correction: Correction | None = None

    @property
    def fraction(self) -> float:
        """Sub-second counter as a fraction of a second."""
        return max(self.subsecond - 1, 0) / 15


@dataclass(frozen=True)
class Decoded:
    packet: Packet
    gap: SequenceGap | None = None


@dataclass(frozen=True)
class AwaitingMoreData:
    """No complete frame is resident; append more bytes and call again."""

    reason: FailureKind | None = None


@dataclass(frozen=True)
class Rejected:
    """A frame failed validation. Its bytes have been consumed."""

    kind: FailureKind
    code: int | None = None  # identifier byte, when the header was parsed
    payload: bytes = b""
    gap: SequenceGap | None = None


FrameOutcome = Decoded | AwaitingMoreData | Rejected


def synchronize(reservoir: ByteReservoir) -> bool:
    """Consume bytes up to and including the next marker.

    Returns True when a marker was consumed and at least MIN_REMAINING
    bytes follow it. When too few bytes follow, the marker is pushed back
    so the next attempt finds it again at the front.
    """
    start = reservoir.find(MARKER)
    if start < 0:
        # A trailing "A" may be the first half of a marker split across reads
        keep = 1 if reservoir.endswith(MARKER[:1]) else 0
        skipped = len(reservoir) - keep
        if skipped:
            reservoir.discard(skipped)
            logger.debug("No marker found, skipped %d bytes", skipped)
        return False

    if start > 0:
        reservoir.discard(start)
        logger.debug("Skipped %d bytes before marker", start)
    reservoir.take(MARKER_SIZE)

    if len(reservoir) < MIN_REMAINING:
        reservoir.push_front(MARKER)
        return False
    return True


def _read_u32(payload: bytes) -> int:
    # A short field is padded with zeros
    return int.from_bytes(payload[:4].ljust(4, b"\x00"), "little")


class DecodeSession:
    """Decoding state for one serial session.

    Owns the byte reservoir, the sequence tracker and the clock. A
    ``SubsecondHistogram`` may be passed in to record sub-second values.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        histogram: SubsecondHistogram | None = None,
    ) -> None:
        self.reservoir = ByteReservoir(capacity)
        self.sequence = SequenceTracker()
        self.clock = TimestampReconciler()
        self.histogram = histogram
        self.decoded = 0
        self.rejections: Counter[FailureKind] = Counter()

    def append(self, data: bytes) -> None:
        """Add newly received bytes."""
        self.reservoir.append(data)

    def feed(self, data: bytes) -> list[FrameOutcome]:
        """Append bytes and return every outcome they complete."""
        self.append(data)
        return list(self.drain())

    def drain(self) -> Iterator[FrameOutcome]:
        """Yield outcomes until no complete frame is left."""
        while True:
            outcome = self.decode_next()
            if isinstance(outcome, AwaitingMoreData):
                return
            yield outcome

    def decode_next(self) -> FrameOutcome:
        """Attempt to decode one frame from the buffered bytes."""
        if not synchronize(self.reservoir):
            return AwaitingMoreData()

        outcome = self._decode_frame()
        if isinstance(outcome, Decoded):
            self.decoded += 1
        elif isinstance(outcome, Rejected):
            self.rejections[outcome.kind] += 1
        return outcome

    def reset(self) -> None:
        """Drop buffered bytes and all carried sequence and clock state."""
        self.reservoir.clear()
        self.sequence.reset()
        self.clock.reset()

    def _decode_frame(self) -> FrameOutcome:
        reservoir = self.reservoir
        length, inverse = _LENGTHS.unpack(reservoir.peek(_LENGTHS.size))

        # The length must at least cover the identifier byte
        if length != ~inverse & 0xFFFF or length == 0:
            reservoir.discard(_LENGTHS.size)
            logger.debug("Length mismatch: %d vs inverse 0x%04X", length, inverse)
            return Rejected(FailureKind.LENGTH_MISMATCH)

        payload_size = length - 1
        if len(reservoir) < HEADER_SIZE + payload_size:
            reservoir.push_front(MARKER)
            return AwaitingMoreData(FailureKind.TRUNCATED_PAYLOAD)

        (
            expected_checksum,
            _,
            _,
            time_low,
            subsecond,
            sequence,
            identifier,
        ) = HEADER.unpack(reservoir.take(HEADER_SIZE))
        payload = reservoir.take(payload_size)

        gap = self.sequence.observe(sequence)
        if self.histogram is not None:
            self.histogram.record(subsecond)

        if checksum(identifier, payload) != expected_checksum:
            logger.debug(
                "Checksum mismatch on sequence %d: expected 0x%02X, got 0x%02X",
                sequence,
                expected_checksum,
                checksum(identifier, payload),
            )
            return Rejected(FailureKind.CHECKSUM_MISMATCH, identifier, payload, gap)

        data_type = DataType.from_byte(identifier)
        if isinstance(data_type, Unrecognized):
            logger.debug("Unknown data type 0x%02X (%d bytes)", identifier, len(payload))
            return Rejected(FailureKind.UNKNOWN_DATA_TYPE, identifier, payload, gap)

        if data_type is DataType.ZeoTimestamp:
            self.clock.sync(_read_u32(payload))
            payload = payload[4:]
        elif data_type is DataType.Version:
            self.clock.set_version(_read_u32(payload))
            payload = payload[4:]

        timestamp, correction = self.clock.reconcile(time_low)
        packet = Packet(
            timestamp=timestamp,
            subsecond=subsecond,
            version=self.clock.state.version,
            data_type=data_type,
            payload=payload,
            sequence=sequence,
            time_low=time_low,
            correction=correction,
        )
        logger.debug(
            "Decoded %s seq=%d time=%s+%d (%d bytes)",
            data_type,
            sequence,
            timestamp,
            subsecond,
            len(payload),
        )
        return Decoded(packet, gap)
