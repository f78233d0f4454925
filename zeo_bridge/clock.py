"""Sequence and clock state carried from one frame to the next."""

import logging
from collections import Counter
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

MAX_ABSOLUTE = 0xFFFFFFFF

# Sub-second values the base station is known to send
KNOWN_SUBSECONDS = frozenset(range(2, 17, 2))


@dataclass(frozen=True)
class SequenceGap:
    """Frames missing between two observed sequence numbers."""

    expected: int
    observed: int

    @property
    def lost(self) -> int:
        return (self.observed - self.expected) % 256


class SequenceTracker:
    """Detects frames lost between consecutive sequence numbers.

    A gap is only reported; it never causes a frame to be rejected.
    """

    def __init__(self) -> None:
        self.last: int | None = None

    def observe(self, sequence: int) -> SequenceGap | None:
        """Record a sequence number, returning the gap before it if any."""
        gap = None
        if self.last is not None:
            expected = (self.last + 1) % 256
            if sequence != expected:
                gap = SequenceGap(expected, sequence)
                logger.warning(
                    "Lost %d frame(s): expected sequence %d, got %d",
                    gap.lost,
                    expected,
                    sequence,
                )
        self.last = sequence
        return gap

    def reset(self) -> None:
        self.last = None


class Correction(Enum):
    """How a frame's time-low byte lined up with the last absolute time."""

    EXACT = "exact"
    BEHIND = "behind"  # frame is one second before the last sync
    AHEAD = "ahead"  # frame is one second after the last sync
    RESET = "reset"  # no match, the unit was probably reset


@dataclass
class ClockState:
    absolute: int | None = None
    version: int | None = None


class TimestampReconciler:
    """Rebuilds full timestamps from the per-frame time-low byte.

    Every frame carries the low 8 bits of the base station's clock, while
    the full 32-bit value only arrives in ZeoTimestamp frames. The low byte
    is matched against the last full value within one second either way.
    """

    def __init__(self) -> None:
        self.state = ClockState()

    def sync(self, absolute: int) -> None:
        self.state.absolute = absolute
        logger.debug("Clock synced to %d", absolute)

    def set_version(self, version: int) -> None:
        if version != self.state.version:
            logger.info("Raw data version %d", version)
        self.state.version = version

    def reconcile(self, time_low: int) -> tuple[int | None, Correction | None]:
        """Return the full timestamp for a frame and how it was derived."""
        absolute = self.state.absolute
        if absolute is None:
            return None, None

        if absolute & 0xFF == time_low:
            return absolute, Correction.EXACT

        behind = max(absolute - 1, 0)
        if behind & 0xFF == time_low:
            return behind, Correction.BEHIND

        ahead = min(absolute + 1, MAX_ABSOLUTE)
        if ahead & 0xFF == time_low:
            return ahead, Correction.AHEAD

        logger.debug(
            "Time low byte 0x%02X does not match clock %d", time_low, absolute
        )
        return absolute, Correction.RESET

    def reset(self) -> None:
        self.state = ClockState()


class SubsecondHistogram:
    """Counts how often each sub-second value is seen.

    Owned by the caller and passed to a decode session when the
    sub-second cadence needs to be studied.
    """

    def __init__(self) -> None:
        self.counts: Counter[int] = Counter()

    def record(self, subsecond: int) -> None:
        self.counts[subsecond] += 1

    def unexpected(self) -> list[int]:
        """Return seen values outside the known cadence, sorted."""
        return sorted(v for v in self.counts if v not in KNOWN_SUBSECONDS)

    def __len__(self) -> int:
        return len(self.counts)
