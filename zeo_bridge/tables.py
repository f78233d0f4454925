"""Identifier tables for the Zeo raw data protocol.

Every table maps an 8-bit code to a member, or to ``Unrecognized(code)`` when
the code has no entry, so converting a byte never fails.
"""

from dataclasses import dataclass
from enum import IntEnum


@dataclass(frozen=True)
class Unrecognized:
    """A code with no entry in its table."""

    code: int

    def __str__(self) -> str:
        return f"Invalid({self.code})"


class _Table(IntEnum):
    @classmethod
    def from_byte(cls, code: int) -> "_Table | Unrecognized":
        try:
            return cls(code)
        except ValueError:
            return Unrecognized(code)

    def __str__(self) -> str:
        return self.name


class DataType(_Table):
    """Kinds of frame the base station sends."""

    Event = 0x00
    SliceEnd = 0x02
    Version = 0x03
    Waveform = 0x80
    FrequencyBins = 0x83
    Sqi = 0x84  # signal quality index, 0x00..0x30
    ZeoTimestamp = 0x8A
    Impedance = 0x97
    BadSignal = 0x9C
    SleepStage = 0x9D


class EventType(_Table):
    """Event sub-types, carried by ``DataType.Event`` frames."""

    NightStart = 0x05
    SleepOnset = 0x07
    HeadbandDocked = 0x0E
    HeadbandUndocked = 0x0F
    AlarmOff = 0x10
    AlarmSnooze = 0x11
    AlarmPlay = 0x13
    NightEnd = 0x15
    NewHeadband = 0x24


# (min, max) in Hz
_BIN_HZ = {
    0x00: (2, 4),
    0x01: (4, 8),
    0x02: (8, 13),
    0x03: (13, 18),
    0x04: (18, 21),
    0x05: (11, 14),
    0x06: (30, 50),
}


class FrequencyBin(_Table):
    """Frequency bins derived from the waveform."""

    Delta = 0x00
    Theta = 0x01
    Alpha = 0x02
    BetaMid = 0x03
    BetaHigh = 0x04
    BetaLow = 0x05  # sleep spindles
    Gamma = 0x06

    @property
    def hz(self) -> tuple[int, int]:
        """Return the frequency interval of this bin as (min, max)."""
        return _BIN_HZ[self.value]

    @property
    def is_delta(self) -> bool:
        return self is FrequencyBin.Delta

    @property
    def is_theta(self) -> bool:
        return self is FrequencyBin.Theta

    @property
    def is_alpha(self) -> bool:
        return self is FrequencyBin.Alpha

    @property
    def is_beta(self) -> bool:
        return self in (FrequencyBin.BetaLow, FrequencyBin.BetaMid, FrequencyBin.BetaHigh)

    @property
    def is_gamma(self) -> bool:
        return self is FrequencyBin.Gamma


class SleepStage(_Table):
    """Sleep stages reported every 30 seconds."""

    Undefined = 0x00
    Awake = 0x01
    Rem = 0x02
    Light = 0x03
    Deep = 0x04


def frequency_range(value: FrequencyBin | Unrecognized) -> tuple[int, int]:
    """Return the Hz interval for a bin, or (0, 0) if it is unrecognized."""
    if isinstance(value, Unrecognized):
        return (0, 0)
    return value.hz
