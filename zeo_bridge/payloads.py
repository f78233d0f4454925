"""Typed views over the payload of a decoded packet."""

import numpy as np

from .decoder import Packet
from .tables import DataType, EventType, FrequencyBin, SleepStage, Unrecognized

WAVEFORM_SAMPLES = 128  # per packet, sampled at 128 Hz
FREQUENCY_BIN_COUNT = 7


class PayloadError(ValueError):
    """Raised when a payload cannot be viewed as the requested type."""


def _require(packet: Packet, data_type: DataType, size: int) -> None:
    if packet.data_type is not data_type:
        raise PayloadError(f"expected {data_type} packet, got {packet.data_type}")
    if len(packet.payload) < size:
        raise PayloadError(
            f"{data_type} payload needs {size} bytes, got {len(packet.payload)}"
        )


def event_type(packet: Packet) -> EventType | Unrecognized:
    _require(packet, DataType.Event, 1)
    return EventType.from_byte(packet.payload[0])


def sleep_stage(packet: Packet) -> SleepStage | Unrecognized:
    _require(packet, DataType.SleepStage, 1)
    return SleepStage.from_byte(packet.payload[0])


def frequency_bins(packet: Packet) -> dict[FrequencyBin, int]:
    """Return the raw value of each frequency bin, in bin order."""
    _require(packet, DataType.FrequencyBins, FREQUENCY_BIN_COUNT * 2)
    values = np.frombuffer(packet.payload, dtype="<u2", count=FREQUENCY_BIN_COUNT)
    return {FrequencyBin(i): int(v) for i, v in enumerate(values)}


def waveform(packet: Packet) -> np.ndarray:
    """Return the raw time domain samples as signed 16-bit integers.

    At most WAVEFORM_SAMPLES are returned; trailing bytes are ignored.
    """
    _require(packet, DataType.Waveform, 2)
    count = min(len(packet.payload) // 2, WAVEFORM_SAMPLES)
    return np.frombuffer(packet.payload, dtype="<i2", count=count).astype(np.int16)
