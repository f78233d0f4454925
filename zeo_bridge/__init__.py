"""Decoder and serial bridge for the Zeo headband raw data protocol."""

from .decoder import (
    AwaitingMoreData,
    Decoded,
    DecodeSession,
    FailureKind,
    FrameOutcome,
    Packet,
    Rejected,
)
from .protocol import encode_frame
from .tables import DataType, EventType, FrequencyBin, SleepStage, Unrecognized

__version__ = "0.1.0"
