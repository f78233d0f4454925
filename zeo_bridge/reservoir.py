"""Bounded byte buffer holding serial data that has not been decoded yet."""

import logging

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 4096


class ByteReservoir:
    """Append at the tail, consume from the front, push back to the front.

    When an append would exceed the capacity the oldest bytes are evicted.
    Eviction may drop a marker the decoder had already found; the decoder
    recovers by scanning for the next one.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._buffer = bytearray()
        self.evicted = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def free(self) -> int:
        """Number of bytes that can be appended without eviction."""
        return self._capacity - len(self._buffer)

    def __len__(self) -> int:
        return len(self._buffer)

    def __bytes__(self) -> bytes:
        return bytes(self._buffer)

    def append(self, data: bytes) -> None:
        """Append bytes, evicting the oldest ones on overflow."""
        self._buffer.extend(data)
        overflow = len(self._buffer) - self._capacity
        if overflow > 0:
            del self._buffer[:overflow]
            self.evicted += overflow
            logger.warning(
                "Reservoir full, evicted %d oldest bytes (%d total)",
                overflow,
                self.evicted,
            )

    def take(self, n: int) -> bytes:
        """Remove and return up to n bytes from the front."""
        data = bytes(self._buffer[:n])
        del self._buffer[:n]
        return data

    def peek(self, n: int) -> bytes:
        """Return up to n bytes from the front without consuming them."""
        return bytes(self._buffer[:n])

    def discard(self, n: int) -> None:
        del self._buffer[:n]

    def push_front(self, data: bytes) -> None:
        """Put previously taken bytes back in front of the buffer."""
        self._buffer[:0] = data

    def find(self, pattern: bytes) -> int:
        return self._buffer.find(pattern)

    def endswith(self, suffix: bytes) -> bool:
        return self._buffer.endswith(suffix)

    def clear(self) -> None:
        self._buffer.clear()
