"""Frame buffer implementation for the connection layer.

Reassembles complete CR-terminated frames from network-fragmented reads.
"""
import threading
import logging
from typing import Optional

logger = logging.getLogger(__name__)

FRAME_TERMINATOR = b'\r'
FRAME_MAX_BUFFER_SIZE = 64 * 1024  # 64KB


class FrameBuffer:
    """Thread-safe accumulator for partial frames.

    The device never splits a single reply across CR boundaries, so a chunk
    that does not end in CR is a fragment of a frame the network stack split.
    It is held until a chunk ending in CR completes the frame.
    """

    def __init__(self, max_size: int = FRAME_MAX_BUFFER_SIZE):
        """Initialize buffer.

        Args:
            max_size: Maximum fragment size in bytes. If exceeded, oldest data is dropped.
        """
        self._max_size = max_size
        self._buffer = bytearray()
        self._lock = threading.Lock()
        self._overflow_count = 0

    def feed(self, chunk: bytes) -> Optional[bytes]:
        """Add a received chunk.

        Returns:
            The complete frame (buffered fragment + chunk) if the chunk ends in CR,
            None if the frame is still incomplete.
        """
        if not chunk:
            return None

        with self._lock:
            if not chunk.endswith(FRAME_TERMINATOR):
                self._buffer.extend(chunk)
                self._trim()
                return None

            frame = bytes(self._buffer) + chunk
            self._buffer.clear()
            return frame

    def _trim(self) -> None:
        if len(self._buffer) <= self._max_size:
            return

        drop_count = len(self._buffer) - self._max_size
        del self._buffer[:drop_count]
        self._overflow_count += 1
        if self._overflow_count % 100 == 1:  # Log periodically
            logger.warning(f"Frame buffer overflow: Dropped {drop_count} bytes of old data.")

    @property
    def size(self) -> int:
        """Current number of buffered fragment bytes."""
        with self._lock:
            return len(self._buffer)

    def clear(self) -> None:
        """Discard any buffered fragment."""
        with self._lock:
            self._buffer.clear()
