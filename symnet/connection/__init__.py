"""Connection layer for Composer Control endpoints.

This module provides:
- TCP connection management with reconnection (ComposerConnection) - Raw byte stream
- Frame reassembly from fragmented reads (FrameBuffer)
"""

from .buffer import FrameBuffer, FRAME_TERMINATOR
from .connection import (
    ComposerConnection,
    DEFAULT_PORT,
    DEFAULT_RETRY_TIMEOUT,
)

__all__ = [
    'ComposerConnection',
    'DEFAULT_PORT',
    'DEFAULT_RETRY_TIMEOUT',
    'FrameBuffer',
    'FRAME_TERMINATOR',
]
