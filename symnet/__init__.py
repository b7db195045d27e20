"""SymNet SDK - Composer Control protocol client for Symetrix DSPs."""

from .client import SymNetClient
from .connection import ComposerConnection, FrameBuffer
from .errors import (
    SymNetError,
    ValidationError,
    NotReadyError,
    ReplyTimeoutError,
    UnknownCommandError,
)
from .models import ControlValue, Command, CommandSpec, PendingCommand
from .sequencer import CommandSequencer, SequencerState
from . import conversions

__all__ = [
    "SymNetClient",
    "ComposerConnection",
    "FrameBuffer",
    "CommandSequencer",
    "SequencerState",
    "ControlValue",
    "Command",
    "CommandSpec",
    "PendingCommand",
    "SymNetError",
    "ValidationError",
    "NotReadyError",
    "ReplyTimeoutError",
    "UnknownCommandError",
    "conversions",
]
