"""Protocol layer for Composer Control text communication."""

from .commands import COMMANDS, QUIET_PREFIX, TERMINATOR, build_command
from .disambiguator import FrameSplit, split_frame
from .parser import RECORD_PATTERN, ResponseParser

__all__ = [
    "COMMANDS",
    "QUIET_PREFIX",
    "TERMINATOR",
    "build_command",
    "FrameSplit",
    "split_frame",
    "RECORD_PATTERN",
    "ResponseParser",
]
