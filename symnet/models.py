"""Immutable data models for Composer Control commands and replies.

These models serve as the contract between the protocol, sequencer and client layers.
"""
from __future__ import annotations

from dataclasses import dataclass
from re import Pattern
from typing import Any, Callable, List, Optional, Union


@dataclass(frozen=True)
class ControlValue:
    """A single controller position reported by the device.

    Attributes:
        id: Controller number (1-10000)
        value: Controller position (0-65535)
    """
    id: int
    value: int


# Result of parsing one reply: a scalar, an ack/nak flag, a list of
# controller positions, or None when the reply was not understood.
ParsedRecord = Union[str, int, bool, List[ControlValue], None]


@dataclass(frozen=True)
class CommandSpec:
    """Static description of one protocol command.

    Attributes:
        name: Operation name (e.g. 'control_set')
        template: Command mnemonic with {placeholders} for arguments
        response: Compiled reply pattern using named groups ret/ack/nak
        block: Reply carries a header line followed by #id=value records
        convert: Applied to a captured 'ret' string (e.g. int)
    """
    name: str
    template: str
    response: Pattern[str]
    block: bool = False
    convert: Optional[Callable[[str], Any]] = None


@dataclass(frozen=True)
class Command:
    """A fully built command ready to be written to the wire."""
    spec: CommandSpec
    text: str

    @property
    def payload(self) -> bytes:
        return self.text.encode('utf-8')


@dataclass(frozen=True)
class PendingCommand:
    """A submitted command owned by the sequencer until resolved.

    Attributes:
        command: Built command (text + expected reply pattern)
        on_complete: Called once with the parsed reply
        on_timeout: Called once if no reply arrives within the window.
            on_complete is never called for a timed-out command.
    """
    command: Command
    on_complete: Callable[[ParsedRecord], None]
    on_timeout: Optional[Callable[[], None]] = None
