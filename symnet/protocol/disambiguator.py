"""Split an incoming frame into push data and the awaited reply.

Pushes carry no header, so the only way to tell them apart from the reply to
the in-flight command is to look for that command's reply pattern. A push
emitted while the reply was being generated can arrive glued in front of it.
"""
from __future__ import annotations

from dataclasses import dataclass
from re import Pattern
from typing import Optional


@dataclass(frozen=True)
class FrameSplit:
    """Classification of one complete frame.

    Attributes:
        push: Unsolicited segment, or None
        response: Segment answering the in-flight command, or None
        offset: Where the reply pattern matched, -1 if it did not
    """
    push: Optional[str] = None
    response: Optional[str] = None
    offset: int = -1


def split_frame(frame: str, pattern: Optional[Pattern[str]]) -> FrameSplit:
    """Classify a frame against the reply pattern of the in-flight command.

    Args:
        frame: Complete terminator-delimited frame
        pattern: Reply pattern of the in-flight command, None when idle

    Returns:
        FrameSplit with at most one push and one response segment

    Examples:
        >>> split_frame("ACK\\r", re.compile("(?P<ack>ACK)")).response
        'ACK\\r'
        >>> s = split_frame("#01000=00001\\rACK\\r", re.compile("(?P<ack>ACK)"))
        >>> s.push, s.response
        ('#01000=00001\\r', 'ACK\\r')
    """
    if pattern is None:
        return FrameSplit(push=frame)

    m = pattern.search(frame)
    if m is None:
        # Reply has not arrived yet (or already timed out)
        return FrameSplit(push=frame)

    offset = m.start()
    if offset == 0:
        return FrameSplit(response=frame, offset=0)

    return FrameSplit(push=frame[:offset], response=frame[offset:], offset=offset)
