"""Response parser for the Composer Control protocol.

Turns reply and push segments into parsed records.
Pure functions with no side effects.
"""
from __future__ import annotations

import logging
import re
from re import Pattern
from typing import List, Optional

from ..models import CommandSpec, ControlValue, ParsedRecord

logger = logging.getLogger(__name__)

# All multi-record replies and pushes use this record format
RECORD_PATTERN = re.compile(r"#(?P<id>\d{5})=(?P<value>\d{5})")


class ResponseParser:
    """Parser for Composer Control replies.

    Handles three reply shapes:
    - #<id>=<value> records, repeated - pushes and block queries
    - ACK / NAK - acknowledgement of a set command
    - a single captured value (named group 'ret') - scalar queries
    """

    @staticmethod
    def parse_multiple(data: str) -> List[ControlValue]:
        """Extract every #id=value record from a segment, in order.

        Examples:
            >>> ResponseParser.parse_multiple("#01000=00010\\r#01001=65535\\r")
            [ControlValue(id=1000, value=10), ControlValue(id=1001, value=65535)]
        """
        return [
            ControlValue(id=int(m.group("id")), value=int(m.group("value")))
            for m in RECORD_PATTERN.finditer(data)
        ]

    @staticmethod
    def parse_single(data: str, pattern: Pattern[str]) -> ParsedRecord:
        """Match a reply segment against the in-flight command's pattern.

        Returns:
            The 'ret' capture as a string, True for ACK, False for NAK,
            or None if the reply is not in a recognised format
        """
        m = pattern.search(data)
        if m is None:
            logger.warning(f"Unknown response format: {data!r}")
            return None

        groups = m.groupdict()
        if groups.get("ret") is not None:
            return groups["ret"]
        if groups.get("ack") is not None:
            return True
        if groups.get("nak") is not None:
            return False

        logger.warning(f"Unknown response format: {data!r}")
        return None

    @staticmethod
    def strip_header(data: str) -> str:
        """Drop the first line (up to and including the first CR) of a block reply."""
        idx = data.find("\r")
        if idx == -1:
            return ""
        return data[idx + 1:]

    @staticmethod
    def parse_response(data: str, spec: Optional[CommandSpec]) -> ParsedRecord:
        """Parse a response segment for the command described by spec."""
        if spec is None:
            return ResponseParser.parse_multiple(data)

        if spec.block:
            # Block replies echo the command and size on a header line first
            return ResponseParser.parse_multiple(ResponseParser.strip_header(data))

        value = ResponseParser.parse_single(data, spec.response)
        if isinstance(value, str) and spec.convert is not None:
            try:
                return spec.convert(value)
            except ValueError:
                logger.warning(f"Could not convert {value!r} for {spec.name}")
                return None
        return value
