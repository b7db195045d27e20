"""Command table and serializer for the Composer Control protocol.

Converts an operation name plus arguments into the wire string the device
understands, paired with the reply pattern used to recognise its answer.
Pure functions with no side effects.
"""
from __future__ import annotations

import re
from typing import Dict

from ..errors import UnknownCommandError
from ..models import Command, CommandSpec

# Prefix that puts the device in quiet mode for this command, so only the
# targeted reply comes back.
QUIET_PREFIX = "$q "
TERMINATOR = "\r"

ACK_NAK = re.compile(r"(?P<ack>ACK)|(?P<nak>NAK)")


def _spec(name: str, template: str, response, **kwargs) -> CommandSpec:
    if isinstance(response, str):
        response = re.compile(response)
    return CommandSpec(name=name, template=template, response=response, **kwargs)


COMMANDS: Dict[str, CommandSpec] = {
    spec.name: spec for spec in (
        # Controls
        _spec("control_set", "CS {id} {value}", ACK_NAK),
        _spec("control_change", "CC {id} {direction} {value}", ACK_NAK),
        # GS2 gives a better formatted return than GS
        _spec("control_get", "GS2 {id}", r"\d{1,5} (?P<ret>\d{1,5})", convert=int),
        # GSB3 likewise over GSB
        _spec("control_get_block", "GSB3 {id} {size}", r"GSB3 \d{1,5} \d{1,5}", block=True),
        # Presets
        _spec("get_preset", "GPR", r"(?P<ret>\d+)", convert=int),
        _spec("load_preset", "LP {preset}", ACK_NAK),
        # Configuration
        _spec("set_system_string", "SSYSS {resource}={value}", ACK_NAK),
        _spec("get_system_string", "GSYSS {resource}", r"GSYSS (?P<ret>[^\r]*)\r"),
        _spec("flash_unit", "FU", ACK_NAK),
        _spec("reboot", "R!", r"(?P<ack>.*)"),
        # Pushing
        _spec("push_state", "PU{enable} {low} {high}", ACK_NAK),
        _spec("get_push_enabled", "GPU {low} {high}", r"(?P<ack>ACK)|(?P<ret>\d{5})", convert=int),
        _spec("push_refresh", "PUR {low} {high}", ACK_NAK),
        _spec("push_clear", "PUC {low} {high}", ACK_NAK),
        _spec("push_interval", "PUI {value}", ACK_NAK),
        _spec("push_threshold", "PUT {other} {meter}", ACK_NAK),
    )
}


def build_command(name: str, **args) -> Command:
    """Build the wire command for an operation.

    Args:
        name: Operation name, must be a key of COMMANDS
        **args: Values for the template placeholders

    Returns:
        Command with the quiet-mode, terminated text and its reply pattern

    Raises:
        UnknownCommandError: If the operation is not in the command table

    Examples:
        >>> build_command("control_set", id=1000, value=65535).text
        '$q CS 1000 65535\\r'
        >>> build_command("control_change", id=12, value=-100).text
        '$q CC 12 0 100\\r'
    """
    try:
        spec = COMMANDS[name]
    except KeyError:
        raise UnknownCommandError(f"Unknown command: {name}") from None

    if name == "control_change":
        # Direction flag: 1 increments, 0 decrements by the magnitude
        value = args.get("value", 0)
        args["direction"] = "1" if value >= 0 else "0"
        args["value"] = abs(value)
    elif name == "push_state":
        args["enable"] = "E" if args.get("enable") else "D"

    text = QUIET_PREFIX + spec.template.format_map(_Defaults(args))
    return Command(spec=spec, text=text.strip() + TERMINATOR)


class _Defaults(dict):
    """Format mapping that renders missing arguments as empty strings."""

    def __missing__(self, key):
        return ""
