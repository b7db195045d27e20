"""Client for the Symetrix Composer Control protocol (v7.0).

Wires the connection, frame buffer, protocol and sequencer layers together and
exposes one method per protocol operation. Every operation validates its
arguments synchronously and returns a Future resolved with the parsed reply.
"""
from __future__ import annotations

import ipaddress
import logging
import threading
from concurrent.futures import Future
from typing import Callable, List, Optional

from .connection import ComposerConnection, FrameBuffer, DEFAULT_PORT, DEFAULT_RETRY_TIMEOUT
from .errors import ReplyTimeoutError, ValidationError
from .models import ControlValue, ParsedRecord, PendingCommand
from .protocol import build_command
from .sequencer import CommandSequencer, DEFAULT_NO_RESPONSE_TIMEOUT

logger = logging.getLogger(__name__)

CONTROL_ID_MIN, CONTROL_ID_MAX = 1, 10000
CONTROL_VALUE_MIN, CONTROL_VALUE_MAX = 0, 65535
BLOCK_SIZE_MAX = 256
PRESET_MIN, PRESET_MAX = 1, 1000
PUSH_INTERVAL_MIN, PUSH_INTERVAL_MAX = 20, 30000  # milliseconds


def _check_int(name: str, value, low: int, high: int) -> None:
    # bool is an int subclass but never a valid argument here
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer, got {value!r}")
    if value < low or value > high:
        raise ValidationError(f"{name} {value} out of range [{low}, {high}]")


def _check_str(name: str, value) -> None:
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string, got {value!r}")
    if "\r" in value:
        raise ValidationError(f"{name} must not contain a carriage return")
    try:
        value.encode('utf-8')
    except UnicodeEncodeError:
        raise ValidationError(f"{name} is not encodable as UTF-8: {value!r}") from None


def _check_push_range(low, high) -> None:
    _check_int("low", low, CONTROL_ID_MIN, CONTROL_ID_MAX)
    _check_int("high", high, CONTROL_ID_MIN, CONTROL_ID_MAX)
    if low > high:
        raise ValidationError(f"low {low} is greater than high {high}")


class SymNetClient:
    """High-level interface to a SymNet device over Composer Control.

    The device can push controller changes at any time, with no header to tell
    them apart from replies. Pushes are delivered to subscribe_push callbacks
    as lists of ControlValue.

    Example:
        >>> client = SymNetClient("192.168.1.50")
        >>> client.subscribe_push(lambda records: print(records))
        >>> client.connect()
        True
        >>> client.control_get(1000).result()
        4096
    """

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        retry_timeout: float = DEFAULT_RETRY_TIMEOUT,
        no_response_timeout: float = DEFAULT_NO_RESPONSE_TIMEOUT,
        debug: bool = False,
        connection: Optional[ComposerConnection] = None,
    ):
        """Initialize client.

        Args:
            host: IPv4 address of the device
            port: Composer Control TCP port
            retry_timeout: Seconds between reconnect attempts, 0 disables reconnection
            no_response_timeout: Seconds to wait for a reply before moving on
            debug: Log every outbound command at INFO level
            connection: Existing ComposerConnection, or None to create one
        """
        try:
            ipaddress.IPv4Address(host)
        except (ipaddress.AddressValueError, TypeError) as e:
            raise ValueError(f"Bad host assignment: {host!r}") from e

        self._connection = connection or ComposerConnection(
            host, port=port, retry_timeout=retry_timeout
        )
        self._buffer = FrameBuffer()
        self._sequencer = CommandSequencer(
            write=self._connection.write,
            on_push=self._notify_push_subscribers,
            timeout=no_response_timeout,
            debug=debug,
        )

        self._push_subscribers: List[Callable[[List[ControlValue]], None]] = []
        self._connected_subscribers: List[Callable[[], None]] = []
        self._subscriber_lock = threading.Lock()

        self._connection.subscribe_data(self._on_data_received)
        self._connection.subscribe_connected(self._on_connected)

    # --- Lifecycle ---

    def connect(self) -> bool:
        """Connect to the device. Reconnection continues in the background on failure."""
        return self._connection.connect()

    def disconnect(self) -> None:
        """Disconnect and cancel every command still waiting to be sent or answered."""
        self._connection.disconnect()
        for pending in self._sequencer.shutdown():
            if pending.on_timeout is not None:
                pending.on_timeout()

    def is_connected(self) -> bool:
        return self._connection.is_connected()

    @property
    def sequencer(self) -> CommandSequencer:
        return self._sequencer

    def __enter__(self) -> SymNetClient:
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.disconnect()

    # --- Events ---

    def subscribe_push(
        self,
        callback: Callable[[List[ControlValue]], None]
    ) -> Callable[[], None]:
        """Subscribe to unsolicited controller updates.

        Returns:
            Unsubscribe function
        """
        return self._subscribe(self._push_subscribers, callback)

    def subscribe_connected(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Subscribe to connection established events (initial and reconnects)."""
        return self._subscribe(self._connected_subscribers, callback)

    # --- Controls ---

    def control_set(self, id: int, value: int) -> Future:
        """Move a controller to an absolute position (resolves True on ACK)."""
        _check_int("id", id, CONTROL_ID_MIN, CONTROL_ID_MAX)
        _check_int("value", value, CONTROL_VALUE_MIN, CONTROL_VALUE_MAX)
        return self._request("control_set", id=id, value=value)

    def control_change(self, id: int, value: int) -> Future:
        """Increment (positive) or decrement (negative) a controller by value."""
        _check_int("id", id, CONTROL_ID_MIN, CONTROL_ID_MAX)
        _check_int("value", value, -CONTROL_VALUE_MAX, CONTROL_VALUE_MAX)
        return self._request("control_change", id=id, value=value)

    def control_get(self, id: int) -> Future:
        """Read a controller position (resolves to an int)."""
        _check_int("id", id, CONTROL_ID_MIN, CONTROL_ID_MAX)
        return self._request("control_get", id=id)

    def control_get_block(self, id: int, size: int) -> Future:
        """Read size consecutive controllers starting at id (resolves to a list of ControlValue)."""
        _check_int("id", id, CONTROL_ID_MIN, CONTROL_ID_MAX)
        _check_int("size", size, 1, BLOCK_SIZE_MAX)
        return self._request("control_get_block", id=id, size=size)

    # --- Configuration ---

    def reboot(self) -> Future:
        """Reboot the unit immediately."""
        return self._request("reboot")

    def flash_unit(self) -> Future:
        """Momentarily flash the front panel LEDs."""
        return self._request("flash_unit")

    def set_system_string(self, resource: str, value: str) -> Future:
        """Set a system string such as a speed dial name or number."""
        _check_str("resource", resource)
        _check_str("value", value)
        return self._request("set_system_string", resource=resource, value=value)

    def get_system_string(self, resource: str) -> Future:
        """Read a system string (resolves to a str)."""
        _check_str("resource", resource)
        return self._request("get_system_string", resource=resource)

    # --- Presets ---

    def get_preset(self) -> Future:
        """Return the last preset that was loaded."""
        return self._request("get_preset")

    def load_preset(self, preset: int) -> Future:
        """Load a preset (1-1000)."""
        _check_int("preset", preset, PRESET_MIN, PRESET_MAX)
        return self._request("load_preset", preset=preset)

    # --- Pushing ---

    def push_state(self, enable: bool, low: int = CONTROL_ID_MIN, high: int = CONTROL_ID_MAX) -> Future:
        """Enable or disable pushing for controllers low..high (set low == high for one)."""
        if not isinstance(enable, bool):
            raise ValidationError(f"enable must be a bool, got {enable!r}")
        _check_push_range(low, high)
        return self._request("push_state", enable=enable, low=low, high=high)

    def get_push_enabled(self, low: int = CONTROL_ID_MIN, high: int = CONTROL_ID_MAX) -> Future:
        """Query which controllers in low..high have push enabled."""
        _check_push_range(low, high)
        return self._request("get_push_enabled", low=low, high=high)

    def push_refresh(self, low: int = CONTROL_ID_MIN, high: int = CONTROL_ID_MAX) -> Future:
        """Push controllers low..high now, even if unchanged."""
        _check_push_range(low, high)
        return self._request("push_refresh", low=low, high=high)

    def push_clear(self, low: int = CONTROL_ID_MIN, high: int = CONTROL_ID_MAX) -> Future:
        """Discard pending changes for controllers low..high so they are not pushed."""
        _check_push_range(low, high)
        return self._request("push_clear", low=low, high=high)

    def push_interval(self, value: int) -> Future:
        """Set the minimum time between pushes in milliseconds (20-30000)."""
        _check_int("interval", value, PUSH_INTERVAL_MIN, PUSH_INTERVAL_MAX)
        return self._request("push_interval", value=value)

    def push_threshold(self, meter: int = 1, other: int = 1) -> Future:
        """Set how far meters and other controllers must move before being pushed again."""
        _check_int("meter", meter, CONTROL_VALUE_MIN, CONTROL_VALUE_MAX)
        _check_int("other", other, CONTROL_VALUE_MIN, CONTROL_VALUE_MAX)
        return self._request("push_threshold", meter=meter, other=other)

    # --- Internal ---

    def _request(self, name: str, **args) -> Future:
        command = build_command(name, **args)
        future: Future = Future()

        def on_complete(value: ParsedRecord) -> None:
            if not future.done():
                future.set_result(value)

        def on_timeout() -> None:
            if not future.done():
                future.set_exception(
                    ReplyTimeoutError(f"No reply to {name}", command_text=command.text)
                )

        self._sequencer.submit(PendingCommand(command, on_complete, on_timeout))
        return future

    def _on_data_received(self, chunk: bytes) -> None:
        frame = self._buffer.feed(chunk)
        if frame is None:
            return
        self._sequencer.on_frame(frame.decode('utf-8', errors='replace'))

    def _on_connected(self) -> None:
        # A fragment left over from a dropped socket can never be completed
        self._buffer.clear()
        self._sequencer.resume()

        with self._subscriber_lock:
            subscribers = list(self._connected_subscribers)
        for callback in subscribers:
            try:
                callback()
            except Exception as e:
                logger.error(f"Connected subscriber error: {e}")

    def _notify_push_subscribers(self, records: List[ControlValue]) -> None:
        with self._subscriber_lock:
            subscribers = list(self._push_subscribers)
        for callback in subscribers:
            try:
                callback(records)
            except Exception as e:
                logger.error(f"Push subscriber error: {e}")

    def _subscribe(self, subscribers: list, callback: Callable) -> Callable[[], None]:
        with self._subscriber_lock:
            subscribers.append(callback)

        def unsubscribe():
            with self._subscriber_lock:
                if callback in subscribers:
                    subscribers.remove(callback)

        return unsubscribe
