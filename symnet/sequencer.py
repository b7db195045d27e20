"""Single-flight FIFO command sequencer.

Commands are written to the device one at a time, in submission order. The
next command is only sent once the reply to the current one has arrived or the
no-response window has elapsed, in which case the reply is assumed lost.

Every state change happens under one lock, entered from exactly three places:
a caller submitting a command, the reader thread delivering a frame, and the
no-response timer expiring.
"""
from __future__ import annotations

import logging
import threading
from collections import deque
from enum import Enum
from typing import Callable, Deque, List, Optional

from .errors import NotReadyError
from .models import ControlValue, PendingCommand
from .protocol import FrameSplit, ResponseParser, split_frame

logger = logging.getLogger(__name__)

DEFAULT_NO_RESPONSE_TIMEOUT = 2.0  # seconds


class SequencerState(Enum):
    """Whether a command is waiting on its reply."""
    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting_response"


class CommandSequencer:
    """FIFO queue with at most one command in flight.

    Responsibilities:
    - Queue submitted commands and write them one at a time
    - Split incoming frames into pushes and the awaited reply
    - Resolve the in-flight command with its parsed reply
    - Abandon the in-flight command when no reply arrives in time
    - Hold queued commands while the connection is not ready
    """

    def __init__(
        self,
        write: Callable[[bytes], None],
        on_push: Optional[Callable[[List[ControlValue]], None]] = None,
        timeout: float = DEFAULT_NO_RESPONSE_TIMEOUT,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
        debug: bool = False,
    ):
        """Initialize sequencer.

        Args:
            write: Sends bytes to the device, raises NotReadyError when disconnected
            on_push: Called with the records of every unsolicited segment
            timeout: No-response window in seconds
            timer_factory: Creates the no-response timer (threading.Timer signature)
            debug: Log outbound commands at INFO instead of DEBUG
        """
        self._write = write
        self._on_push = on_push
        self._timeout = timeout
        self._timer_factory = timer_factory
        self._log_level = logging.INFO if debug else logging.DEBUG

        self._queue: Deque[PendingCommand] = deque()
        self._in_flight: Optional[PendingCommand] = None
        self._timer: Optional[threading.Timer] = None
        # Incremented per dispatch so a stale timer cannot abandon a newer command
        self._generation = 0
        self._lock = threading.RLock()

    @property
    def state(self) -> SequencerState:
        with self._lock:
            if self._in_flight is None:
                return SequencerState.IDLE
            return SequencerState.AWAITING_RESPONSE

    @property
    def in_flight(self) -> Optional[PendingCommand]:
        with self._lock:
            return self._in_flight

    @property
    def pending_count(self) -> int:
        """Number of commands queued behind the in-flight one."""
        with self._lock:
            return len(self._queue)

    def submit(self, pending: PendingCommand) -> None:
        """Queue a command, sending it immediately if nothing is in flight.

        Raises:
            UnicodeEncodeError: If the command text cannot be encoded. The
                queue is left untouched.
        """
        pending.command.payload  # encode now so a bad command never reaches the queue
        with self._lock:
            self._queue.append(pending)
            if self._in_flight is None:
                self._dispatch_next()

    def resume(self) -> None:
        """Send the head of the queue if idle, e.g. after a reconnect."""
        with self._lock:
            if self._in_flight is None:
                self._dispatch_next()

    def on_frame(self, frame: str) -> FrameSplit:
        """Handle one complete frame from the device.

        Returns:
            How the frame was split between push and reply
        """
        with self._lock:
            in_flight = self._in_flight
            spec = in_flight.command.spec if in_flight else None
            split = split_frame(frame, spec.response if spec else None)
            logger.debug(f"Frame {frame!r} split at {split.offset}")

            if split.push:
                self._emit_push(ResponseParser.parse_multiple(split.push))

            if split.response is not None and in_flight is not None:
                self._cancel_timer()
                value = ResponseParser.parse_response(split.response, spec)
                try:
                    in_flight.on_complete(value)
                except Exception as e:
                    logger.error(f"Error in completion handler: {e}")
                self._in_flight = None
                self._dispatch_next()

            return split

    def shutdown(self) -> List[PendingCommand]:
        """Stop the timer and drop every unresolved command.

        Returns:
            The in-flight command (if any) followed by the queued ones
        """
        with self._lock:
            self._cancel_timer()
            dropped = list(self._queue)
            if self._in_flight is not None:
                dropped.insert(0, self._in_flight)
            self._in_flight = None
            self._queue.clear()
            return dropped

    # Internal methods

    def _dispatch_next(self) -> None:
        """Send the head of the queue. Caller holds the lock and nothing is in flight."""
        if not self._queue:
            return

        pending = self._queue.popleft()
        payload = pending.command.payload
        self._in_flight = pending
        self._arm_timer()

        logger.log(self._log_level, f"Sending {pending.command.text!r}")
        try:
            self._write(payload)
        except NotReadyError as e:
            logger.warning(f"Could not send {pending.command.text!r}: {e}")
            # Keep it at the head until the connection is back
            self._cancel_timer()
            self._in_flight = None
            self._queue.appendleft(pending)

    def _arm_timer(self) -> None:
        self._cancel_timer()
        self._generation += 1
        self._timer = self._timer_factory(
            self._timeout, self._on_timeout, args=(self._generation,)
        )
        self._timer.daemon = True
        self._timer.start()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timeout(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._in_flight is None:
                return

            abandoned = self._in_flight
            logger.warning(
                f"No response to {abandoned.command.text!r} within {self._timeout}s"
            )
            self._timer = None
            self._in_flight = None
            self._dispatch_next()

            if abandoned.on_timeout is not None:
                try:
                    abandoned.on_timeout()
                except Exception as e:
                    logger.error(f"Error in timeout handler: {e}")

    def _emit_push(self, records: List[ControlValue]) -> None:
        if self._on_push is None:
            return
        try:
            self._on_push(records)
        except Exception as e:
            logger.error(f"Error in push callback: {e}")
