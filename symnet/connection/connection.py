"""Low-level TCP connection to a Symetrix Composer Control endpoint.

The endpoint is a SymNet DSP listening on a fixed TCP port that:
- Accepts CR-terminated text commands
- Answers each command with a CR-terminated reply
- May push controller changes at any time, interleaved with replies

This module handles:
- Socket lifecycle through pyserial's socket:// URL handler
- Raw byte stream forwarding with callbacks
- Reconnection after a fixed delay when the socket errors or closes

Note: This is a RAW BYTE STREAM layer. It does not interpret
      messages. Use FrameBuffer and the protocol layer for that.
"""
from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional

import serial

from ..errors import NotReadyError

logger = logging.getLogger(__name__)

DEFAULT_PORT = 48631
DEFAULT_RETRY_TIMEOUT = 20.0  # seconds
READ_TIMEOUT = 0.1  # seconds
READ_CHUNK_SIZE = 4096  # bytes


class ComposerConnection:
    """Persistent TCP connection to a Composer Control endpoint.

    Provides a RAW BYTE STREAM interface to the device.

    Responsibilities:
    - Open/close the socket
    - Forward raw byte chunks to subscribers
    - Send raw bytes to the device
    - Notify subscribers every time the connection is (re)established
    - Retry after retry_timeout seconds when the connection is lost

    Example:
        >>> conn = ComposerConnection("192.168.1.50")
        >>> conn.subscribe_data(lambda chunk: print(f"Data: {chunk}"))
        <function>
        >>> conn.connect()
        True
        >>> conn.write(b"$q FU\\r")
        >>> conn.disconnect()
    """

    def __init__(self,
                 host: str,
                 port: int = DEFAULT_PORT,
                 retry_timeout: float = DEFAULT_RETRY_TIMEOUT,
                 timeout: float = READ_TIMEOUT,
                 chunk_size: int = READ_CHUNK_SIZE):
        """Initialize connection.

        Args:
            host: IPv4 address of the device
            port: TCP port (default 48631)
            retry_timeout: Seconds to wait before reconnecting, 0 disables reconnection
            timeout: Read timeout in seconds
            chunk_size: Maximum bytes to read per chunk (default 4KB)
        """
        self._host = host
        self._port = port
        self._retry_timeout = retry_timeout
        self._timeout = timeout
        self._chunk_size = chunk_size

        # Socket
        self._serial: Optional[serial.SerialBase] = None
        self._connected = False

        # Threading
        self._active = False
        self._reader_thread: Optional[threading.Thread] = None
        self._write_lock = threading.Lock()

        # Reconnect
        self._reconnect_thread: Optional[threading.Thread] = None
        self._stop_reconnect = threading.Event()

        # Callbacks
        self._data_callbacks: List[Callable[[bytes], None]] = []
        self._connected_callbacks: List[Callable[[], None]] = []

        # Thread safety
        self._callback_lock = threading.Lock()

    @property
    def url(self) -> str:
        return f"socket://{self._host}:{self._port}"

    def connect(self) -> bool:
        """Open the connection.

        Returns:
            True if connection successful, False otherwise
        """
        if self._connected:
            logger.warning("Already connected")
            return True

        self._stop_reconnect.clear()

        try:
            self._serial = serial.serial_for_url(self.url, timeout=self._timeout)
            logger.info(f"Connected to {self._host}:{self._port}")

        except (serial.SerialException, OSError) as e:
            logger.error(f"Failed to connect to {self._host}:{self._port}: {e}")
            self._serial = None
            self._schedule_reconnect()
            return False

        self._active = True
        self._connected = True
        self._start_reader_thread()

        self._notify_connected_callbacks()
        return True

    def disconnect(self) -> None:
        """Close connection, stop reconnecting and cleanup resources."""
        self._stop_reconnect.set()
        if self._reconnect_thread and self._reconnect_thread.is_alive() \
                and self._reconnect_thread is not threading.current_thread():
            self._reconnect_thread.join(timeout=1.0)
        self._reconnect_thread = None

        if not self._connected:
            return

        self._active = False
        self._connected = False

        # Wait for reader thread to finish
        if self._reader_thread and self._reader_thread.is_alive() \
                and self._reader_thread is not threading.current_thread():
            self._reader_thread.join(timeout=1.0)

        self._close_socket()
        logger.info(f"Disconnected from {self._host}:{self._port}")

    def is_connected(self) -> bool:
        """Check if the socket is open."""
        return self._connected and self._serial is not None

    def write(self, data: bytes) -> None:
        """Send raw bytes to the device.

        Raises:
            NotReadyError: If the socket is not open or the write fails
        """
        if not self.is_connected() or self._serial is None:
            raise NotReadyError("Could not send, socket not ready")

        try:
            with self._write_lock:
                self._serial.write(data)
                self._serial.flush()
        except (serial.SerialException, OSError) as e:
            logger.error(f"Send error: {e}")
            self._handle_error(e)
            raise NotReadyError(f"Send failed: {e}") from e

    def subscribe_data(self,
                       callback: Callable[[bytes], None]
                       ) -> Callable[[], None]:
        """Subscribe to raw byte stream from the device.

        Args:
            callback: Function to call with byte chunks

        Returns:
            Unsubscribe function (call to remove subscription)
        """
        return self._subscribe(self._data_callbacks, callback)

    def subscribe_connected(self,
                            callback: Callable[[], None]
                            ) -> Callable[[], None]:
        """Subscribe to connection established events (initial and reconnects)."""
        return self._subscribe(self._connected_callbacks, callback)

    def __enter__(self) -> ComposerConnection:
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.disconnect()

    # Internal methods

    def _subscribe(self, callbacks: list, callback: Callable) -> Callable[[], None]:
        with self._callback_lock:
            callbacks.append(callback)

        def unsubscribe():
            with self._callback_lock:
                if callback in callbacks:
                    callbacks.remove(callback)

        return unsubscribe

    def _start_reader_thread(self) -> None:
        """Start background thread for reading from the socket."""
        self._reader_thread = threading.Thread(
            target=self._reader_loop,
            daemon=True,
            name="ComposerReader"
        )
        self._reader_thread.start()

    def _reader_loop(self) -> None:
        """Read raw bytes from the socket and dispatch to callbacks."""
        logger.debug("Reader thread started")

        while self._active:
            # _handle_error may clear the socket from another thread
            sock = self._serial
            if sock is None:
                break
            try:
                chunk = sock.read(self._chunk_size)

                if chunk:
                    self._notify_data_callbacks(chunk)

            except (serial.SerialException, OSError) as e:
                # pyserial reports a remote close as a SerialException too
                if self._active:
                    logger.error(f"Socket read error: {e}")
                    self._handle_error(e)
                break

        logger.debug("Reader thread exiting")

    def _notify_data_callbacks(self, data: bytes) -> None:
        with self._callback_lock:
            callbacks = list(self._data_callbacks)

        for callback in callbacks:
            try:
                callback(data)
            except Exception as e:
                logger.error(f"Error in data callback: {e}")

    def _notify_connected_callbacks(self) -> None:
        with self._callback_lock:
            callbacks = list(self._connected_callbacks)

        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.error(f"Error in connected callback: {e}")

    def _close_socket(self) -> None:
        if self._serial:
            try:
                self._serial.close()
            except Exception as e:
                logger.error(f"Error closing socket: {e}")
            finally:
                self._serial = None

    def _handle_error(self, error: Exception) -> None:
        """Handle connection error by closing resources.

        Does not join threads to avoid deadlock if called from reader thread.
        """
        logger.warning(f"Handling connection error: {error}")
        self._active = False
        self._connected = False
        self._close_socket()
        logger.info("Connection closed due to error")

        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self._retry_timeout <= 0 or self._stop_reconnect.is_set():
            return
        if self._reconnect_thread is None or not self._reconnect_thread.is_alive():
            logger.info(f"Reconnecting in {self._retry_timeout}s")
            self._reconnect_thread = threading.Thread(
                target=self._reconnect_loop,
                daemon=True,
                name="ComposerReconnect"
            )
            self._reconnect_thread.start()

    def _reconnect_loop(self) -> None:
        """Background loop retrying the connection every retry_timeout seconds."""
        logger.info("Reconnect loop started")
        while not self._stop_reconnect.wait(self._retry_timeout):
            if self.is_connected():
                break
            logger.info(f"Attempting reconnect to {self._host}:{self._port}...")
            if self.connect():
                logger.info("Reconnect successful")
                break
        logger.info("Reconnect loop stopped")
