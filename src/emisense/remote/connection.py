"""socket.io link to the bench backend.

python-socketio runs its handlers on a background thread. Every handler here
only re-emits a Qt signal; the slots that touch :class:`ConnectionState` and
invoke the registered callbacks run on the thread that owns the manager,
which keeps all state mutation on one execution context.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Mapping
from typing import Any, Callable, List, Optional, Sequence

import socketio  # type: ignore
from socketio.exceptions import ConnectionError as SocketConnectionError  # type: ignore
from socketio.exceptions import SocketIOError  # type: ignore

from PySide6.QtCore import QObject, Signal, Slot

from ..core.models import Command, ConnectionState

logger = logging.getLogger(__name__)

EVENT_SENSOR_DATA = "sensor-data"
EVENT_CONNECTION_STATUS = "connection-status"

ReadingCallback = Callable[[Any], None]
ConnectivityCallback = Callable[[bool], None]


class ConnectionManager(QObject):
    """Owns the one live connection to the telemetry backend."""

    reading_received = Signal(object)  # raw sensor-data payload
    connectivity_changed = Signal(bool)  # effective ConnectionState.connected

    # Bridges from the socket.io thread to the owner thread
    link_changed = Signal(bool)
    device_status_received = Signal(bool)
    link_error = Signal(str)

    def __init__(
        self,
        *,
        transports: Sequence[str] = ("websocket",),
        retry_interval_s: float = 1.0,
        max_attempts: int = 5,
        connect_timeout_s: float = 5.0,
        client_factory: Callable[..., Any] | None = None,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self.state = ConnectionState()
        self._transports = list(transports) or ["websocket"]
        self._retry_interval_s = max(0.0, float(retry_interval_s))
        self._max_attempts = max(1, int(max_attempts))
        self._connect_timeout_s = float(connect_timeout_s)
        self._client_factory = client_factory or socketio.Client
        self._client: Any = None
        self._endpoint: Optional[str] = None
        self._published_connected = False
        self._reading_callbacks: List[ReadingCallback] = []
        self._connectivity_callbacks: List[ConnectivityCallback] = []
        self._stop_flag = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self.reading_received.connect(self._dispatch_reading)
        self.link_changed.connect(self._apply_link)
        self.device_status_received.connect(self._apply_device_status)
        self.link_error.connect(self._apply_link_error)

    @property
    def connected(self) -> bool:
        return self.state.connected

    @property
    def endpoint(self) -> Optional[str]:
        return self._endpoint

    # --------------------------------------------------------------- subscriptions
    def on_reading(self, callback: ReadingCallback) -> None:
        """Call ``callback(raw_payload)`` for every ``sensor-data`` push."""
        self._reading_callbacks.append(callback)

    def on_connectivity_changed(self, callback: ConnectivityCallback) -> None:
        self._connectivity_callbacks.append(callback)

    # --------------------------------------------------------------- lifecycle
    def connect(self, endpoint: str, *, blocking: bool = False) -> None:
        """
        Open the link to ``endpoint``.

        The first connection is retried every ``retry_interval_s`` for at most
        ``max_attempts`` tries. Later drops are reconnected by the socket.io
        client with the same fixed-interval, capped policy.
        """
        if self._client is not None:
            logger.debug("connect() ignored: link to %s already managed", self._endpoint)
            return

        self._endpoint = endpoint
        self._stop_flag.clear()
        self._client = self._build_client()

        if blocking:
            self._connect_loop(self._client, endpoint)
            return

        self._thread = threading.Thread(
            target=self._connect_loop,
            args=(self._client, endpoint),
            name="EmiSenseSocketConnect",
            daemon=True,
        )
        self._thread.start()

    def send(self, command: Command | str) -> None:
        """Best-effort emit of a bench command; failures are only logged."""
        event = command.value if isinstance(command, Command) else str(command)
        client = self._client
        if client is None or not getattr(client, "connected", False):
            logger.warning("Dropping %s: link is down", event)
            return
        try:
            client.emit(event)
        except SocketIOError as exc:
            logger.warning("Failed to send %s: %s", event, exc)
        else:
            logger.debug("Sent %s", event)

    def close(self) -> None:
        """Release the link; safe to call more than once."""
        self._stop_flag.set()
        client = self._client
        self._client = None
        if client is not None:
            try:
                client.disconnect()
            except SocketIOError as exc:
                logger.warning("Error while disconnecting: %s", exc)
            logger.info("Closed link to %s", self._endpoint)

        thread = self._thread
        self._thread = None
        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=max(1.0, self._retry_interval_s + 0.5))

        if self.state.link_up:
            self._apply_link(False)

    # --------------------------------------------------------------- internals
    def _build_client(self) -> Any:
        client = self._client_factory(
            reconnection=True,
            reconnection_attempts=self._max_attempts,
            reconnection_delay=self._retry_interval_s,
            reconnection_delay_max=self._retry_interval_s,
            randomization_factor=0,
        )
        client.on("connect", self._on_connect)
        client.on("disconnect", self._on_disconnect)
        client.on("connect_error", self._on_connect_error)
        client.on(EVENT_CONNECTION_STATUS, self._on_connection_status)
        client.on(EVENT_SENSOR_DATA, self._on_sensor_data)
        return client

    def _connect_loop(self, client: Any, endpoint: str) -> None:
        for attempt in range(1, self._max_attempts + 1):
            if self._stop_flag.is_set():
                return
            try:
                client.connect(
                    endpoint,
                    transports=self._transports,
                    wait_timeout=self._connect_timeout_s,
                )
            except SocketConnectionError as exc:
                logger.warning(
                    "Connect attempt %d/%d to %s failed: %s",
                    attempt,
                    self._max_attempts,
                    endpoint,
                    exc,
                )
                self.link_error.emit(str(exc))
                if attempt < self._max_attempts and self._stop_flag.wait(self._retry_interval_s):
                    return
                continue
            if self._stop_flag.is_set() or self._client is not client:
                # close() ran during the handshake
                logger.info("Dropping late connection to %s after close", endpoint)
                try:
                    client.disconnect()
                except SocketIOError as exc:
                    logger.warning("Error while disconnecting: %s", exc)
                return
            logger.info("Connected to %s", endpoint)
            return
        logger.error("Giving up on %s after %d attempts", endpoint, self._max_attempts)

    # socket.io thread handlers: re-emit only, and nothing once closed
    def _on_connect(self) -> None:
        if not self._stop_flag.is_set():
            self.link_changed.emit(True)

    def _on_disconnect(self, *_reason: Any) -> None:
        if not self._stop_flag.is_set():
            self.link_changed.emit(False)

    def _on_connect_error(self, data: Any = None) -> None:
        if not self._stop_flag.is_set():
            self.link_error.emit(str(data))

    def _on_connection_status(self, data: Any) -> None:
        if self._stop_flag.is_set():
            return
        if isinstance(data, Mapping):
            connected = bool(data.get("connected"))
        else:
            connected = bool(data)
        self.device_status_received.emit(connected)

    def _on_sensor_data(self, data: Any = None) -> None:
        if not self._stop_flag.is_set():
            self.reading_received.emit(data)

    # owner thread slots
    @Slot(object)
    def _dispatch_reading(self, payload: Any) -> None:
        for callback in list(self._reading_callbacks):
            try:
                callback(payload)
            except Exception:
                logger.exception("Reading callback failed for payload %r", payload)

    @Slot(bool)
    def _apply_link(self, up: bool) -> None:
        if up and self._stop_flag.is_set():
            logger.debug("Ignoring link-up queued before close")
            return
        now = time.time()
        self.state.link_up = bool(up)
        if up:
            self.state.last_error = None
            self.state.last_connect_time = now
            logger.info("Socket link established")
        else:
            # the device flag is only trustworthy while the link is up
            self.state.device_connected = False
            self.state.last_disconnect_time = now
            logger.info("Socket link lost")
        self._publish_connectivity()

    @Slot(bool)
    def _apply_device_status(self, connected: bool) -> None:
        if self._stop_flag.is_set():
            return
        logger.info("Bench reports connected=%s", connected)
        self.state.device_connected = bool(connected)
        self._publish_connectivity()

    @Slot(str)
    def _apply_link_error(self, message: str) -> None:
        self.state.last_error = message

    def _publish_connectivity(self) -> None:
        connected = self.state.connected
        if connected == self._published_connected:
            return
        self._published_connected = connected
        self.connectivity_changed.emit(connected)
        for callback in list(self._connectivity_callbacks):
            try:
                callback(connected)
            except Exception:
                logger.exception("Connectivity callback failed")
