"""
Cast session: device selection, the begin/close lifecycle and the background
status thread.

    caster = Caster()
    caster.discover()
    caster.select_device("10.0.0.5")
    caster.begin(8009)            # device now plays http://<this host>:8009
    caster.status.get().to_dict() # {"playbackState": "PLAYING", ...}
    caster.pause()
    caster.close()

The status thread owns the connection opened by ``begin``. Commands
(resume/pause/stop/seek) go through a CommandDispatcher that opens its own
connection per call, so the two never share a socket. The StatusCell is the
only state they share.
"""

import logging
import socket
import threading
import time
from enum import Enum

from . import discovery
from .commands import CommandDispatcher
from .const import (
    APP_MEDIA_RECEIVER,
    CONTENT_TYPE_MP4,
    DISCOVERY_TIMEOUT,
    FIRST_STATUS_DELAY,
    RECEIVE_TIMEOUT,
    REQUEST_TIMEOUT,
    STATUS_INTERVAL,
)
from .device import CastDevice
from .errors import (
    CastError,
    DeviceNotFoundError,
    NoDeviceSelectedError,
    SessionActiveError,
)
from .status import MediaStatus, StatusCell

log = logging.getLogger(__name__)

STATUS_THREAD_NAME = "cast-status"


class SessionState(Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    APP_LAUNCHING = "app_launching"
    MEDIA_LOADING = "media_loading"
    STREAMING = "streaming"
    CLOSING = "closing"


def get_local_ip():
    """Get the local IP address that can reach the network."""
    try:
        # Connect to a public DNS to determine local IP
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            s.connect(("8.8.8.8", 80))
            return s.getsockname()[0]
        finally:
            s.close()
    except OSError as e:
        log.warning("Could not determine local IP (%s), falling back to 127.0.0.1", e)
        return "127.0.0.1"


class StatusLoop:
    """Body of the status thread.

    Holds no reference to the Caster, so dropping the Caster is never blocked
    by a running loop.
    """

    def __init__(self, device, status, shutdown,
                 first_delay=FIRST_STATUS_DELAY, interval=STATUS_INTERVAL,
                 receive_timeout=RECEIVE_TIMEOUT):
        self.device = device
        self.status = status
        self.shutdown = shutdown
        self.first_delay = first_delay
        self.interval = interval
        self.receive_timeout = receive_timeout

    def run(self):
        log.info("[Status] Status thread started")
        try:
            self._loop()
        finally:
            self.device.close()
            log.info("[Status] Status thread stopped")

    def _loop(self):
        last_fetch = time.monotonic()
        delay = self.first_delay
        while not self.shutdown.is_set():
            try:
                self.device.poll(self.receive_timeout)
            except CastError as e:
                log.error("[Status] Lost connection to device: %s", e)
                self.status.mark_disconnected()
                return

            if time.monotonic() - last_fetch >= delay:
                delay = self.interval
                self._refresh()
                last_fetch = time.monotonic()

    def _refresh(self):
        try:
            entries = self.device.media_status()
        except CastError as e:
            log.info("[Status] Status fetch failed: %s", e)
            return
        status = MediaStatus.from_entries(entries)
        log.debug("[Status] %s", status)
        self.status.set(status)


class Caster:
    """The cast session for one process (or one device at a time)."""

    def __init__(self, device_factory=CastDevice.open, local_ip=get_local_ip,
                 first_status_delay=FIRST_STATUS_DELAY, status_interval=STATUS_INTERVAL,
                 receive_timeout=RECEIVE_TIMEOUT, join_timeout=None):
        self._device_factory = device_factory
        self._local_ip = local_ip
        self._first_status_delay = first_status_delay
        self._status_interval = status_interval
        self._receive_timeout = receive_timeout
        if join_timeout is None:
            join_timeout = receive_timeout + REQUEST_TIMEOUT
        self._join_timeout = join_timeout

        self._lock = threading.RLock()
        self._device_addr = None
        self._shutdown = None
        self._thread = None
        self.devices = []
        self.state = SessionState.IDLE
        self.status = StatusCell()
        self.commands = CommandDispatcher(device_factory)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def __del__(self):
        # Not fully constructed
        if "commands" not in self.__dict__:
            return
        self.close()

    @property
    def device_addr(self):
        return self._device_addr

    @property
    def is_streaming(self) -> bool:
        thread = self._thread
        return self.state is SessionState.STREAMING and thread is not None and thread.is_alive()

    def discover(self, timeout=DISCOVERY_TIMEOUT) -> list:
        """Run discovery and remember the result for select_device."""
        devices = discovery.discover(timeout)
        with self._lock:
            self.devices = list(devices)
        return list(devices)

    def select_device(self, address):
        """Target ``address``, which must be in the last discovery result."""
        address = str(address)
        with self._lock:
            for device in self.devices:
                if str(device.address) == address:
                    self._device_addr = address
                    self.commands.device_addr = address
                    log.info("[Chromecast] Selected device: %s (%s)", device.friendly_name, address)
                    return device
        raise DeviceNotFoundError(
            f"Device {address} not found in discovered devices, try discovering first.")

    def begin(self, media_port):
        """Connect, launch the media receiver, load http://<local ip>:<media_port>
        and start the status thread."""
        with self._lock:
            address = self._device_addr
            if address is None:
                raise NoDeviceSelectedError("No device address selected.")
            if self._thread is not None and self._thread.is_alive():
                raise SessionActiveError("A cast session is already running, close it first.")
            # A loop that died on connection loss leaves its handles behind
            self._thread = None
            self._shutdown = None

            self.state = SessionState.CONNECTING
            device = None
            try:
                device = self._device_factory(address)

                self.state = SessionState.APP_LAUNCHING
                device.launch_app(APP_MEDIA_RECEIVER)

                self.state = SessionState.MEDIA_LOADING
                media_url = f"http://{self._local_ip()}:{media_port}"
                device.load(media_url, CONTENT_TYPE_MP4)
                log.info("[Chromecast] Loaded media %s", media_url)
            except BaseException:
                if device is not None:
                    device.close()
                self.state = SessionState.IDLE
                raise

            shutdown = threading.Event()
            loop = StatusLoop(
                device, self.status, shutdown,
                first_delay=self._first_status_delay,
                interval=self._status_interval,
                receive_timeout=self._receive_timeout,
            )
            thread = threading.Thread(target=loop.run, name=STATUS_THREAD_NAME, daemon=True)
            self._shutdown = shutdown
            self._thread = thread
            self.state = SessionState.STREAMING
            thread.start()

    def close(self):
        """Stop playback (best effort) and shut the status thread down.

        Safe to call any number of times. May block until the status thread's
        current wait or status request returns.
        """
        with self._lock:
            if self._shutdown is None:
                self.state = SessionState.IDLE
                return

            if self.is_streaming:
                try:
                    self.commands.stop()
                except CastError as e:
                    log.warning("[Chromecast] Stop on close failed: %s", e)

            self.state = SessionState.CLOSING
            self._shutdown.set()
            self._shutdown = None
            thread, self._thread = self._thread, None

            if thread is not threading.current_thread():
                thread.join(self._join_timeout)
                if thread.is_alive():
                    log.warning("[Status] Status thread did not stop within %ss", self._join_timeout)
            self.state = SessionState.IDLE
            log.info("[Chromecast] Session closed")

    def resume(self):
        self.commands.resume()

    def pause(self):
        self.commands.pause()

    def stop(self):
        self.commands.stop()

    def seek(self, seconds):
        self.commands.seek(seconds)
