"""
One PyChromecast connection to a device, with the receiver and media
operations needed to cast and control a video.

    with CastDevice.open("192.168.1.20") as device:
        app = device.launch_app(APP_MEDIA_RECEIVER)
        device.load("http://192.168.1.10:8009", "video/mp4")

PyChromecast keeps the socket on its own worker thread. That thread answers
heartbeat pings and connects to the app's transport as soon as the receiver
reports it, so requests here only send and wait for the matching reply.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field

import pychromecast
from pychromecast import IDLE_APP_ID
from pychromecast.controllers.media import TYPE_MEDIA_STATUS, TYPE_SEEK
from pychromecast.error import (
    PyChromecastError,
    RequestFailed,
    RequestTimeout,
    UnsupportedNamespace,
)
from pychromecast.response_handler import WaitResponse
from pychromecast.socket_client import (
    CONNECTION_STATUS_DISCONNECTED,
    CONNECTION_STATUS_FAILED,
    CONNECTION_STATUS_LOST,
    ConnectionStatusListener,
)

from .const import (
    CAST_PORT,
    ERROR_REPLY_TYPES,
    MEDIA_SESSION_ID,
    MESSAGE_TYPE,
    REQUEST_TIMEOUT,
    STREAM_TYPE_NONE,
)
from .errors import ProtocolError, TransportError
from .status import StatusEntry

log = logging.getLogger(__name__)

LOST_STATES = (CONNECTION_STATUS_LOST, CONNECTION_STATUS_FAILED, CONNECTION_STATUS_DISCONNECTED)


@dataclass(frozen=True)
class Application:
    app_id: str
    display_name: str
    session_id: str
    transport_id: str

    @classmethod
    def from_cast_status(cls, status) -> "Application":
        return cls(
            app_id=status.app_id or "",
            display_name=status.display_name or "",
            session_id=status.session_id or "",
            transport_id=status.transport_id or "",
        )


@dataclass(frozen=True)
class ReceiverStatus:
    applications: list = field(default_factory=list)
    volume_level: float | None = None
    volume_muted: bool | None = None

    @classmethod
    def from_cast_status(cls, status) -> "ReceiverStatus":
        """From a pychromecast CastStatus. The backdrop app counts as no app."""
        if status is None:
            return cls()
        applications = []
        if status.app_id and status.app_id != IDLE_APP_ID:
            applications.append(Application.from_cast_status(status))
        return cls(applications, status.volume_level, status.volume_muted)


def _media_entries(response) -> list:
    if response is None:
        return []
    if response.get(MESSAGE_TYPE) != TYPE_MEDIA_STATUS:
        raise ProtocolError(f"Expected {TYPE_MEDIA_STATUS}, got {response.get(MESSAGE_TYPE)}")
    return [StatusEntry.from_payload(entry) for entry in response.get("status") or []]


class CastDevice(ConnectionStatusListener):
    """A connection to one device, wrapping a ``pychromecast.Chromecast``.

    Connection loss reported by PyChromecast is latched; ``poll`` raises once it
    happened.
    """

    def __init__(self, cast, host=None, timeout=REQUEST_TIMEOUT):
        self.cast = cast
        self.host = host
        self.timeout = timeout
        self.closed = False
        self._lost = threading.Event()
        cast.register_connection_listener(self)

    @classmethod
    def open(cls, host, port=CAST_PORT, timeout=REQUEST_TIMEOUT) -> "CastDevice":
        """Connect to ``host`` and wait for the first receiver status."""
        try:
            cast = pychromecast.get_chromecast_from_host(
                (host, port, None, None, None), tries=1, timeout=timeout)
        except (PyChromecastError, OSError) as e:
            raise TransportError(f"Could not reach {host}:{port}: {e}") from e

        device = cls(cast, host=host, timeout=timeout)
        try:
            cast.wait(timeout=timeout)
        except RequestTimeout as e:
            device.close()
            raise TransportError(f"No status from {host}:{port} within {timeout}s") from e
        log.info("[Chromecast] Connected to %s:%s", host, port)
        return device

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def new_connection_status(self, status):
        log.debug("[Chromecast] Connection to %s: %s", self.host, status.status)
        if status.status in LOST_STATES and not self.closed:
            self._lost.set()

    def poll(self, timeout):
        """Wait up to ``timeout`` seconds; raises TransportError once the connection is gone."""
        if self._lost.wait(timeout):
            raise TransportError(f"Lost connection to {self.host}")

    def close(self):
        """Close the transport channels and stop PyChromecast's socket thread."""
        if self.closed:
            return
        self.closed = True
        try:
            self.cast.disconnect(timeout=self.timeout)
        except TimeoutError:
            log.warning("[Chromecast] Socket thread for %s did not stop within %ss", self.host, self.timeout)

    @contextmanager
    def _errors(self, request):
        try:
            yield
        except RequestTimeout as e:
            raise TransportError(f"No reply to {request} within {self.timeout}s") from e
        except UnsupportedNamespace as e:
            raise ProtocolError(f"{request}: {e}") from e
        except PyChromecastError as e:
            raise TransportError(f"{request} failed: {e}") from e

    def _request(self, request, send):
        """Run ``send(callback)`` and wait for the reply passed to the callback."""
        handler = WaitResponse(self.timeout, request)
        with self._errors(request):
            send(handler.callback)
            try:
                handler.wait_response()
            except RequestFailed as e:
                # Refusals such as LAUNCH_ERROR come back as a failed callback with the reply
                response = getattr(handler, "response", None)
                if response:
                    raise ProtocolError(f"{request} rejected: {response.get(MESSAGE_TYPE)}") from e
                raise

        response = handler.response
        if response and response.get(MESSAGE_TYPE) in ERROR_REPLY_TYPES:
            raise ProtocolError(f"{request} rejected: {response.get(MESSAGE_TYPE)}")
        return response

    # Receiver

    def receiver_status(self) -> ReceiverStatus:
        receiver = self.cast.socket_client.receiver_controller
        self._request("receiver status", lambda cb: receiver.update_status(callback_function=cb))
        return ReceiverStatus.from_cast_status(self.cast.status)

    def launch_app(self, app_id) -> Application:
        receiver = self.cast.socket_client.receiver_controller
        self._request(f"launch {app_id}", lambda cb: receiver.launch_app(app_id, callback_function=cb))

        for app in ReceiverStatus.from_cast_status(self.cast.status).applications:
            if app.app_id == app_id:
                if not app.transport_id:
                    raise ProtocolError(f"Application {app_id} has no transport id")
                log.info("[Chromecast] Launched %s (%s)", app.display_name or app_id, app.session_id)
                return app
        raise ProtocolError(f"Application {app_id} is not running after launch")

    # Media

    def load(self, content_id, content_type, stream_type=STREAM_TYPE_NONE,
             autoplay=True, current_time=0) -> list:
        media = self.cast.media_controller
        response = self._request("load", lambda cb: media.play_media(
            content_id, content_type,
            stream_type=stream_type,
            autoplay=autoplay,
            current_time=current_time,
            callback_function=cb,
        ))
        return _media_entries(response)

    def media_status(self) -> list:
        """Entries of a fresh MEDIA_STATUS, empty when no media app is running."""
        media = self.cast.media_controller
        if not media.is_active:
            return []
        return _media_entries(self._request(
            "media status", lambda cb: media.update_status(callback_function=cb)))

    def play(self):
        with self._errors("play"):
            self.cast.media_controller.play(timeout=self.timeout)

    def pause(self):
        with self._errors("pause"):
            self.cast.media_controller.pause(timeout=self.timeout)

    def stop(self):
        with self._errors("stop"):
            self.cast.media_controller.stop(timeout=self.timeout)

    def seek(self, media_session_id, current_time, resume_state=None) -> list:
        """Seek to ``current_time`` seconds. ``resume_state`` None leaves the
        player state unchanged, otherwise PLAYBACK_START or PLAYBACK_PAUSE."""
        payload = {MESSAGE_TYPE: TYPE_SEEK, MEDIA_SESSION_ID: media_session_id, "currentTime": current_time}
        if resume_state is not None:
            payload["resumeState"] = resume_state
        media = self.cast.media_controller
        return _media_entries(self._request(f"seek {current_time}", lambda cb: media.send_message(
            payload, inc_session_id=True, callback_function=cb)))
