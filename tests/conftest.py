"""Shared fakes: a simulated Cast device and connections to it."""

import threading
import time
from dataclasses import replace

import pytest

from localcast.const import APP_MEDIA_RECEIVER
from localcast.device import Application, ReceiverStatus
from localcast.status import StatusEntry


class FakeReceiver:
    """State of one simulated device, shared by every connection to it."""

    def __init__(self):
        self.lock = threading.Lock()
        self.applications = []
        self.entries = []
        self.commands = []
        self.loads = []
        self.opened = []
        self.connections = []
        self.open_error = None
        self.launch_error = None
        self.connection_error = None
        self.status_error = None
        self.status_requests = 0
        self.next_session_id = 1

    def open(self, address):
        if self.open_error is not None:
            raise self.open_error
        device = FakeCastDevice(self, address)
        with self.lock:
            self.opened.append(address)
            self.connections.append(device)
        return device

    def start_media(self, state="PLAYING", duration=None):
        app = Application(APP_MEDIA_RECEIVER, "Default Media Receiver", "session-1", "transport-1")
        entry = StatusEntry(self.next_session_id, state, current_time=0.0, duration=duration)
        with self.lock:
            self.applications = [app]
            self.entries = [entry]
        return app

    @property
    def open_connections(self):
        return [c for c in self.connections if not c.closed]


class FakeCastDevice:
    """Stands in for localcast.device.CastDevice."""

    def __init__(self, receiver, address):
        self.receiver = receiver
        self.address = address
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def close(self):
        self.closed = True

    def poll(self, timeout):
        if self.receiver.connection_error is not None:
            raise self.receiver.connection_error
        time.sleep(timeout)

    def receiver_status(self):
        with self.receiver.lock:
            return ReceiverStatus(applications=list(self.receiver.applications))

    def launch_app(self, app_id):
        if self.receiver.launch_error is not None:
            raise self.receiver.launch_error
        app = self.receiver.start_media()
        with self.receiver.lock:
            self.receiver.entries = []
        return app

    def load(self, content_id, content_type, **kwargs):
        r = self.receiver
        with r.lock:
            r.loads.append((content_id, content_type))
            r.entries = [StatusEntry(r.next_session_id, "PLAYING", current_time=0.0, duration=120.0)]
            return list(r.entries)

    def media_status(self):
        r = self.receiver
        with r.lock:
            r.status_requests += 1
        if r.status_error is not None:
            raise r.status_error
        with r.lock:
            return list(r.entries)

    def _command(self, name, media_session_id=None, **kwargs):
        r = self.receiver
        with r.lock:
            if media_session_id is None and r.entries:
                media_session_id = r.entries[0].media_session_id
            r.commands.append((name, media_session_id, kwargs))
            if name == "pause":
                r.entries = [replace(e, player_state="PAUSED") for e in r.entries]
            elif name == "play":
                r.entries = [replace(e, player_state="PLAYING") for e in r.entries]
            elif name == "stop":
                r.entries = []
            elif name == "seek":
                r.entries = [replace(e, current_time=kwargs["current_time"]) for e in r.entries]
            return list(r.entries)

    def play(self):
        return self._command("play")

    def pause(self):
        return self._command("pause")

    def stop(self):
        return self._command("stop")

    def seek(self, media_session_id, current_time, resume_state=None):
        return self._command("seek", media_session_id,
                             current_time=current_time, resume_state=resume_state)


def wait_for(predicate, timeout=3.0, interval=0.01):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def receiver():
    return FakeReceiver()
