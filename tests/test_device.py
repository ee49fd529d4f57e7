import pychromecast
import pytest
from pychromecast.controllers.receiver import CastStatus
from pychromecast.error import ChromecastConnectionError, RequestFailed, RequestTimeout
from pychromecast.socket_client import (
    CONNECTION_STATUS_CONNECTED,
    CONNECTION_STATUS_LOST,
    ConnectionStatus,
)

from localcast.const import APP_MEDIA_RECEIVER
from localcast.device import CastDevice
from localcast.errors import ProtocolError, TransportError


def cast_status(app_id=None, transport_id=None):
    return CastStatus(
        is_active_input=None, is_stand_by=None,
        volume_level=0.4, volume_muted=False,
        app_id=app_id, display_name="Default Media Receiver" if app_id else None,
        namespaces=[], session_id="abc-session" if app_id else None,
        transport_id=transport_id, status_text="", icon_url=None,
        volume_control_type="attenuation",
    )


MEDIA_REPLY = {
    "type": "MEDIA_STATUS",
    "status": [{"mediaSessionId": 3, "playerState": "PLAYING", "currentTime": 12.5,
                "media": {"duration": 90.0}}],
}


class FakeReceiverController:
    def __init__(self, cast):
        self.cast = cast
        self.launch_reply = (True, None)

    def update_status(self, *, callback_function=None):
        callback_function(True, {"type": "RECEIVER_STATUS"})

    def launch_app(self, app_id, *, force_launch=False, callback_function=None):
        msg_sent, response = self.launch_reply
        if msg_sent:
            self.cast.status = cast_status(app_id, "web-5")
        callback_function(msg_sent, response)


class FakeMediaController:
    """Answers every request at once with ``reply``."""

    def __init__(self):
        self.is_active = True
        self.reply = MEDIA_REPLY
        self.sent = []
        self.error = None

    def _answer(self, name, callback_function, **kwargs):
        self.sent.append((name, kwargs))
        if callback_function is not None:
            callback_function(True, self.reply)

    def update_status(self, *, callback_function=None):
        self._answer("update_status", callback_function)

    def play_media(self, url, content_type, *, callback_function=None, **kwargs):
        self._answer("play_media", callback_function, url=url, content_type=content_type, **kwargs)

    def send_message(self, data, inc_session_id=False, *, callback_function=None, **kwargs):
        self._answer("send_message", callback_function, data=data, inc_session_id=inc_session_id)

    def _command(self, name, timeout):
        if self.error is not None:
            raise self.error
        self.sent.append((name, {"timeout": timeout}))

    def play(self, timeout=10.0):
        self._command("play", timeout)

    def pause(self, timeout=10.0):
        self._command("pause", timeout)

    def stop(self, timeout=10.0):
        self._command("stop", timeout)


class FakeCast:
    """Stands in for pychromecast.Chromecast."""

    def __init__(self, status=None):
        self.status = status
        self.listeners = []
        self.socket_client = type("SocketClient", (), {})()
        self.socket_client.receiver_controller = FakeReceiverController(self)
        self.media_controller = FakeMediaController()
        self.wait_error = None
        self.disconnects = 0

    def register_connection_listener(self, listener):
        self.listeners.append(listener)

    def report(self, status):
        for listener in self.listeners:
            listener.new_connection_status(ConnectionStatus(status, None, None))

    def wait(self, timeout=None):
        if self.wait_error is not None:
            raise self.wait_error

    def disconnect(self, timeout=None):
        self.disconnects += 1


@pytest.fixture
def cast():
    return FakeCast(cast_status())


@pytest.fixture
def device(cast):
    return CastDevice(cast, host="10.0.0.5", timeout=0.5)


def test_open_connects_and_waits_for_status(monkeypatch):
    cast = FakeCast(cast_status())
    hosts = []

    def from_host(host, tries=None, retry_wait=None, timeout=None):
        hosts.append((host, tries, timeout))
        return cast

    monkeypatch.setattr(pychromecast, "get_chromecast_from_host", from_host)
    with CastDevice.open("10.0.0.5", timeout=2.0) as device:
        assert device.cast is cast
        assert cast.listeners == [device]
    assert hosts == [(("10.0.0.5", 8009, None, None, None), 1, 2.0)]
    assert cast.disconnects == 1


def test_open_without_status_is_transport_error(monkeypatch):
    cast = FakeCast()
    cast.wait_error = RequestTimeout("wait", 2.0)
    monkeypatch.setattr(pychromecast, "get_chromecast_from_host", lambda host, **kw: cast)

    with pytest.raises(TransportError):
        CastDevice.open("10.0.0.5", timeout=2.0)
    assert cast.disconnects == 1


def test_open_unreachable_host(monkeypatch):
    def from_host(host, **kwargs):
        raise ChromecastConnectionError("refused")

    monkeypatch.setattr(pychromecast, "get_chromecast_from_host", from_host)
    with pytest.raises(TransportError):
        CastDevice.open("10.0.0.5")


def test_receiver_status_without_app(device):
    status = device.receiver_status()
    assert status.applications == []
    assert status.volume_level == 0.4


def test_backdrop_is_not_an_application(cast, device):
    cast.status = cast_status(pychromecast.IDLE_APP_ID, "backdrop-1")
    assert device.receiver_status().applications == []


def test_launch_returns_running_app(device):
    app = device.launch_app(APP_MEDIA_RECEIVER)
    assert app.app_id == APP_MEDIA_RECEIVER
    assert app.transport_id == "web-5"
    assert app.session_id == "abc-session"


def test_launch_error_is_protocol_error(cast, device):
    cast.socket_client.receiver_controller.launch_reply = (False, {"type": "LAUNCH_ERROR"})
    with pytest.raises(ProtocolError):
        device.launch_app(APP_MEDIA_RECEIVER)


def test_load_sends_media_and_returns_entries(cast, device):
    entries = device.load("http://10.0.0.2:8009", "video/mp4")

    name, kwargs = cast.media_controller.sent[0]
    assert name == "play_media"
    assert kwargs["url"] == "http://10.0.0.2:8009"
    assert kwargs["stream_type"] == "NONE"
    assert kwargs["autoplay"] is True
    assert entries[0].media_session_id == 3
    assert entries[0].current_time == 12.5


def test_load_failed_is_protocol_error(cast, device):
    cast.media_controller.reply = {"type": "LOAD_FAILED"}
    with pytest.raises(ProtocolError):
        device.load("http://10.0.0.2:8009", "video/mp4")


def test_media_status_without_media_app_sends_nothing(cast, device):
    cast.media_controller.is_active = False
    assert device.media_status() == []
    assert cast.media_controller.sent == []


def test_media_status_reads_entries(device):
    [entry] = device.media_status()
    assert entry.player_state == "PLAYING"
    assert entry.duration == 90.0


def test_unanswered_request_times_out(cast, device):
    cast.media_controller.update_status = lambda *, callback_function=None: None
    with pytest.raises(TransportError):
        device.media_status()


def test_seek_leaves_play_state_alone(cast, device):
    device.seek(3, 42.0)

    name, kwargs = cast.media_controller.sent[0]
    assert name == "send_message"
    assert kwargs["inc_session_id"] is True
    assert kwargs["data"] == {"type": "SEEK", "mediaSessionId": 3, "currentTime": 42.0}


def test_seek_with_resume_state(cast, device):
    device.seek(3, 5.0, resume_state="PLAYBACK_PAUSE")
    assert cast.media_controller.sent[0][1]["data"]["resumeState"] == "PLAYBACK_PAUSE"


def test_pause_passes_timeout(cast, device):
    device.pause()
    assert cast.media_controller.sent == [("pause", {"timeout": 0.5})]


def test_failed_command_is_transport_error(cast, device):
    cast.media_controller.error = RequestFailed("stop")
    with pytest.raises(TransportError):
        device.stop()


def test_poll_raises_after_connection_lost(cast, device):
    device.poll(0)
    cast.report(CONNECTION_STATUS_CONNECTED)
    device.poll(0)

    cast.report(CONNECTION_STATUS_LOST)
    with pytest.raises(TransportError):
        device.poll(0)


def test_close_is_idempotent_and_ignores_own_disconnect(cast, device):
    device.close()
    cast.report(CONNECTION_STATUS_LOST)
    device.close()
    assert cast.disconnects == 1
    device.poll(0)


def test_close_survives_stuck_socket_thread(cast, device):
    def stuck(timeout=None):
        raise TimeoutError("join", timeout)

    cast.disconnect = stuck
    device.close()
    assert device.closed
