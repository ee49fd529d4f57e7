"""
Control gateway core: typed requests in, JSON-ready replies out.

Front ends (the Flask app in ``server``, the stdin daemon in ``daemon``) build
a Request, push it onto ``Api.requests`` through ``submit`` and wait on the
returned Reply. A single worker thread runs ``Api.run`` and owns every call
into the Caster, so lifecycle calls never race each other.

A Reply is single use. If the front end gives up waiting (``abandon``) before
the worker answers, the answer is silently dropped.
"""

import logging
import math
import queue
import threading
from concurrent.futures import Future, InvalidStateError
from concurrent.futures import TimeoutError as ReplyTimeout
from dataclasses import dataclass, field
from enum import Enum

from .caster import Caster
from .const import DISCOVERY_TIMEOUT, MEDIA_PORT
from .errors import ApplicationError, CastError, UnsupportedCommandError

log = logging.getLogger(__name__)


class Action(Enum):
    DISCOVER = "discover"
    DEVICES = "devices"
    SELECT = "select"
    BEGIN = "begin"
    CLOSE = "close"
    CONTROL = "control"
    STATUS = "status"


class Signal(Enum):
    PLAY = "play"
    PAUSE = "pause"
    STOP = "stop"
    SEEK = "seek"
    BEGIN = "begin"


@dataclass(frozen=True)
class CastSignal:
    """Remote control signal for the current playback.

    SEEK carries the target time in seconds, BEGIN the index of a file in the
    media library.
    """

    kind: Signal
    value: float | int | None = None

    @classmethod
    def play(cls):
        return cls(Signal.PLAY)

    @classmethod
    def pause(cls):
        return cls(Signal.PAUSE)

    @classmethod
    def stop(cls):
        return cls(Signal.STOP)

    @classmethod
    def seek(cls, seconds):
        return cls(Signal.SEEK, seconds)

    @classmethod
    def begin(cls, index):
        return cls(Signal.BEGIN, index)

    @classmethod
    def parse(cls, name, value=None) -> "CastSignal":
        """Build a signal from its name, e.g. ("seek", 12.5)."""
        try:
            kind = Signal(str(name).lower())
        except ValueError:
            raise ApplicationError(f"Unknown signal: {name}") from None
        if kind is Signal.SEEK:
            try:
                value = float(value)
            except (TypeError, ValueError):
                raise ApplicationError(f"Seek needs a time in seconds, got {value!r}") from None
        elif kind is Signal.BEGIN:
            try:
                value = int(value)
            except (TypeError, ValueError):
                raise ApplicationError(f"Begin needs a media index, got {value!r}") from None
        else:
            value = None
        return cls(kind, value)


class Reply:
    """Single use reply channel."""

    def __init__(self):
        self._future = Future()

    def send(self, payload) -> bool:
        """Deliver ``payload``. Returns False if the receiver abandoned the reply."""
        try:
            self._future.set_result(payload)
        except InvalidStateError:
            return False
        return True

    def wait(self, timeout=None):
        """Block for the payload; raises concurrent.futures.TimeoutError."""
        return self._future.result(timeout)

    def abandon(self):
        self._future.cancel()

    @property
    def abandoned(self) -> bool:
        return self._future.cancelled()


@dataclass
class Request:
    action: Action
    argument: object = None
    reply: Reply = field(default_factory=Reply)


def failure(error) -> dict:
    return {"success": False, "reason": error.reason, "error": str(error)}


class Api:
    """Serves gateway requests against one Caster."""

    def __init__(self, caster=None, media_port=MEDIA_PORT, discovery_timeout=DISCOVERY_TIMEOUT):
        self.caster = caster if caster is not None else Caster()
        self.media_port = media_port
        self.discovery_timeout = discovery_timeout
        self.requests = queue.Queue()
        self._worker = None

    def submit(self, action, argument=None) -> Reply:
        request = Request(Action(action), argument)
        self.requests.put(request)
        return request.reply

    def call(self, action, argument=None, timeout=None) -> dict:
        """Submit and wait. On timeout the reply is abandoned and the error re-raised."""
        reply = self.submit(action, argument)
        try:
            return reply.wait(timeout)
        except ReplyTimeout:
            reply.abandon()
            raise

    def start(self) -> threading.Thread:
        self._worker = threading.Thread(target=self.run, name="cast-api", daemon=True)
        self._worker.start()
        return self._worker

    def shutdown(self, timeout=None):
        """Stop the worker after the queued requests, then close the session."""
        self.requests.put(None)
        if self._worker is not None:
            self._worker.join(timeout)
            self._worker = None
        self.caster.close()

    def run(self):
        while True:
            request = self.requests.get()
            if request is None:
                break
            self.handle_request(request)

    def handle_request(self, request):
        log.info("[API] Request received: %s %s", request.action.value,
                 "" if request.argument is None else request.argument)
        try:
            payload = {"success": True}
            payload.update(self._dispatch(request.action, request.argument))
        except CastError as e:
            log.info("[API] Failed request %s: %s", request.action.value, e)
            payload = failure(e)
        except Exception as e:
            log.exception("[API] Unexpected error handling %s", request.action.value)
            payload = {"success": False, "reason": "Internal", "error": str(e)}

        if not request.reply.send(payload):
            log.debug("[API] Reply to %s dropped, caller went away", request.action.value)

    def _dispatch(self, action, argument) -> dict:
        caster = self.caster
        if action is Action.DISCOVER:
            timeout = self.discovery_timeout if argument is None else argument
            if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) \
                    or not math.isfinite(timeout) or timeout <= 0:
                raise ApplicationError(f"Invalid discovery timeout: {timeout!r}")
            devices = caster.discover(timeout)
            return {"devices": [d.to_dict() for d in devices]}

        if action is Action.DEVICES:
            return {"devices": [d.to_dict() for d in caster.devices]}

        if action is Action.SELECT:
            if not argument:
                raise ApplicationError("Select needs a device address")
            device = caster.select_device(argument)
            return {"device": device.to_dict()}

        if action is Action.BEGIN:
            port = self.media_port if argument is None else argument
            if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
                raise ApplicationError(f"Invalid media port: {port!r}")
            caster.begin(port)
            return {"port": port}

        if action is Action.CLOSE:
            caster.close()
            return {}

        if action is Action.CONTROL:
            if not isinstance(argument, CastSignal):
                raise ApplicationError(f"Control needs a cast signal, got {argument!r}")
            self.handle_cast_signal(argument)
            return {"signal": argument.kind.value}

        if action is Action.STATUS:
            return {"status": caster.status.get().to_dict()}

        raise ApplicationError(f"Unknown action: {action}")

    def handle_cast_signal(self, signal):
        """Remote control for the current playback. The reply goes out once the
        device accepted the command, not once playback changed."""
        if signal.kind is Signal.BEGIN:
            raise UnsupportedCommandError("Starting a file by media index is not yet supported.")
        if signal.kind is Signal.PLAY:
            self.caster.resume()
        elif signal.kind is Signal.PAUSE:
            self.caster.pause()
        elif signal.kind is Signal.STOP:
            self.caster.stop()
        elif signal.kind is Signal.SEEK:
            self.caster.seek(signal.value)
