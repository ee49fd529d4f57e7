"""
Play state commands against the media session running on the target device.

Every call opens its own short lived connection, looks up the running app and
media session fresh (the device may have rotated them since the last
status poll) and closes the connection again on every exit path. It never
touches the status thread's connection.
"""

import logging
import math

from .device import CastDevice
from .errors import ApplicationError, NoActiveMediaError, NoDeviceSelectedError

log = logging.getLogger(__name__)

PLAY = "play"
PAUSE = "pause"
STOP = "stop"
SEEK = "seek"


class CommandDispatcher:
    """Issues play/pause/stop/seek to the device at ``device_addr``."""

    def __init__(self, device_factory=CastDevice.open, device_addr=None):
        self.device_addr = device_addr
        self._device_factory = device_factory

    def resume(self):
        """Resume playback if it is paused."""
        self._change_media_state(PLAY)

    def pause(self):
        self._change_media_state(PAUSE)

    def stop(self):
        """Stop playback and return the device to its splash screen."""
        self._change_media_state(STOP)

    def seek(self, seconds):
        """Seek current playback to ``seconds``, keeping the play/pause state."""
        if isinstance(seconds, bool) or not isinstance(seconds, (int, float)):
            raise ApplicationError(f"Seek time must be a number, got {seconds!r}")
        if math.isnan(seconds) or math.isinf(seconds) or seconds < 0:
            raise ApplicationError(f"Seek time must be a non-negative number, got {seconds!r}")
        self._change_media_state(SEEK, float(seconds))

    def _change_media_state(self, action, seconds=None):
        address = self.device_addr
        if address is None:
            raise NoDeviceSelectedError("No device address selected.")

        with self._device_factory(address) as device:
            applications = device.receiver_status().applications
            if not applications:
                raise NoActiveMediaError("Cannot change media state. No running application.")
            entries = device.media_status()
            if not entries:
                raise NoActiveMediaError("Cannot change media state. No active media.")

            session_id = entries[0].media_session_id
            log.info("[Chromecast] %s on %s (media session %s)", action, address, session_id)

            if action == PLAY:
                device.play()
            elif action == PAUSE:
                device.pause()
            elif action == STOP:
                device.stop()
            elif action == SEEK:
                # Resume state None leaves the play state unchanged
                device.seek(session_id, seconds, resume_state=None)
            else:
                raise ApplicationError(f"Unknown media action: {action}")
