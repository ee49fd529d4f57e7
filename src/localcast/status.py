"""
Playback status shared between the status thread and its readers.
"""

import threading
from dataclasses import dataclass, replace

from .const import MEDIA_SESSION_ID

PLAYER_STATE_PLAYING = "PLAYING"
PLAYER_STATE_PAUSED = "PAUSED"
PLAYER_STATE_BUFFERING = "BUFFERING"
PLAYER_STATE_IDLE = "IDLE"

INACTIVE = "Inactive"


def _number(value):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


@dataclass(frozen=True)
class StatusEntry:
    """One entry of a MEDIA_STATUS reply."""

    media_session_id: int
    player_state: str
    current_time: float | None = None
    duration: float | None = None
    idle_reason: str | None = None

    @classmethod
    def from_payload(cls, data: dict) -> "StatusEntry":
        media = data.get("media") or {}
        return cls(
            media_session_id=data.get(MEDIA_SESSION_ID),
            player_state=data.get("playerState", PLAYER_STATE_IDLE),
            current_time=_number(data.get("currentTime")),
            duration=_number(media.get("duration")),
            idle_reason=data.get("idleReason"),
        )


@dataclass(frozen=True)
class MediaStatus:
    """Either Inactive (``entry`` is None) or Active(entry).

    ``disconnected`` is set once the status loop lost its device connection;
    the rest of the value is then the last status seen before the loss.
    """

    entry: StatusEntry | None = None
    disconnected: bool = False

    @classmethod
    def inactive(cls) -> "MediaStatus":
        return cls()

    @classmethod
    def active(cls, entry: StatusEntry) -> "MediaStatus":
        return cls(entry=entry)

    @classmethod
    def from_entries(cls, entries) -> "MediaStatus":
        if entries:
            return cls.active(entries[0])
        return cls.inactive()

    @property
    def is_active(self) -> bool:
        return self.entry is not None

    @property
    def player_state(self) -> str:
        return self.entry.player_state if self.entry else INACTIVE

    def to_dict(self) -> dict:
        """Serialize for the status query.

        Inactive -> {"playbackState": "Inactive"}.  Active carries currentTime
        and videoLength only when the device reported them.
        """
        result = {"playbackState": self.player_state}
        if self.entry is not None:
            if self.entry.current_time is not None:
                result["currentTime"] = self.entry.current_time
            if self.entry.duration is not None:
                result["videoLength"] = self.entry.duration
        if self.disconnected:
            result["disconnected"] = True
        return result


class StatusCell:
    """Lock guarded MediaStatus holder.

    Single writer (the status thread), any number of readers. ``get`` hands out
    the current immutable value, never something a writer can change later.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._status = MediaStatus.inactive()

    def get(self) -> MediaStatus:
        with self._lock:
            return self._status

    def set(self, status: MediaStatus) -> None:
        with self._lock:
            self._status = status

    def mark_disconnected(self) -> None:
        with self._lock:
            self._status = replace(self._status, disconnected=True)
