"""
localcast - cast local video files to Chromecast devices and control playback.
"""

from .caster import Caster, SessionState
from .commands import CommandDispatcher
from .discovery import DiscoveredDevice, discover
from .errors import (
    ApplicationError,
    CastError,
    DeviceNotFoundError,
    DiscoveryError,
    NoActiveMediaError,
    NoDeviceSelectedError,
    ProtocolError,
    SessionActiveError,
    StateError,
    TransportError,
    UnsupportedCommandError,
)
from .status import MediaStatus, StatusEntry

__version__ = "0.1.0"
