"""
Error types raised by localcast.

Every error carries a short ``reason`` string that the control gateway puts in
failure replies, e.g. ``{"success": false, "reason": "NoActiveMedia", ...}``.
"""


class CastError(Exception):
    """Base class for all localcast errors."""

    reason = "CastError"


class TransportError(CastError):
    """I/O failure talking to the device, over multicast or over HTTP."""

    reason = "Transport"


class DiscoveryError(TransportError):
    """The multicast layer failed during discovery."""

    reason = "Discovery"


class ProtocolError(CastError):
    """Malformed or unexpected device response."""

    reason = "Protocol"


class StateError(CastError):
    """The session is not in a state that allows the call."""

    reason = "State"


class NoDeviceSelectedError(StateError):
    reason = "NoDeviceSelected"


class DeviceNotFoundError(StateError):
    reason = "DeviceNotFound"


class NoActiveMediaError(StateError):
    reason = "NoActiveMedia"


class SessionActiveError(StateError):
    reason = "SessionActive"


class ApplicationError(CastError):
    """Bad input supplied by the caller."""

    reason = "Application"


class UnsupportedCommandError(ApplicationError):
    reason = "Unsupported"


class MediaToolError(ApplicationError):
    """ffmpeg/ffprobe could not be run or rejected the file."""

    reason = "MediaTool"
