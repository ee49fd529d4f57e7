"""
Cast protocol and localcast constants
"""

# Cast v2 control port on the device
CAST_PORT = 8009
# Device description (DIAL/SSDP) HTTP port on the device
DESCRIPTION_PORT = 8008
DESCRIPTION_PATH = "/ssdp/device-desc.xml"

SERVICE_TYPE = "_googlecast._tcp.local."

# Default Media Receiver
APP_MEDIA_RECEIVER = "CC1AD845"

MESSAGE_TYPE = "type"
MEDIA_SESSION_ID = "mediaSessionId"

# Replies that mean the device refused a request
ERROR_REPLY_TYPES = {
    "INVALID_REQUEST",
    "LAUNCH_ERROR",
    "LOAD_FAILED",
    "LOAD_CANCELLED",
    "INVALID_PLAYER_STATE",
}

STREAM_TYPE_NONE = "NONE"

CONTENT_TYPE_MP4 = "video/mp4"

UNKNOWN_NAME = "Unknown"

# Default command timeout
REQUEST_TIMEOUT = 10.0
# Status loop wait bound, shutdown is observed at least this often
RECEIVE_TIMEOUT = 1.0
# mDNS scan window
DISCOVERY_TIMEOUT = 3
# Friendly name lookup per device
DESCRIPTION_TIMEOUT = 3

# First status poll waits for the load to settle, later polls keep progress current
FIRST_STATUS_DELAY = 5.0
STATUS_INTERVAL = 0.5

API_PORT = 8008
MEDIA_PORT = 8009
