"""
localcast command line

  discover [timeout]       Find Cast devices, prints JSON
  serve <file> [ip]        Host <file>, run the HTTP control API, optionally
                           start casting to <ip> right away
  daemon <file>            Host <file>, control via JSON lines on stdin
  codecs <file>            Report codecs and Cast compatibility, prints JSON
  remux <input> <output>   Copy streams into a new container
"""

import json
import logging
import math
import sys
import time

from . import discovery, media
from .api import Action, Api
from .caster import Caster
from .config import cfg
from .const import (
    API_PORT,
    DISCOVERY_TIMEOUT,
    FIRST_STATUS_DELAY,
    MEDIA_PORT,
    RECEIVE_TIMEOUT,
    REQUEST_TIMEOUT,
    STATUS_INTERVAL,
)
from .device import CastDevice
from .errors import CastError
from .server import create_app, create_media_app, start_flask_server

log = logging.getLogger(__name__)

USAGE = "Invalid command. Use: discover, serve, daemon, codecs or remux"


def setup_logging():
    """Log to stderr (won't interfere with JSON output on stdout)."""
    level = str(cfg("log", "level", default="INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def build_api() -> Api:
    """Api and Caster wired from config."""
    request_timeout = cfg("device", "request_timeout", default=REQUEST_TIMEOUT)

    def open_device(address):
        return CastDevice.open(address, timeout=request_timeout)

    caster = Caster(
        device_factory=open_device,
        first_status_delay=cfg("status", "first_delay", default=FIRST_STATUS_DELAY),
        status_interval=cfg("status", "interval", default=STATUS_INTERVAL),
        receive_timeout=cfg("status", "receive_timeout", default=RECEIVE_TIMEOUT),
    )
    return Api(
        caster,
        media_port=cfg("media", "port", default=MEDIA_PORT),
        discovery_timeout=cfg("discovery", "timeout", default=DISCOVERY_TIMEOUT),
    )


def start_media_host(path, port):
    start_flask_server(create_media_app(path), port)


def discover_command(timeout):
    try:
        devices = discovery.discover(timeout)
    except CastError as e:
        return {"success": False, "reason": e.reason, "error": str(e)}
    return {"success": True, "devices": [d.to_dict() for d in devices]}


def serve_command(path, address=None):
    api = build_api()
    start_media_host(path, api.media_port)
    api.start()

    app = create_app(api)
    start_flask_server(app, cfg("api", "port", default=API_PORT), host=cfg("api", "host", default="0.0.0.0"))

    result = api.call(Action.DISCOVER)
    if address is None and result.get("devices"):
        address = result["devices"][0]["address"]
    if address is not None:
        for action, argument in ((Action.SELECT, address), (Action.BEGIN, None)):
            result = api.call(action, argument)
            if not result["success"]:
                log.error("Could not start casting to %s: %s", address, result["error"])
                break

    print("Press Ctrl+C to stop", file=sys.stderr)
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        print("\nStopping...", file=sys.stderr)
    finally:
        api.shutdown(timeout=REQUEST_TIMEOUT)


def daemon_command(path):
    from . import daemon

    api = build_api()
    start_media_host(path, api.media_port)
    daemon.main(api)


def codecs_command(path):
    try:
        video, audio, compatible = media.codec_report(path)
    except CastError as e:
        return {"success": False, "reason": e.reason, "error": str(e)}
    return {
        "success": True,
        "video": video,
        "audio": audio,
        "compatible": compatible,
    }


def remux_command(input_path, output_path):
    try:
        media.remux(input_path, output_path)
    except CastError as e:
        return {"success": False, "reason": e.reason, "error": str(e)}
    return {"success": True, "output": output_path}


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    setup_logging()

    if not argv:
        print(json.dumps({"success": False, "error": "No command specified"}))
        return 1

    command = argv[0]

    if command == "discover":
        # Optional timeout argument: discover [timeout]
        timeout = cfg("discovery", "timeout", default=DISCOVERY_TIMEOUT)
        if len(argv) > 1:
            try:
                timeout = float(argv[1])
            except ValueError:
                timeout = None
            if timeout is None or not math.isfinite(timeout) or timeout <= 0:
                print(json.dumps({"success": False, "error": USAGE}))
                return 1
        result = discover_command(timeout)
        print(json.dumps(result))

    elif command == "serve" and len(argv) >= 2:
        serve_command(argv[1], argv[2] if len(argv) > 2 else None)
        return 0

    elif command == "daemon" and len(argv) >= 2:
        daemon_command(argv[1])
        return 0

    elif command == "codecs" and len(argv) >= 2:
        result = codecs_command(argv[1])
        print(json.dumps(result))

    elif command == "remux" and len(argv) >= 3:
        result = remux_command(argv[1], argv[2])
        print(json.dumps(result))

    else:
        print(json.dumps({"success": False, "error": USAGE}))
        return 1

    return 0 if result.get("success") else 1


if __name__ == "__main__":
    sys.exit(main())
