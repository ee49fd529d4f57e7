"""
Cast Daemon - JSON lines control channel for a cast session

Runs as a long-lived subprocess next to the media host, keeping one cast
session open between commands.

Communication is via JSON lines on stdin/stdout:
  Input:  {"cmd": "seek", "seconds": 42.0}
  Output: {"success": true, "signal": "seek"}

Supported commands:
  - discover: Scan the network (optional "timeout")
  - devices: Last discovery result
  - select: Target a discovered device ("ip")
  - begin: Start casting the hosted media (optional "port")
  - play / pause / stop: Remote control
  - seek: Seek to "seconds"
  - cast: Start library file "index" (not supported yet)
  - status: Current playback status
  - close: Stop and end the cast session
  - quit: Close the session and shut the daemon down
"""

import json
import logging
import sys

from .api import Action, CastSignal
from .errors import ApplicationError, CastError

log = logging.getLogger(__name__)

SIGNAL_COMMANDS = ("play", "pause", "stop", "seek", "cast")


def build_request(cmd_data):
    """Map a command dict to (Action, argument)."""
    cmd = cmd_data.get("cmd", "")

    if cmd == "discover":
        return Action.DISCOVER, cmd_data.get("timeout")
    if cmd == "devices":
        return Action.DEVICES, None
    if cmd == "select":
        return Action.SELECT, cmd_data.get("ip")
    if cmd == "begin":
        return Action.BEGIN, cmd_data.get("port")
    if cmd == "close":
        return Action.CLOSE, None
    if cmd == "status":
        return Action.STATUS, None
    if cmd in SIGNAL_COMMANDS:
        if cmd == "cast":
            return Action.CONTROL, CastSignal.parse("begin", cmd_data.get("index"))
        return Action.CONTROL, CastSignal.parse(cmd, cmd_data.get("seconds"))

    raise ApplicationError(f"Unknown command: {cmd}")


def process_command(api, cmd_data):
    """Process a single command and return result."""
    if cmd_data.get("cmd") == "quit":
        result = api.call(Action.CLOSE)
        result["message"] = "Daemon shutting down"
        return result

    try:
        action, argument = build_request(cmd_data)
    except CastError as e:
        return {"success": False, "reason": e.reason, "error": str(e)}
    return api.call(action, argument)


def main(api, stdin=None, stdout=None):
    """Main daemon loop - read JSON commands from stdin, write results to stdout."""
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    log.info("[Daemon] Cast Daemon starting...")
    api.start()

    try:
        for line in stdin:
            line = line.strip()
            if not line:
                continue

            try:
                cmd_data = json.loads(line)
            except json.JSONDecodeError as e:
                print(json.dumps({"success": False, "error": f"Invalid JSON: {e}"}), file=stdout, flush=True)
                continue
            if not isinstance(cmd_data, dict):
                print(json.dumps({"success": False, "error": "Command must be a JSON object"}), file=stdout, flush=True)
                continue

            log.info("[Daemon] Received: %s", cmd_data.get("cmd", "unknown"))
            result = process_command(api, cmd_data)
            print(json.dumps(result), file=stdout, flush=True)

            if cmd_data.get("cmd") == "quit":
                break

    except KeyboardInterrupt:
        log.info("[Daemon] Interrupted")
    finally:
        api.shutdown()
        log.info("[Daemon] Daemon stopped")
