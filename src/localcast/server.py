"""
HTTP front ends: the JSON control API and the media host the device streams from.

Control API (forwards to Api and waits for its reply):
  PUT /api/discover        -- scan the network (blocking)
  GET /api/chromecasts     -- last discovery result
  PUT /api/select          -- {"address": "10.0.0.5"}
  PUT /api/begin           -- {"port": 8009} optional, start casting
  PUT /api/close           -- stop and end the session
  PUT /api/play|pause|stop -- remote control
  PUT /api/seek            -- {"seconds": 42.0}
  PUT /api/cast/<index>    -- start a library file (not supported yet)
  GET /api/status          -- {"playbackState": ..., "currentTime": ..., "videoLength": ...}
"""

import logging
import threading
from concurrent.futures import TimeoutError as ReplyTimeout
from pathlib import Path

from flask import Flask, jsonify, request, send_file

from .api import Action, CastSignal
from .const import CONTENT_TYPE_MP4
from .errors import ApplicationError

log = logging.getLogger(__name__)

# Discovery and begin can take several seconds on the device side
REPLY_TIMEOUT = 30.0

REASON_STATUS = {
    "NoDeviceSelected": 409,
    "DeviceNotFound": 404,
    "NoActiveMedia": 409,
    "SessionActive": 409,
    "State": 409,
    "Application": 400,
    "Unsupported": 501,
    "MediaTool": 400,
    "Transport": 502,
    "Discovery": 502,
    "Protocol": 502,
}


def _respond(payload):
    if payload.get("success"):
        return jsonify(payload), 200
    return jsonify(payload), REASON_STATUS.get(payload.get("reason"), 500)


def _json_body() -> dict:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def create_app(api, reply_timeout=REPLY_TIMEOUT) -> Flask:
    """Flask app exposing ``api`` over HTTP."""
    app = Flask(__name__)

    def forward(action, argument=None):
        try:
            payload = api.call(action, argument, timeout=reply_timeout)
        except ReplyTimeout:
            log.warning("[API] No reply to %s within %ss", action, reply_timeout)
            return jsonify({"success": False, "reason": "Timeout",
                            "error": f"No reply within {reply_timeout}s"}), 504
        return _respond(payload)

    def control(name, value=None):
        try:
            signal = CastSignal.parse(name, value)
        except ApplicationError as e:
            return jsonify({"success": False, "reason": e.reason, "error": str(e)}), 400
        return forward(Action.CONTROL, signal)

    @app.route("/api/discover", methods=["PUT"])
    def discover():
        return forward(Action.DISCOVER, _json_body().get("timeout"))

    @app.route("/api/chromecasts", methods=["GET"])
    def chromecasts():
        return forward(Action.DEVICES)

    @app.route("/api/select", methods=["PUT"])
    def select():
        return forward(Action.SELECT, _json_body().get("address"))

    @app.route("/api/begin", methods=["PUT"])
    def begin():
        return forward(Action.BEGIN, _json_body().get("port"))

    @app.route("/api/close", methods=["PUT"])
    def close():
        return forward(Action.CLOSE)

    @app.route("/api/play", methods=["PUT"])
    def play():
        return control("play")

    @app.route("/api/pause", methods=["PUT"])
    def pause():
        return control("pause")

    @app.route("/api/stop", methods=["PUT"])
    def stop():
        return control("stop")

    @app.route("/api/seek", methods=["PUT"])
    def seek():
        return control("seek", _json_body().get("seconds"))

    @app.route("/api/cast/<int:index>", methods=["PUT"])
    def cast_index(index):
        return control("begin", index)

    @app.route("/api/status", methods=["GET"])
    def status():
        try:
            payload = api.call(Action.STATUS, timeout=reply_timeout)
        except ReplyTimeout:
            return jsonify({"success": False, "reason": "Timeout"}), 504
        if not payload.get("success"):
            return _respond(payload)
        return jsonify(payload["status"]), 200

    return app


def create_media_app(path) -> Flask:
    """Flask app serving one video file at ``/`` with range request support."""
    media_path = Path(path).resolve()
    app = Flask(__name__)

    @app.route("/")
    def media():
        if not media_path.is_file():
            return jsonify({"success": False, "error": f"{media_path.name} not found"}), 404
        return send_file(media_path, mimetype=CONTENT_TYPE_MP4, conditional=True)

    return app


def start_flask_server(app, port, host="0.0.0.0"):
    """Run ``app`` on a daemon thread."""
    thread = threading.Thread(
        target=lambda: app.run(host=host, port=port, debug=False, use_reloader=False, threaded=True),
        name=f"flask-{port}",
        daemon=True,
    )
    thread.start()
    log.info("HTTP server listening on %s:%s", host, port)
    return thread
