"""
Media file helpers built on the ffmpeg command line tools.
"""

import json
import logging
import subprocess
from shutil import which

from .errors import MediaToolError

log = logging.getLogger(__name__)

# (video, audio) codec pairs Cast devices can play. Not every generation plays
# all of them, but pairs missing here never play.
VALID_CODECS = {
    ("h264", "mp3"),
    ("h264", "aac"),
    ("hevc", "mp3"),
    ("hevc", "aac"),
    ("vp8", "vorbis"),
    ("vp9", "vorbis"),
}

TOOL_TIMEOUT = 60


def _run(cmd, timeout=TOOL_TIMEOUT):
    if not which(cmd[0]):
        raise MediaToolError(f"{cmd[0]} not found")
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except subprocess.TimeoutExpired as e:
        raise MediaToolError(f"{cmd[0]} timed out after {timeout}s") from e
    except OSError as e:
        raise MediaToolError(f"Failed to run {cmd[0]}: {e}") from e
    if result.returncode != 0:
        raise MediaToolError(f"{cmd[0]} failed: {result.stderr.strip()}")
    return result


def read_streams(path) -> list:
    """Stream descriptions from ffprobe."""
    result = _run([
        "ffprobe",
        "-v", "error",
        "-show_entries", "stream=index,codec_type,codec_name",
        "-of", "json",
        str(path),
    ])
    try:
        return json.loads(result.stdout).get("streams", [])
    except ValueError as e:
        raise MediaToolError(f"Unreadable ffprobe output for {path}") from e


def read_codecs(path):
    """(video codec, audio codec) of the first video and audio streams, None if absent."""
    video = audio = None
    for stream in read_streams(path):
        if stream.get("codec_type") == "video" and video is None:
            video = stream.get("codec_name")
        elif stream.get("codec_type") == "audio" and audio is None:
            audio = stream.get("codec_name")
    return video, audio


def codec_report(path):
    """(video codec, audio codec, compatible) for ``path``."""
    video, audio = read_codecs(path)
    compatible = (video, audio) in VALID_CODECS
    log.info("%s: video=%s audio=%s compatible=%s", path, video, audio, compatible)
    return video, audio, compatible


def is_cast_compatible(path) -> bool:
    return codec_report(path)[2]


def remux(input_path, output_path):
    """Copy the audio, video and subtitle streams into a new container.

    No re-encoding, e.g. ``remux("media.mkv", "media.mp4")``.
    """
    cmd = [
        "ffmpeg",
        "-hide_banner",
        "-loglevel", "error",
        "-y",
        "-i", str(input_path),
        "-map", "0:v?",
        "-map", "0:a?",
        "-map", "0:s?",
        "-c", "copy",
        str(output_path),
    ]
    log.info("Remuxing %s -> %s", input_path, output_path)
    _run(cmd, timeout=None)
