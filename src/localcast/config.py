"""
Configuration loader for localcast.

Loads a single JSON config file.  Search order:
  1. $LOCALCAST_CONFIG
  2. ~/.config/localcast/config.json
  3. config.json                    (CWD, handy for local dev)

Usage:
    from localcast.config import cfg

    api_port      = cfg("api", "port", default=8008)
    scan_timeout  = cfg("discovery", "timeout", default=3)
    status        = cfg("status")  # returns the whole dict
"""

import json
import logging
import os

logger = logging.getLogger(__name__)

_config: dict | None = None

_KNOWN_SECTIONS = ("api", "media", "discovery", "status", "device", "log")


def _search_paths() -> list:
    paths = []
    env_path = os.environ.get("LOCALCAST_CONFIG")
    if env_path:
        paths.append(env_path)
    paths.append(os.path.join(os.path.expanduser("~"), ".config", "localcast", "config.json"))
    paths.append("config.json")
    return paths


def _validate(config: dict, path: str) -> None:
    """Warn about unknown sections and non-positive intervals."""
    for section in config:
        if section not in _KNOWN_SECTIONS:
            logger.warning("Config %s: unknown section '%s'", path, section)
    status = config.get("status") or {}
    for key in ("first_delay", "interval", "receive_timeout"):
        value = status.get(key)
        if value is not None and (not isinstance(value, (int, float)) or value <= 0):
            logger.warning("Config %s: status.%s must be a positive number, got %r", path, key, value)


def load_config() -> dict:
    """Load config from the first JSON file found. Cached after first call."""
    global _config
    if _config is not None:
        return _config

    for path in _search_paths():
        try:
            with open(path) as f:
                _config = json.load(f)
                logger.info("Config loaded from %s", path)
                _validate(_config, path)
                return _config
        except FileNotFoundError:
            continue
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in %s: %s", path, e)
            continue

    logger.debug("No config.json found, using defaults")
    _config = {}
    return _config


def cfg(section: str, key: str | None = None, *, default=None):
    """Read a config value.

    cfg("api")                        -> config["api"]
    cfg("api", "port")                -> config["api"]["port"]
    cfg("media", "port", default=8009) -> config["media"]["port"] or 8009
    """
    config = load_config()
    val = config.get(section)
    if key is None:
        return val if val is not None else default
    if isinstance(val, dict):
        return val.get(key, default)
    return default


def reload_config():
    """Force re-read from disk (for testing or hot-reload)."""
    global _config
    _config = None
    return load_config()
