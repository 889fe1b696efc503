"""
Settings for Harmony Bot.

The Discord token only ever comes from the environment (optionally filled
from a `.env` file next to bot.py). Everything else lives in `config.json`,
which is optional and overlays DEFAULT_CONFIG.
"""
import os
import json
import logging
from typing import Dict, Any, Optional

from harmony.exceptions import ConfigurationError

logger = logging.getLogger("Harmony.Config")

ENV_FILE = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), ".env")
CONFIG_PATH = "config.json"
TOKEN_ENV = "DISCORD_TOKEN"

DEFAULT_CONFIG: Dict[str, Any] = {
    "prefix": "!",
    "max_queue_size": 200,
    "download_dir": "downloads",
    "resolve_timeout_seconds": 20,
    "ffmpeg_bitrate": "128k",
    "trace_logging": False,
    "structured_logging": False,
    "log_file": "Harmony.log",
}


def _parse_env_line(raw: str) -> Optional[tuple]:
    text = raw.strip()
    if not text or text.startswith("#") or "=" not in text:
        return None
    name, _, value = text.partition("=")
    name = name.strip()
    if name.startswith("export "):
        name = name[len("export "):].strip()
    if not name:
        return None
    return name, value.strip().strip('"').strip("'")


def load_env_file(env_path: Optional[str] = None) -> None:
    """Copy KEY=value pairs from a .env file into os.environ.

    Variables that are already set keep their value.
    """
    env_path = env_path or ENV_FILE
    if not os.path.isfile(env_path):
        return
    try:
        with open(env_path, encoding="utf-8") as fh:
            pairs = [p for p in map(_parse_env_line, fh) if p]
    except OSError as e:
        logger.warning("Could not read %s: %s", env_path, e)
        return
    for name, value in pairs:
        if not os.getenv(name):
            os.environ[name] = value


def load_config(path: str = CONFIG_PATH) -> Dict[str, Any]:
    """Return DEFAULT_CONFIG overlaid with `path`, validated.

    A missing or unreadable file means plain defaults.
    """
    merged = dict(DEFAULT_CONFIG)
    if os.path.exists(path):
        try:
            with open(path, encoding="utf-8") as fh:
                overrides = json.load(fh)
            if not isinstance(overrides, dict):
                raise ValueError("top-level value must be an object")
        except (OSError, ValueError) as e:
            logger.warning("Ignoring %s: %s", path, e)
        else:
            if overrides.pop("token", None) is not None:
                logger.warning("%s contains a token; it is ignored. Set %s instead.", path, TOKEN_ENV)
            merged.update(overrides)
    return validate_config(merged)


def _positive_int(cfg: Dict[str, Any], key: str) -> None:
    fallback = DEFAULT_CONFIG[key]
    try:
        value = int(cfg.get(key))
    except (TypeError, ValueError):
        logger.warning("Config %r=%r is not a number; using %s", key, cfg.get(key), fallback)
        cfg[key] = fallback
        return
    if value < 1:
        logger.warning("Config %r=%s must be at least 1; using %s", key, value, fallback)
        value = fallback
    cfg[key] = value


def validate_config(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Repair bad values in place with a warning each; unknown keys stay."""
    _positive_int(cfg, "max_queue_size")
    _positive_int(cfg, "resolve_timeout_seconds")

    prefix = cfg.get("prefix")
    if not isinstance(prefix, str) or not prefix.strip():
        logger.warning("Config 'prefix'=%r is empty; using %r", prefix, DEFAULT_CONFIG["prefix"])
        cfg["prefix"] = DEFAULT_CONFIG["prefix"]

    # FFmpeg wants e.g. "128k"
    bitrate = str(cfg.get("ffmpeg_bitrate") or "")
    if not (bitrate[:-1].isdigit() and bitrate.endswith("k")):
        logger.warning("Config 'ffmpeg_bitrate'=%r is invalid; using %r", cfg.get("ffmpeg_bitrate"), DEFAULT_CONFIG["ffmpeg_bitrate"])
        cfg["ffmpeg_bitrate"] = DEFAULT_CONFIG["ffmpeg_bitrate"]

    if not cfg.get("download_dir"):
        cfg["download_dir"] = DEFAULT_CONFIG["download_dir"]
    return cfg


def get_token() -> str:
    token = os.getenv(TOKEN_ENV)
    if not token:
        raise ConfigurationError(f"{TOKEN_ENV} environment variable is required")
    return token
