"""
In-process counters for resolves, playback and voice connections.
Logged once on shutdown; nothing exports them.
"""
from typing import Dict, Union

Number = Union[int, float]

_COUNTERS = (
    "resolve_attempts",
    "resolve_success",
    "resolve_fail",
    "attachment_saved",
    "queue_add",
    "queue_remove",
    "playback_start",
    "playback_finish",
    "playback_error",
    "playback_loop_replay",
    "voice_connect_attempts",
    "voice_connect_success",
    "voice_connect_failures",
    "voice_moves",
)

_METRICS: Dict[str, Number] = dict.fromkeys(_COUNTERS, 0)
_METRICS.update(resolve_time_total_seconds=0.0, resolve_time_count=0)


def metric_inc(name: str, delta: int = 1) -> None:
    _METRICS[name] = _METRICS.get(name, 0) + delta


def metric_add_time(name: str, seconds: float) -> None:
    """Record one duration under `<name>_total_seconds` and `<name>_count`."""
    metric_inc(f"{name}_count")
    key = f"{name}_total_seconds"
    _METRICS[key] = _METRICS.get(key, 0.0) + seconds


def metrics_snapshot() -> Dict[str, Number]:
    """Copy of every counter."""
    return _METRICS.copy()


def get_average_resolve_time() -> float:
    count = _METRICS.get("resolve_time_count") or 0
    if not count:
        return 0.0
    return _METRICS.get("resolve_time_total_seconds", 0.0) / count
