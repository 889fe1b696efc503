"""
yt-dlp track resolution: turns a URL or search terms into TrackMetadata.
"""
import asyncio
import logging
import time
from typing import Any, Dict, Optional

from yt_dlp import YoutubeDL
from yt_dlp.utils import DownloadError

from harmony.audio_processor import HTTP_UA, pick_best_audio_url
from harmony.exceptions import ResolveError
from harmony.messages import msg
from harmony.metrics import metric_add_time, metric_inc
from harmony.tracks import TrackMetadata
from harmony.utils import truncate

logger = logging.getLogger("Harmony.YTDL")

YTDL_OPTS: Dict[str, Any] = {
    "format": "bestaudio/best",
    "quiet": True,
    "nocheckcertificate": True,
    "ignoreerrors": False,
    "no_warnings": True,
    "default_search": "ytsearch",
    # Avoid playlist extraction for single-track lookups
    "noplaylist": True,
    "socket_timeout": 15,
    "retries": 2,
    "extractor_retries": 2,
    "http_headers": {"User-Agent": HTTP_UA},
}

_ytdl: Optional[YoutubeDL] = None


def get_ytdl() -> YoutubeDL:
    global _ytdl
    if _ytdl is None:
        _ytdl = YoutubeDL(YTDL_OPTS)
    return _ytdl


def search_term(query: str) -> str:
    """URLs are extracted as-is; anything else becomes a first-result search."""
    query = query.strip()
    if query.startswith("http"):
        return query
    return f"ytsearch1:{query}"


def info_to_metadata(info: Dict[str, Any], query: str) -> TrackMetadata:
    """Build TrackMetadata from a yt-dlp info dict (search results included)."""
    if "entries" in info:
        entries = [e for e in (info.get("entries") or []) if e]
        if not entries:
            raise ResolveError(msg("NO_RESULTS", query=truncate(query, 80)))
        info = entries[0]
    stream = pick_best_audio_url(info)
    if not stream:
        raise ResolveError(msg("NO_STREAM_URL"))
    duration = info.get("duration")
    return TrackMetadata(
        title=info.get("title") or query,
        source_url=info.get("webpage_url") or info.get("original_url") or query,
        channel=info.get("uploader") or info.get("channel"),
        duration=float(duration) if duration else None,
        thumbnail=info.get("thumbnail"),
        stream=stream,
    )


async def resolve(query: str, timeout: float = 20.0) -> TrackMetadata:
    """Resolve a URL or search terms with yt-dlp in the default executor."""
    term = search_term(query)
    loop = asyncio.get_running_loop()
    ytdl = get_ytdl()
    metric_inc("resolve_attempts")
    t_start = time.perf_counter()
    logger.debug("Resolve start query=%s timeout=%s", truncate(term, 200), timeout)
    try:
        info = await asyncio.wait_for(
            loop.run_in_executor(None, lambda: ytdl.extract_info(term, download=False)),
            timeout=timeout,
        )
    except asyncio.TimeoutError as e:
        metric_inc("resolve_fail")
        raise ResolveError(msg("RESOLVE_TIMEOUT")) from e
    except DownloadError as e:
        metric_inc("resolve_fail")
        logger.warning("yt-dlp failed for %s: %s", truncate(term, 200), e)
        raise ResolveError(msg("NO_RESULTS", query=truncate(query, 80))) from e
    if not info:
        metric_inc("resolve_fail")
        raise ResolveError(msg("NO_RESULTS", query=truncate(query, 80)))
    try:
        metadata = info_to_metadata(info, query)
    except ResolveError:
        metric_inc("resolve_fail")
        raise
    metric_inc("resolve_success")
    metric_add_time("resolve_time", time.perf_counter() - t_start)
    logger.info("Resolved %s -> %s", truncate(query, 80), truncate(metadata.title, 80))
    return metadata
