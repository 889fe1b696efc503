"""
Audio source creation and FFmpeg configuration module.
Picks stream URLs out of yt-dlp results and builds discord.py audio sources.
"""

import logging
from typing import Optional, Tuple
from urllib.parse import urlparse, parse_qsl, urlencode, urlunparse
from functools import lru_cache

import discord

from harmony.exceptions import AudioSourceError
from harmony.tracks import TrackHandle, TrackMetadata

logger = logging.getLogger("Harmony.AudioProcessor")

HTTP_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/115.0.0.0 Safari/537.36"
)

# Remote inputs only; local files need none of the reconnect handling
FFMPEG_BEFORE_REMOTE = (
    "-reconnect 1 -reconnect_streamed 1 -reconnect_delay_max 5 "
    "-rw_timeout 15000000 -nostdin "
    f"-headers \"User-Agent: {HTTP_UA}\\r\\n\""
)
FFMPEG_BEFORE_LOCAL = "-nostdin"


@lru_cache(maxsize=256)
def sanitize_stream_url(url: Optional[str]) -> Optional[str]:
    """Strip byte-range hints that make FFmpeg start decoding mid-file."""
    if not url:
        return url
    pr = urlparse(url)
    if not pr.query:
        return url
    q = parse_qsl(pr.query, keep_blank_values=True)
    bad_keys = {"range", "rn", "rbuf"}
    filtered = [(k, v) for (k, v) in q if k.lower() not in bad_keys]
    return urlunparse((pr.scheme, pr.netloc, pr.path, pr.params, urlencode(filtered), pr.fragment))


def pick_best_audio_url(info: dict) -> Optional[str]:
    """Select the best audio-only stream URL from a yt-dlp info dict.

    Audio-capable formats are scored by bitrate with a bonus for Opus and
    AAC and a penalty for HLS. Falls back to the top-level ``url``.
    """
    direct = info.get("url")
    formats = info.get("formats") or []
    candidates = [f for f in formats if f.get("url") and (f.get("acodec") or "none") != "none"]
    if not candidates:
        return sanitize_stream_url(direct)

    def score(f):
        points = 0.0
        try:
            points += float(f.get("abr") or 0) * 12
        except (TypeError, ValueError):
            pass
        acodec = (f.get("acodec") or "").lower()
        if "opus" in acodec:
            points += 1200
        elif "aac" in acodec or "mp4a" in acodec:
            points += 800
        proto = (f.get("protocol") or "").lower()
        if "m3u8" in proto or "hls" in proto:
            points -= 1200
        if f.get("vcodec") in (None, "none"):
            points += 150
        return points

    best = max(candidates, key=score)
    return sanitize_stream_url(best.get("url"))


def get_ffmpeg_options(is_local: bool, ffmpeg_bitrate: str = "128k") -> Tuple[str, str]:
    """Return (before_options, options) for FFmpeg."""
    before = FFMPEG_BEFORE_LOCAL if is_local else FFMPEG_BEFORE_REMOTE
    options = f"-vn -b:a {ffmpeg_bitrate} -loglevel error"
    return before, options


def create_audio_source(source: str, volume: float = 1.0, *, is_local: bool = False,
                        ffmpeg_bitrate: str = "128k") -> discord.PCMVolumeTransformer:
    """Create a volume-adjustable discord.py audio source for a stream URL or file path."""
    before, options = get_ffmpeg_options(is_local, ffmpeg_bitrate)
    if not is_local:
        source = sanitize_stream_url(source) or source
    logger.debug("FFmpeg input=%s local=%s options=%s", source[:120], is_local, options)
    pcm = discord.FFmpegPCMAudio(source, before_options=before, options=options)
    return discord.PCMVolumeTransformer(pcm, volume=volume)


def create_track(metadata: TrackMetadata, ffmpeg_bitrate: str = "128k") -> TrackHandle:
    """Wrap metadata in a handle whose sources are built on demand."""
    if not metadata.stream:
        raise AudioSourceError(f"No playable input for {metadata.title}")

    def factory(volume: float) -> discord.AudioSource:
        return create_audio_source(metadata.stream, volume, is_local=metadata.is_local,
                                   ffmpeg_bitrate=ffmpeg_bitrate)
    return TrackHandle(metadata, factory)
