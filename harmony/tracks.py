"""
Track handles: metadata plus the play/pause/volume/loop controls of one queued item.
"""
import enum
import logging
import os
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Optional

import discord

from harmony.exceptions import TrackError

logger = logging.getLogger("Harmony.Tracks")


class PlayMode(enum.Enum):
    PLAY = "play"
    PAUSE = "pause"
    STOP = "stop"
    END = "end"


class LoopState(enum.Enum):
    FINITE = "finite"
    INFINITE = "infinite"


@dataclass
class TrackMetadata:
    title: str
    source_url: str
    channel: Optional[str] = None
    duration: Optional[float] = None
    thumbnail: Optional[str] = None
    # what FFmpeg reads: a stream URL or a local file path
    stream: Optional[str] = None
    is_local: bool = False


@dataclass
class TrackState:
    playing: PlayMode
    volume: float
    play_time: float
    loops: LoopState


SourceFactory = Callable[[float], discord.AudioSource]
AfterCallback = Callable[[Optional[Exception]], None]


class TrackHandle:
    """Controls for one track in a guild queue.

    The handle is created when a track is enqueued and only gets an audio
    source once it reaches the head of the queue. Sources are single use, so
    looping creates a fresh one through ``source_factory``.
    """

    def __init__(self, metadata: TrackMetadata, source_factory: SourceFactory) -> None:
        self.uuid = uuid.uuid4()
        self._metadata = metadata
        self._source_factory = source_factory
        self._source: Optional[discord.AudioSource] = None
        self._voice_client = None
        self._mode = PlayMode.PLAY
        self._volume = 1.0
        self._loops = LoopState.FINITE
        self._started_at: Optional[float] = None
        self._paused_at: Optional[float] = None
        self._paused_total = 0.0

    def __repr__(self) -> str:
        return f"<TrackHandle title={self._metadata.title!r} mode={self._mode.value}>"

    def metadata(self) -> TrackMetadata:
        return self._metadata

    @property
    def mode(self) -> PlayMode:
        return self._mode

    @property
    def loops(self) -> LoopState:
        return self._loops

    @property
    def started(self) -> bool:
        return self._started_at is not None

    def start(self, voice_client, after: AfterCallback) -> None:
        """Create a fresh source and hand it to the voice client."""
        self._source = self._source_factory(self._volume)
        self._voice_client = voice_client
        voice_client.play(self._source, after=after)
        self._started_at = time.monotonic()
        self._paused_at = None
        self._paused_total = 0.0
        self._mode = PlayMode.PLAY

    def _require_active(self) -> None:
        if not self.started or self._voice_client is None or self._mode in (PlayMode.STOP, PlayMode.END):
            raise TrackError(f"{self._metadata.title} is not the track playing right now")

    def pause(self) -> None:
        self._require_active()
        if self._mode is PlayMode.PAUSE:
            return
        self._voice_client.pause()
        self._paused_at = time.monotonic()
        self._mode = PlayMode.PAUSE

    def play(self) -> None:
        self._require_active()
        if self._mode is not PlayMode.PAUSE:
            return
        self._voice_client.resume()
        if self._paused_at is not None:
            self._paused_total += time.monotonic() - self._paused_at
            self._paused_at = None
        self._mode = PlayMode.PLAY

    def stop(self) -> None:
        """Stop the track for good; an infinite loop does not bring it back."""
        was_started = self.started and self._mode not in (PlayMode.STOP, PlayMode.END)
        self._mode = PlayMode.STOP
        vc = self._voice_client
        if was_started and vc is not None and (vc.is_playing() or vc.is_paused()):
            vc.stop()

    def mark_ended(self) -> None:
        if self._mode is not PlayMode.STOP:
            self._mode = PlayMode.END

    def release(self) -> None:
        """Delete the uploaded file behind a local track. Call once it left the queue."""
        meta = self._metadata
        if not meta.is_local or not meta.stream:
            return
        try:
            os.remove(meta.stream)
        except FileNotFoundError:
            return
        except OSError as e:
            logger.warning("Could not delete %s: %s", meta.stream, e)
            return
        logger.debug("Deleted local track file %s", meta.stream)

    def set_volume(self, volume: float) -> None:
        if volume < 0:
            raise TrackError("Volume can't be negative")
        self._volume = volume
        if self._source is not None and hasattr(self._source, "volume"):
            self._source.volume = volume

    def enable_loop(self) -> None:
        self._loops = LoopState.INFINITE

    def disable_loop(self) -> None:
        self._loops = LoopState.FINITE

    @property
    def play_time(self) -> float:
        if self._started_at is None:
            return 0.0
        end = self._paused_at if self._paused_at is not None else time.monotonic()
        return max(0.0, end - self._started_at - self._paused_total)

    def get_info(self) -> TrackState:
        return TrackState(
            playing=self._mode,
            volume=self._volume,
            play_time=self.play_time,
            loops=self._loops,
        )
