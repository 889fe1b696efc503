"""
Voice connection management module.
Keeps one Call (voice client + track queue + event handlers) per guild.
"""

import asyncio
import enum
import logging
import random
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Set, Tuple

from harmony.exceptions import VoiceConnectionError
from harmony.messages import msg
from harmony.metrics import metric_inc
from harmony.queue import TrackQueue
from harmony.tracks import LoopState, PlayMode, TrackHandle, TrackState
from harmony.utils import truncate

logger = logging.getLogger("Harmony.VoiceManager")

_VOICE_CONNECT_MAX_RETRIES = 3
_VOICE_CONNECT_BASE_BACKOFF = 0.5
_VOICE_CONNECT_JITTER = 0.5
_VOICE_CONNECT_TIMEOUT = 20.0


class TrackEvent(enum.Enum):
    END = "end"


@dataclass
class EventContext:
    event: TrackEvent
    tracks: List[Tuple[TrackState, TrackHandle]]


class EventHandler(Protocol):
    async def act(self, ctx: EventContext) -> None: ...


class Call:
    """Active voice session of one guild.

    Starts the head of its queue on the voice client and advances when
    discord.py reports the end of playback. Global event handlers are run
    after the finished track has left the queue and the next one started.
    """

    def __init__(self, guild_id: int, voice_client, *, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self.guild_id = guild_id
        self.voice_client = voice_client
        self.lock: asyncio.Lock = asyncio.Lock()
        self._queue = TrackQueue()
        self._global_events: List[Tuple[TrackEvent, EventHandler]] = []
        self._loop = loop or asyncio.get_running_loop()
        self._closed = False
        self._event_tasks: Set[asyncio.Task] = set()

    @property
    def queue(self) -> TrackQueue:
        return self._queue

    @property
    def closed(self) -> bool:
        return self._closed

    def current_channel(self):
        return getattr(self.voice_client, "channel", None)

    def is_connected(self) -> bool:
        vc = self.voice_client
        return bool(vc is not None and vc.is_connected())

    def add_global_event(self, event: TrackEvent, handler: EventHandler) -> None:
        self._global_events.append((event, handler))

    def remove_all_global_events(self) -> None:
        self._global_events.clear()

    def enqueue(self, handle: TrackHandle) -> TrackHandle:
        """Add a track; it starts right away when the queue was empty."""
        if self._closed or not self.is_connected():
            raise VoiceConnectionError(msg("NOT_IN_VOICE_TO_PLAY"))
        position = self._queue.add(handle)
        if position == 0:
            try:
                self._start(handle)
            except Exception:
                self._queue.pop_finished(handle)
                handle.release()
                raise
        return handle

    async def move_to(self, channel) -> None:
        await self.voice_client.move_to(channel)
        logger.info("Moved to voice channel %s (guild: %s)", getattr(channel, "name", channel), self.guild_id)

    async def leave(self) -> None:
        """Stop everything and disconnect. No end events are sent afterwards."""
        self._closed = True
        self.remove_all_global_events()
        head = self._queue.current()
        self._queue.stop()
        vc = self.voice_client
        if vc is not None and vc.is_connected():
            await vc.disconnect()
        if head is not None:
            head.release()
        logger.info("Left voice (guild: %s)", self.guild_id)

    def _start(self, handle: TrackHandle) -> None:
        handle.start(self.voice_client, after=self._after_for(handle))
        metric_inc("playback_start")
        meta = handle.metadata()
        logger.info("Start playback guild=%s title=%s", self.guild_id, truncate(meta.title, 80))

    def _after_for(self, handle: TrackHandle):
        # discord.py calls this from its audio thread
        def _after(error: Optional[Exception]) -> None:
            if self._loop.is_closed():
                return
            self._loop.call_soon_threadsafe(self._on_track_end, handle, error)
        return _after

    def _on_track_end(self, handle: TrackHandle, error: Optional[Exception]) -> None:
        title = truncate(handle.metadata().title, 80)
        if error is not None:
            metric_inc("playback_error")
            logger.error("Playback error guild=%s title=%s: %s", self.guild_id, title, error)
        else:
            metric_inc("playback_finish")
            logger.info("Finish playback guild=%s title=%s", self.guild_id, title)
        if self._closed:
            handle.release()
            return

        if (
            error is None
            and handle.mode is not PlayMode.STOP
            and handle.loops is LoopState.INFINITE
            and self._queue.current() is handle
            and self.is_connected()
        ):
            try:
                self._start(handle)
                metric_inc("playback_loop_replay")
                return
            except Exception:
                logger.exception("Loop replay failed guild=%s title=%s", self.guild_id, title)

        self._queue.pop_finished(handle)
        handle.mark_ended()
        handle.release()
        self._start_next()
        self._dispatch(EventContext(TrackEvent.END, [(handle.get_info(), handle)]))

    def _start_next(self) -> None:
        while not self._queue.is_empty():
            nxt = self._queue.current()
            if not self.is_connected():
                logger.warning("Voice disconnected; %s tracks left unplayed (guild=%s)", len(self._queue), self.guild_id)
                return
            try:
                self._start(nxt)
                return
            except Exception:
                logger.exception("Could not start next track guild=%s", self.guild_id)
                self._queue.pop_finished(nxt)
                nxt.mark_ended()
                nxt.release()

    def _dispatch(self, ctx: EventContext) -> None:
        for event, handler in list(self._global_events):
            if event is not ctx.event:
                continue
            task = self._loop.create_task(self._run_handler(handler, ctx))
            self._event_tasks.add(task)
            task.add_done_callback(self._event_tasks.discard)

    async def _run_handler(self, handler: EventHandler, ctx: EventContext) -> None:
        try:
            await handler.act(ctx)
        except Exception:
            logger.exception("Track event handler failed guild=%s", self.guild_id)


class VoiceManager:
    """Registry of per-guild calls."""

    def __init__(self) -> None:
        self._calls: Dict[int, Call] = {}

    def get(self, guild_id: int) -> Optional[Call]:
        return self._calls.get(guild_id)

    def __len__(self) -> int:
        return len(self._calls)

    async def join(self, guild, channel) -> Call:
        """Connect to `channel` (or move there) and return the guild's call."""
        call = self._calls.get(guild.id)
        if call is not None and call.is_connected():
            current = call.current_channel()
            if current is None or current.id != channel.id:
                metric_inc("voice_moves")
                await call.move_to(channel)
            return call
        if call is not None:
            # Stale handle from a dropped connection
            self._calls.pop(guild.id, None)
            await call.leave()

        vc = getattr(guild, "voice_client", None)
        if vc is not None and vc.is_connected():
            if vc.channel.id != channel.id:
                metric_inc("voice_moves")
                await vc.move_to(channel)
        else:
            vc = await self._connect(channel)
        logger.info("Connected to voice channel: %s (guild: %s)", channel.name, guild.id)
        call = Call(guild.id, vc)
        self._calls[guild.id] = call
        return call

    async def _connect(self, channel):
        """Connect with retry, backoff and jitter."""
        last_exc: Optional[BaseException] = None
        for attempt in range(1, _VOICE_CONNECT_MAX_RETRIES + 1):
            metric_inc("voice_connect_attempts")
            try:
                vc = await channel.connect(timeout=_VOICE_CONNECT_TIMEOUT)
                metric_inc("voice_connect_success")
                return vc
            except Exception as e:
                last_exc = e
                metric_inc("voice_connect_failures")
                logger.warning("Voice connect attempt %s/%s failed: %s", attempt, _VOICE_CONNECT_MAX_RETRIES, e)
                if attempt >= _VOICE_CONNECT_MAX_RETRIES:
                    break
                backoff = _VOICE_CONNECT_BASE_BACKOFF * (2 ** (attempt - 1))
                backoff += random.uniform(0, _VOICE_CONNECT_JITTER)
                await asyncio.sleep(backoff)
        raise VoiceConnectionError(msg("JOIN_FAILED")) from last_exc

    async def remove(self, guild_id: int) -> None:
        """Leave the guild's voice channel and forget its call."""
        call = self._calls.pop(guild_id, None)
        if call is None:
            raise VoiceConnectionError(msg("NOT_IN_VOICE"))
        await call.leave()

    async def shutdown(self) -> None:
        for guild_id in list(self._calls):
            try:
                await self.remove(guild_id)
            except Exception:
                logger.debug("Leaving guild %s during shutdown failed", guild_id, exc_info=True)
