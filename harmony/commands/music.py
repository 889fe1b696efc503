import asyncio
import logging
import math
from typing import Any, Dict, Optional

import discord

from harmony.attachments import attachment_metadata, save_attachment
from harmony.audio_processor import create_track
from harmony.embeds import notice_embed, now_playing_embed, queue_embed, removed_embed, skipped_embed
from harmony.exceptions import QueueFullError, VoiceConnectionError
from harmony.messages import msg
from harmony.notifier import TrackEndNotifier, set_presence
from harmony.tracks import LoopState, PlayMode
from harmony.voice_manager import Call, TrackEvent, VoiceManager
from harmony.ytdl_track import resolve

logger = logging.getLogger("Harmony.Commands.Music")

LOOP_MODES = ("current", "disable")


async def handle_join(manager: VoiceManager, ctx) -> Optional[Call]:
    """Connect to the caller's voice channel and hook up track-end notices."""
    voice = getattr(ctx.author, "voice", None)
    channel = getattr(voice, "channel", None)
    if channel is None:
        await ctx.reply(msg("NOT_IN_VOICE"))
        return None
    try:
        call = await manager.join(ctx.guild, channel)
    except (VoiceConnectionError, discord.DiscordException, asyncio.TimeoutError) as e:
        logger.warning("Join failed guild=%s channel=%s: %s", ctx.guild.id, channel.id, e)
        await ctx.send(msg("JOIN_FAILED"))
        return None
    await ctx.send(msg("JOINED", channel=channel.mention))
    async with call.lock:
        call.remove_all_global_events()
        call.add_global_event(
            TrackEvent.END,
            TrackEndNotifier(
                channel_id=ctx.channel.id,
                client=ctx.bot,
                manager=manager,
                guild_id=ctx.guild.id,
            ),
        )
    return call


async def handle_leave(manager: VoiceManager, ctx) -> None:
    call = manager.get(ctx.guild.id)
    if call is None:
        await ctx.reply(msg("NOT_IN_VOICE"))
        return
    channel = call.current_channel()
    try:
        await manager.remove(ctx.guild.id)
    except (VoiceConnectionError, discord.DiscordException) as e:
        await ctx.send(msg("LEAVE_FAILED", error=e))
        return
    if channel is None:
        await ctx.send(msg("LEFT_VOICE"))
        return
    await ctx.send(msg("LEFT", channel_id=channel.id))


async def handle_pause(manager: VoiceManager, ctx) -> None:
    call = manager.get(ctx.guild.id)
    if call is None:
        await ctx.send(msg("NOT_IN_VOICE"))
        return
    async with call.lock:
        current = call.queue.current()
    if current is None:
        await ctx.send(msg("NOTHING_PLAYING"))
        return
    if current.get_info().playing is PlayMode.PAUSE:
        await ctx.send(msg("ALREADY_PAUSED"))
        return
    current.pause()
    await ctx.send(msg("PAUSED", title=current.metadata().title))


async def handle_resume(manager: VoiceManager, ctx) -> None:
    call = manager.get(ctx.guild.id)
    if call is None:
        await ctx.send(msg("NO_MUSIC_TO_RESUME"))
        return
    async with call.lock:
        current = call.queue.current()
    if current is None:
        await ctx.send(msg("NOTHING_PLAYING"))
        return
    if current.get_info().playing is not PlayMode.PAUSE:
        await ctx.send(msg("ALREADY_PLAYING"))
        return
    current.play()
    await ctx.send(msg("RESUMED", title=current.metadata().title))


async def handle_play(manager: VoiceManager, ctx, query: Optional[str], config: Dict[str, Any]) -> None:
    """Play an attachment, a URL or the first search result; enqueue if busy.

    Without an attachment or any text this is the same as resume.
    """
    call = manager.get(ctx.guild.id)
    if call is None or call.closed:
        call = await handle_join(manager, ctx)
        if call is None:
            return

    query = (query or "").strip()
    attachments = getattr(ctx.message, "attachments", None) or []
    if not attachments and not query:
        await handle_resume(manager, ctx)
        return

    limit = int(config["max_queue_size"])
    async with call.lock:
        if len(call.queue) >= limit:
            raise QueueFullError(msg("QUEUE_FULL", limit=limit))

    if attachments:
        attachment = attachments[0]
        path = await save_attachment(attachment, config["download_dir"])
        metadata = attachment_metadata(attachment, path, ctx.message)
    else:
        metadata = await resolve(query, timeout=float(config["resolve_timeout_seconds"]))

    handle = create_track(metadata, config["ffmpeg_bitrate"])
    try:
        async with call.lock:
            # checked again, other plays may have filled it while resolving
            if len(call.queue) >= limit:
                raise QueueFullError(msg("QUEUE_FULL", limit=limit))
            was_idle = call.queue.is_empty()
            call.enqueue(handle)
    except Exception:
        handle.release()
        raise

    if was_idle:
        await set_presence(ctx.bot, discord.Status.online)
        await ctx.send(embed=now_playing_embed(metadata, requested_by=ctx.author.mention))
    else:
        await ctx.send(msg("ENQUEUED", title=metadata.title, author=metadata.channel or msg("UNKNOWN")))


async def handle_stop(manager: VoiceManager, ctx) -> None:
    call = manager.get(ctx.guild.id)
    if call is None:
        await ctx.send(msg("NOT_IN_VOICE_TO_PLAY"))
        return
    async with call.lock:
        dropped = call.queue.stop()
    logger.info("Stop guild=%s dropped=%s", ctx.guild.id, dropped)
    await ctx.send(msg("STOPPED"))


async def handle_queue(manager: VoiceManager, ctx) -> None:
    call = manager.get(ctx.guild.id)
    if call is None:
        await ctx.send(msg("NOT_PLAYING_ANY"))
        return
    async with call.lock:
        current = call.queue.current()
        upcoming = call.queue.upcoming()
    if current is None:
        await ctx.send(msg("QUEUE_EMPTY"))
        return
    await ctx.send(embed=queue_embed(current, upcoming))


async def handle_skip(manager: VoiceManager, ctx) -> None:
    call = manager.get(ctx.guild.id)
    if call is None:
        await ctx.send(msg("NOT_IN_VOICE_TO_PLAY"))
        return
    async with call.lock:
        skipped = call.queue.skip()
    if skipped is None:
        await ctx.send(msg("NOT_PLAYING_ANY"))
        return
    await ctx.send(embed=skipped_embed(skipped.metadata().title, ctx.author))


async def handle_remove(manager: VoiceManager, ctx, raw_index: Optional[str]) -> None:
    """Drop the upcoming track at a 1-based position of the queue listing."""
    try:
        index = int((raw_index or "").strip())
    except ValueError:
        index = 0
    if index < 1:
        await ctx.send(msg("REMOVE_USAGE"))
        return

    call = manager.get(ctx.guild.id)
    if call is None:
        await ctx.send(msg("NOTHING_PLAYING"))
        return
    async with call.lock:
        empty = call.queue.is_empty()
        removed = None if empty else call.queue.dequeue(index)
    if empty:
        await ctx.send(msg("QUEUE_EMPTY"))
        return
    if removed is None:
        await ctx.send(msg("REMOVE_MISSING", index=index))
        return
    await ctx.send(embed=removed_embed(removed.metadata().title, index, ctx.author))


async def handle_loop(manager: VoiceManager, ctx, mode: Optional[str]) -> None:
    """`current` loops the playing track, `disable` stops looping, nothing toggles."""
    call = manager.get(ctx.guild.id)
    current = None
    if call is not None:
        async with call.lock:
            current = call.queue.current()
    if current is None:
        await ctx.send(msg("NOTHING_PLAYING"))
        return

    mode = (mode or "").strip().lower()
    if not mode:
        mode = "current" if current.get_info().loops is LoopState.FINITE else "disable"
    elif mode not in LOOP_MODES:
        await ctx.send(msg("LOOP_USAGE"))
        return

    if mode == "current":
        current.enable_loop()
    else:
        current.disable_loop()
    await ctx.send(embed=notice_embed(msg("LOOP_SET", mode=mode)))


def parse_volume(raw: Optional[str]) -> Optional[float]:
    """Percentage between 1 and 100, or None when it isn't one."""
    try:
        value = float((raw or "").strip())
    except ValueError:
        return None
    if math.isnan(value) or not 1 <= value <= 100:
        return None
    return value


async def handle_volume(manager: VoiceManager, ctx, raw_volume: Optional[str]) -> None:
    volume = parse_volume(raw_volume)
    if volume is None:
        await ctx.send(msg("VOLUME_USAGE"))
        return
    call = manager.get(ctx.guild.id)
    if call is None:
        await ctx.send(msg("NOTHING_PLAYING"))
        return
    async with call.lock:
        current = call.queue.current()
    if current is None:
        await ctx.send(msg("NOTHING_PLAYING"))
        return
    current.set_volume(volume / 100)
    await ctx.send(embed=notice_embed(msg("VOLUME_SET", volume=f"{volume:g}")))
