"""
Track-end notifications posted to the text channel a call was started from.
"""
import logging
from dataclasses import dataclass

import discord

from harmony.embeds import now_playing_embed, queue_ended_embed
from harmony.voice_manager import EventContext, VoiceManager

logger = logging.getLogger("Harmony.Notifier")


async def set_presence(client, status: discord.Status) -> None:
    try:
        await client.change_presence(status=status)
    except (discord.HTTPException, ConnectionError):
        logger.debug("Presence update to %s failed", status, exc_info=True)


@dataclass
class TrackEndNotifier:
    channel_id: int
    client: discord.Client
    manager: VoiceManager
    guild_id: int

    def channel(self):
        return self.client.get_partial_messageable(self.channel_id)

    async def act(self, ctx: EventContext) -> None:
        if not ctx.tracks:
            return
        _state, track = ctx.tracks[0]
        last_title = track.metadata().title
        call = self.manager.get(self.guild_id)

        if call is None:
            await self.channel().send(embed=queue_ended_embed(last_title))
            await set_presence(self.client, discord.Status.idle)
            return

        async with call.lock:
            queue = call.queue.current_queue()

        if not queue:
            await self.channel().send(embed=queue_ended_embed(last_title))
            # play or leave can run while the notice is being sent
            async with call.lock:
                refilled = not call.queue.is_empty()
                if not refilled and self.manager.get(self.guild_id) is call:
                    await self.manager.remove(self.guild_id)
            if refilled:
                logger.info("Queue refilled while ending; staying in voice (guild=%s)", self.guild_id)
                return
            await set_presence(self.client, discord.Status.idle)
            logger.info("Queue ended; left voice (guild=%s)", self.guild_id)
            return

        await self.channel().send(embed=now_playing_embed(queue[0].metadata()))
