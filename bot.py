#!/usr/bin/env python3

from __future__ import annotations

import shutil
import sys
from typing import Any, Dict, Optional

import discord
from discord.ext import commands

from harmony import __version__
from harmony.config import load_env_file, load_config, get_token
from harmony.commands import errors as cmd_errors
from harmony.commands import music as cmd_music
from harmony.commands import utility as cmd_utility
from harmony.exceptions import ConfigurationError, VoiceConnectionError
from harmony.logging_setup import setup_logging
from harmony.metrics import metrics_snapshot
from harmony.voice_manager import VoiceManager

try:
    if hasattr(sys.stdout, "reconfigure"):
        sys.stdout.reconfigure(encoding="utf-8")
    if hasattr(sys.stderr, "reconfigure"):
        sys.stderr.reconfigure(encoding="utf-8")
except (AttributeError, ValueError):
    pass

# Load environment variables early
load_env_file()

# Load configuration
CONFIG: Dict[str, Any] = load_config()
PREFIX: str = CONFIG["prefix"]

logger = setup_logging(CONFIG)


class HarmonyBot(commands.Bot):
    """commands.Bot that leaves every voice call before closing."""

    def __init__(self, *args, voice_manager: VoiceManager, **kwargs):
        super().__init__(*args, **kwargs)
        self.voice_manager = voice_manager

    async def close(self):
        await self.voice_manager.shutdown()
        await super().close()


# discord setup
intents = discord.Intents.default()
intents.message_content = True
intents.voice_states = True
voice_manager = VoiceManager()
bot = HarmonyBot(
    command_prefix=PREFIX,
    intents=intents,
    description=f"Harmony Music Bot {__version__}",
    voice_manager=voice_manager,
)


# Events
@bot.event
async def on_ready():
    logger.info("Bot ready: %s (ID: %s) prefix=%s", bot.user, bot.user.id, PREFIX)
    if not shutil.which("ffmpeg"):
        logger.error("CRITICAL: FFmpeg not found in PATH! Audio playback will fail.")


@bot.event
async def on_voice_state_update(member: discord.Member, before, after):
    # Bot was disconnected from voice by someone else
    if bot.user is None or member.id != bot.user.id:
        return
    if before.channel is not None and after.channel is None:
        if voice_manager.get(member.guild.id) is None:
            return
        logger.info("Disconnected from voice externally (guild=%s)", member.guild.id)
        try:
            await voice_manager.remove(member.guild.id)
        except VoiceConnectionError:
            logger.debug("Call already removed (guild=%s)", member.guild.id)


@bot.event
async def on_command_error(ctx, error):
    await cmd_errors.report_command_error(ctx, error)


# Music commands
@bot.command(name="join", help="Joins the voice channel you are currently in")
@commands.guild_only()
async def text_join(ctx):
    await cmd_music.handle_join(voice_manager, ctx)

@bot.command(name="leave", help="Leaves the voice channel you are currently in")
@commands.guild_only()
async def text_leave(ctx):
    await cmd_music.handle_leave(voice_manager, ctx)

@bot.command(name="pause", help="Pauses the current song playing")
@commands.guild_only()
async def text_pause(ctx):
    await cmd_music.handle_pause(voice_manager, ctx)

@bot.command(name="resume", help="Resumes the current song after pausing")
@commands.guild_only()
async def text_resume(ctx):
    await cmd_music.handle_resume(voice_manager, ctx)

@bot.command(name="play", help="Plays a song, or enqueues it if a song is already playing", usage="<url | search terms | attachment>")
@commands.guild_only()
async def text_play(ctx, *, query: Optional[str] = None):
    await cmd_music.handle_play(voice_manager, ctx, query, CONFIG)

@bot.command(name="stop", help="Clears the queue and stops playing the current song. Also leaves the voice channel.")
@commands.guild_only()
async def text_stop(ctx):
    await cmd_music.handle_stop(voice_manager, ctx)

@bot.command(name="queue", help="Gets the current queue")
@commands.guild_only()
async def text_queue(ctx):
    await cmd_music.handle_queue(voice_manager, ctx)

@bot.command(name="skip", help="Skips the song currently playing and goes to the next in queue")
@commands.guild_only()
async def text_skip(ctx):
    await cmd_music.handle_skip(voice_manager, ctx)

@bot.command(name="remove", help="Removes a song in the queue", usage="<number>")
@commands.guild_only()
async def text_remove(ctx, index: Optional[str] = None):
    await cmd_music.handle_remove(voice_manager, ctx, index)

@bot.command(name="loop", help="Enables or disables looping of the current song", usage="[current | disable]")
@commands.guild_only()
async def text_loop(ctx, mode: Optional[str] = None):
    await cmd_music.handle_loop(voice_manager, ctx, mode)

@bot.command(name="volume", help="Sets the volume of the currently playing track", usage="<number 1-100>")
@commands.guild_only()
async def text_volume(ctx, volume: Optional[str] = None):
    await cmd_music.handle_volume(voice_manager, ctx, volume)


# Utility commands
@bot.command(name="ping", help="Check the latency of the bot")
async def text_ping(ctx):
    await cmd_utility.handle_ping(ctx)


def main() -> int:
    try:
        token = get_token()
    except ConfigurationError as e:
        logger.error("Token missing: %s", e)
        return 1
    try:
        # setup_logging already attached handlers to the "discord" logger
        bot.run(token, log_handler=None)
    except discord.LoginFailure:
        logger.error("Login failed: DISCORD_TOKEN was rejected")
        return 1
    finally:
        logger.info("Final metrics: %s", metrics_snapshot())
    return 0


if __name__ == "__main__":
    sys.exit(main())
