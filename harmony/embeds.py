"""
Embed builders for command replies and track notifications.
"""
from __future__ import annotations

from typing import List, Optional

import discord

from harmony.messages import msg
from harmony.tracks import TrackHandle, TrackMetadata
from harmony.utils import duration_formatter, format_duration, num_prefix, truncate

NOW_PLAYING_COLOR = discord.Colour.dark_green()
NOTICE_COLOR = discord.Colour.gold()

# Discord rejects field values longer than this
FIELD_LIMIT = 1024


def duration_text(duration: Optional[float]) -> str:
    if not duration:
        return msg("UNKNOWN")
    return duration_formatter(duration) or msg("UNKNOWN")


def now_playing_embed(meta: TrackMetadata, requested_by: Optional[str] = None) -> discord.Embed:
    """Dark green "Now playing" card; `requested_by` is a mention string."""
    embed = discord.Embed(
        title=msg("NOW_PLAYING"),
        url=meta.source_url,
        description=f"```\n{truncate(meta.title, 200)}\n```",
        color=NOW_PLAYING_COLOR,
    )
    embed.add_field(name="• Duration", value=duration_text(meta.duration), inline=True)
    if requested_by:
        embed.add_field(name="• Requested by", value=requested_by, inline=True)
    embed.add_field(name="• Author", value=truncate(meta.channel or msg("UNKNOWN"), 64), inline=True)
    embed.add_field(name="• URL", value=f"[Click]({meta.source_url})", inline=True)
    if meta.thumbnail:
        embed.set_thumbnail(url=meta.thumbnail)
    return embed


def queue_ended_embed(last_title: str) -> discord.Embed:
    return discord.Embed(
        title=msg("QUEUE_ENDED_TITLE"),
        description=msg("QUEUE_ENDED", title=last_title),
        color=NOTICE_COLOR,
    )


def _up_next_lines(upcoming: List[TrackHandle]) -> str:
    if not upcoming:
        return msg("UP_NEXT_EMPTY")
    lines: List[str] = []
    used = 0
    for position, handle in enumerate(upcoming, start=1):
        meta = handle.metadata()
        line = f"**{position})** [{truncate(meta.title, 70)}]({meta.source_url})"
        more = msg("UP_NEXT_MORE", count=len(upcoming) - position + 1)
        if used + len(line) + 1 + len(more) > FIELD_LIMIT:
            lines.append(more)
            break
        lines.append(line)
        used += len(line) + 1
    return "\n".join(lines)


def queue_embed(current: TrackHandle, upcoming: List[TrackHandle]) -> discord.Embed:
    meta = current.metadata()
    elapsed = format_duration(current.play_time)
    total = format_duration(meta.duration) if meta.duration else "?"
    embed = discord.Embed(color=NOTICE_COLOR)
    embed.add_field(
        name="• Now Playing",
        value=f"[{truncate(meta.title, 80)}]({meta.source_url}) [{elapsed} / {total}]",
        inline=False,
    )
    embed.add_field(name="• Up Next", value=_up_next_lines(upcoming), inline=False)
    return embed


def _invoked_by(embed: discord.Embed, author) -> discord.Embed:
    avatar = getattr(author, "display_avatar", None)
    embed.set_footer(
        text=msg("INVOKED_BY", name=author.name),
        icon_url=getattr(avatar, "url", None),
    )
    return embed


def skipped_embed(title: str, author) -> discord.Embed:
    embed = discord.Embed(description=msg("SKIPPED", title=title), color=NOTICE_COLOR)
    return _invoked_by(embed, author)


def removed_embed(title: str, index: int, author) -> discord.Embed:
    embed = discord.Embed(
        title=msg("REMOVED_TITLE"),
        description=msg("REMOVED", title=title, position=num_prefix(index)),
        color=NOTICE_COLOR,
    )
    return _invoked_by(embed, author)


def notice_embed(text: str) -> discord.Embed:
    return discord.Embed(description=text, color=NOTICE_COLOR)
