"""Harmony: a Discord music bot built on discord.py, yt-dlp and FFmpeg."""

__version__ = "1.2.0"
