"""Command groups for Harmony Bot.

Handlers for each command live here so bot.py only registers them.
Every handler takes the VoiceManager (where needed) and the command context.
"""

__all__ = [
    "errors",
    "music",
    "utility",
]
