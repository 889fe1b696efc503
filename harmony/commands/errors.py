import logging

from discord.ext import commands

from harmony.exceptions import HarmonyError
from harmony.messages import msg

logger = logging.getLogger("Harmony.Commands")


async def report_command_error(ctx, error: Exception) -> None:
    """Tell the channel why a command failed; unexpected errors are logged."""
    if isinstance(error, commands.CommandNotFound):
        return
    if isinstance(error, commands.NoPrivateMessage):
        await ctx.send(msg("GUILD_ONLY"))
        return
    if isinstance(error, (commands.MissingRequiredArgument, commands.BadArgument)):
        command = ctx.command
        usage = f"{ctx.clean_prefix}{command.qualified_name} {command.signature}".strip()
        await ctx.send(msg("USAGE", usage=usage))
        return

    original = getattr(error, "original", error)
    if isinstance(original, HarmonyError):
        logger.info("Command %s failed: %s", getattr(ctx.command, "qualified_name", "?"), original)
        await ctx.send(str(original))
        return
    logger.error(
        "Command error in %s: %s",
        getattr(ctx.command, "qualified_name", "?"),
        original,
        exc_info=(type(original), original, original.__traceback__),
    )
    await ctx.send(msg("COMMAND_FAILED"))
