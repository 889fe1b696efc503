import time

from harmony.messages import msg


async def handle_ping(ctx) -> None:
    """Reply, then edit the reply with the round-trip time in milliseconds."""
    before = time.perf_counter()
    message = await ctx.reply(msg("PONG"))
    delay = int((time.perf_counter() - before) * 1000)
    await message.edit(content=msg("PONG_LATENCY", ms=delay))
