from __future__ import annotations

from datetime import UTC, datetime

from ..dispatch import CommandContext
from ..plugins import CommandPlugin


def latency_ms(sent_at: datetime, now: datetime | None = None) -> int:
    current = now or datetime.now(UTC)
    return max(int((current - sent_at).total_seconds() * 1000), 0)


async def handle(ctx: CommandContext) -> None:
    latency = latency_ms(ctx.message.timestamp)
    await ctx.reply(f"🏓 Pong!\n⏱️ Latency: {latency}ms")


PLUGIN = CommandPlugin(
    command="ping",
    handler=handle,
    description="Replies with pong and the delivery latency",
    category="utilities",
    usage="ping",
)
