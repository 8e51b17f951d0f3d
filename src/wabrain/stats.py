from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from rich.table import Table

from .state import BotState


def format_uptime(delta: timedelta) -> str:
    """Render a duration as ``"<hours>h <minutes>m"``; negative spans clamp to zero."""
    seconds = max(int(delta.total_seconds()), 0)
    hours, remainder = divmod(seconds, 3600)
    return f"{hours}h {remainder // 60}m"


@dataclass(frozen=True, slots=True)
class BotStats:
    total_messages: int
    total_commands: int
    total_users: int
    total_groups: int
    total_plugins: int
    uptime: timedelta
    start_time: datetime

    @property
    def uptime_formatted(self) -> str:
        return format_uptime(self.uptime)


def collect_stats(
    state: BotState,
    *,
    plugin_count: int,
    now: datetime | None = None,
) -> BotStats:
    current = now or datetime.now(UTC)
    start_time = state.stats.start_time
    if start_time.tzinfo is None:
        start_time = start_time.replace(tzinfo=UTC)
    return BotStats(
        total_messages=state.stats.total_messages,
        total_commands=state.stats.total_commands,
        total_users=len(state.users),
        total_groups=len(state.groups),
        total_plugins=plugin_count,
        uptime=current - start_time,
        start_time=start_time,
    )


def render_stats(stats: BotStats) -> Table:
    table = Table(title="wabrain stats", show_header=False, title_justify="left")
    table.add_column("metric", style="cyan")
    table.add_column("value", style="bold", justify="right")
    table.add_row("messages processed", str(stats.total_messages))
    table.add_row("commands executed", str(stats.total_commands))
    table.add_row("users", str(stats.total_users))
    table.add_row("groups", str(stats.total_groups))
    table.add_row("plugins loaded", str(stats.total_plugins))
    table.add_row("uptime", stats.uptime_formatted)
    table.add_row("started", stats.start_time.isoformat(timespec="seconds"))
    return table
