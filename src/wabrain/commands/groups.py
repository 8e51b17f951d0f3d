from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime

from ..dispatch import CommandContext
from ..normalize import jid_user
from ..plugins import CommandPlugin
from ..state import GroupRecord

EMPTY_TEXT = (
    "📭 No group information available yet.\n\n"
    "The bot registers a group after receiving at least one message in it."
)

# (label, lower bound exclusive); checked in order
ACTIVITY_BANDS: tuple[tuple[str, int], ...] = (
    ("Very active (>50 messages)", 50),
    ("Active (11-50 messages)", 10),
    ("Moderate (1-10 messages)", 0),
)
INACTIVE_BAND = "Inactive (0 messages)"


def _day(value: datetime | None) -> str:
    return value.date().isoformat() if value is not None else "N/A"


def _moment(value: datetime | None) -> str:
    return value.isoformat(timespec="minutes") if value is not None else "N/A"


def render_list(groups: Mapping[str, GroupRecord], *, prefix: str = "#") -> str:
    lines = [f"📋 *REGISTERED GROUPS* ({len(groups)})", "═" * 30, ""]
    for index, (group_id, group) in enumerate(groups.items(), start=1):
        lines.append(f"{index}. 🏠 *{jid_user(group_id)}*")
        lines.append(f"   📊 {group.message_count} messages")
        lines.append(f"   👥 {len(group.participants)} participants")
        lines.append(f"   📅 Last activity: {_day(group.last_activity)}")
        lines.append("")
    lines.append("💡 *More:*")
    lines.append(f"• `{prefix}groups detail` - full details")
    lines.append(f"• `{prefix}groups stats` - aggregate statistics")
    return "\n".join(lines)


def render_detail(groups: Mapping[str, GroupRecord], *, now: datetime) -> str:
    lines = ["📊 *GROUP DETAILS*", "═" * 40, ""]
    for index, (group_id, group) in enumerate(groups.items(), start=1):
        days_active = max((now - group.first_seen).days, 0)
        lines.append(f"🏠 *GROUP {index}*")
        lines.append(f"│ 🆔 ID: {group_id}")
        lines.append(f"│ 💬 Messages: {group.message_count}")
        lines.append(f"│ 👥 Participants: {len(group.participants)}")
        lines.append(f"│ 📅 First seen: {_moment(group.first_seen)}")
        lines.append(f"│ 🕐 Last activity: {_moment(group.last_activity)}")
        lines.append(f"│ 📊 Days active: {days_active}")
        lines.append("")
    return "\n".join(lines)


def activity_distribution(groups: Mapping[str, GroupRecord]) -> dict[str, int]:
    bands = {label: 0 for label, _ in ACTIVITY_BANDS}
    bands[INACTIVE_BAND] = 0
    for group in groups.values():
        for label, floor in ACTIVITY_BANDS:
            if group.message_count > floor:
                bands[label] += 1
                break
        else:
            bands[INACTIVE_BAND] += 1
    return bands


def render_stats(groups: Mapping[str, GroupRecord]) -> str:
    count = len(groups)
    total_messages = sum(group.message_count for group in groups.values())
    total_participants = sum(len(group.participants) for group in groups.values())
    lines = [
        "📊 *GROUP STATISTICS*",
        "═" * 30,
        "",
        "📈 *Summary:*",
        f"• 🏠 Groups: {count}",
        f"• 💬 Messages: {total_messages}",
        f"• 👥 Participants: {total_participants}",
        f"• 📊 Avg messages/group: {round(total_messages / count)}",
        f"• 👥 Avg participants/group: {round(total_participants / count)}",
        "",
    ]
    busiest_id, busiest = max(groups.items(), key=lambda item: item[1].message_count)
    if busiest.message_count > 0:
        lines += [
            "🔥 *Most active group:*",
            f"• 💬 {busiest.message_count} messages",
            f"• 🆔 {busiest_id}",
            "",
        ]
    oldest_id, oldest = min(groups.items(), key=lambda item: item[1].first_seen)
    lines += [
        "👴 *Oldest group:*",
        f"• 📅 {_day(oldest.first_seen)}",
        f"• 🆔 {oldest_id}",
        "",
        "📊 *Activity distribution:*",
    ]
    lines.extend(
        f"• {label}: {amount}"
        for label, amount in activity_distribution(groups).items()
        if amount > 0
    )
    return "\n".join(lines)


async def handle(ctx: CommandContext) -> None:
    groups = ctx.state.groups
    if not groups:
        await ctx.reply(EMPTY_TEXT)
        return
    sub = ctx.args[0].lower() if ctx.args and ctx.args[0] else "list"
    match sub:
        case "detail" | "details":
            text = render_detail(groups, now=datetime.now(UTC))
        case "stats":
            text = render_stats(groups)
        case _:
            text = render_list(groups, prefix=ctx.dispatcher.help_prefix)
    await ctx.reply(text)


PLUGIN = CommandPlugin(
    command="groups",
    handler=handle,
    description="Shows what the bot knows about the groups it is in",
    category="information",
    usage="groups [list|detail|stats]",
)
