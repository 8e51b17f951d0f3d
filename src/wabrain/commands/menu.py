from __future__ import annotations

from collections.abc import Mapping

from ..dispatch import CommandContext
from ..plugins import DEFAULT_CATEGORY, CommandPlugin

CATEGORY_ICONS = {
    "utilities": "▣",
    "communication": "◈",
    "information": "◉",
    "entertainment": "◎",
    "moderation": "◆",
    "admin": "★",
    "system": "⚡",
    "general": "●",
}
DEFAULT_ICON = "●"

EMPTY_TEXT = "```No commands are available right now```"


def category_icon(category: str) -> str:
    return CATEGORY_ICONS.get(category.lower(), DEFAULT_ICON)


def group_by_category(
    commands: Mapping[str, CommandPlugin],
) -> dict[str, list[CommandPlugin]]:
    grouped: dict[str, list[CommandPlugin]] = {}
    for plugin in commands.values():
        grouped.setdefault(plugin.category or DEFAULT_CATEGORY, []).append(plugin)
    return grouped


def render_menu(
    commands: Mapping[str, CommandPlugin],
    *,
    category_filter: str = "",
    prefix: str = "#",
) -> str:
    if not commands:
        return EMPTY_TEXT
    categories = group_by_category(commands)
    needle = category_filter.strip().lower()
    if needle:
        selected = {
            name: plugins
            for name, plugins in categories.items()
            if needle in name.lower()
        }
        if not selected:
            known = " • ".join(categories)
            return f"*Category not found*\n\n*Available categories:*\n{known}"
        categories = selected

    lines = ["*COMMAND MENU*", f"◦ {len(commands)} commands available", ""]
    for category, plugins in categories.items():
        lines.append(f"{category_icon(category)} *{category.upper()}*")
        for plugin in plugins:
            lines.append(f"  ∟ ~{plugin.command}~")
            lines.append(f"     {plugin.description}")
            if plugin.usage and plugin.usage != plugin.command:
                lines.append(f"     ◦ `{prefix}{plugin.usage.splitlines()[0]}`")
            lines.append("")
    lines.append("◈ *INFO*")
    lines.append(f"  ∟ Filter by category: ~{prefix}menu [category]~")
    lines.append(f"  ∟ Example: ~{prefix}menu utilities~")
    lines.append("")
    lines.append("▤ *CATEGORIES*")
    lines.extend(f"  ◦ {category}" for category in categories)
    return "\n".join(lines)


async def handle(ctx: CommandContext) -> None:
    text = render_menu(
        ctx.registry.available_commands(),
        category_filter=" ".join(ctx.args),
        prefix=ctx.dispatcher.help_prefix,
    )
    await ctx.reply(text)


PLUGIN = CommandPlugin(
    command="menu",
    handler=handle,
    description="Lists the available commands with their description and usage",
    category="utilities",
    usage="menu [category]",
)
