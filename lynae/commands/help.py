import re
from datetime import datetime

from lynae.plugins.base import Plugin


def collect_categories(plugins) -> dict[str, list[str]]:
    """tag -> primary command names, in registry order."""
    categories: dict[str, list[str]] = {}
    for plugin in plugins:
        if not plugin.tags or not plugin.help:
            continue
        for tag in plugin.tags:
            names = categories.setdefault(tag, [])
            if plugin.name not in names:
                names.append(plugin.name)
    return dict(sorted(categories.items()))


def find_plugin(plugins, name: str):
    name = name.lower()
    for plugin in plugins:
        if any(h.split(" ")[0].lower() == name for h in plugin.help):
            return plugin
    return None


def category_menu(category: str, commands: list[str], prefix: str) -> str:
    lines = [f"╭───「 *{category.capitalize()} Menu* 」"]
    lines += [f"│ • {prefix}{cmd}" for cmd in commands]
    lines.append("╰──────────────")
    return "\n".join(lines)


def command_info(plugin, prefix: str) -> str:
    category = plugin.tags[0] if plugin.tags else "unknown"
    aliases = ", ".join(plugin.aliases) or "None"
    return (
        "╭───「 *COMMAND INFO* 」\n"
        "│\n"
        f"│ 📝 *Command:* {prefix}{plugin.name}\n"
        f"│ 📁 *Category:* {category.capitalize()}\n"
        f"│ 💡 *Description:* {plugin.description or 'No description available'}\n"
        f"│ 🔗 *Usage:* {prefix}{plugin.help[0]}\n"
        "│\n"
        f"│ 🖇️ *Aliases:* {aliases}\n"
        "│\n"
        "╰──────────────"
    )


def main_menu(categories: dict[str, list[str]], prefix: str, bot_name: str, push_name: str) -> str:
    now = datetime.now()
    parts = [
        f"╭───「 *{bot_name}* 」\n"
        "│\n"
        f"│ 👋 *Hi {push_name or 'User'}!*\n"
        f"│ 🤖 *Bot Name:* {bot_name}\n"
        f"│ 📅 *Date:* {now.strftime('%A, %B %d, %Y')}\n"
        f"│ ⏰ *Time:* {now.strftime('%I:%M %p').lstrip('0')}\n"
        f"│ 🚀 *Prefix:* [ {prefix} ]\n"
        "│\n"
        "╰────────────────"
    ]
    for category, commands in categories.items():
        parts.append(category_menu(category, commands, prefix).replace(" Menu* 」", "* 」", 1))
    parts.append(f"_Use {prefix}help <command> for details_")
    return "\n\n".join(parts)


class HelpPlugin(Plugin):
    command = re.compile(r"^(help|menu|\?)(\s+.+)?$", re.IGNORECASE)
    help = ["help", "menu", "?"]
    tags = ["main"]
    description = "Display command menu"

    async def execute(self, m, ctx):
        prefix = ctx.used_prefix
        categories = collect_categories(ctx.plugins)
        query = m.args[0].lower() if m.args else ""

        if not query:
            text = main_menu(categories, prefix, ctx.config.bot_name, m.push_name)
            await ctx.client.send_message(m.chat, {"text": text})
            return

        for category, commands in categories.items():
            if category.lower() == query:
                await ctx.client.send_message(m.chat, {"text": category_menu(category, commands, prefix)})
                return

        plugin = find_plugin(ctx.plugins, query)
        if plugin is not None:
            await ctx.client.send_message(m.chat, {"text": command_info(plugin, prefix)})
            return

        await ctx.client.send_message(m.chat, {"text": f'❌ Category or Command "{query}" not found.'})
