import asyncio
import os
import platform
import re
import time

from lynae.plugins.base import Plugin

_STARTED = time.time()


def format_bytes(num: float) -> str:
    if num <= 0:
        return "0 B"
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if num < 1024 or unit == "TB":
            return f"{round(num, 2)} {unit}"
        num /= 1024
    return f"{num} TB"


def format_uptime(seconds: float) -> str:
    seconds = int(seconds)
    days, seconds = divmod(seconds, 86400)
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)
    return f"{days}d {hours}h {minutes}m {seconds}s"


def memory_info() -> tuple[int, int]:
    """Total and available RAM in bytes, read from /proc/meminfo; zeros when unavailable."""
    try:
        with open("/proc/meminfo") as f:
            fields = dict(line.split(":", 1) for line in f if ":" in line)
        total = int(fields["MemTotal"].split()[0]) * 1024
        free = int(fields.get("MemAvailable", fields["MemFree"]).split()[0]) * 1024
        return total, free
    except (OSError, KeyError, ValueError):
        return 0, 0


def cpu_model() -> str:
    try:
        with open("/proc/cpuinfo") as f:
            for line in f:
                if line.startswith("model name"):
                    return line.split(":", 1)[1].strip()
    except OSError:
        pass
    return platform.processor() or "Unknown"


class PingPlugin(Plugin):
    command = re.compile(r"^(ping|p)$", re.IGNORECASE)
    help = ["ping", "p"]
    tags = ["info"]
    description = "Display system information including OS, RAM, CPU, uptime, and bot ping/latency"

    async def execute(self, m, ctx):
        start = time.monotonic()
        total, free = memory_info()
        used = total - free
        percent = f"{used / total * 100:.1f}" if total else "0.0"

        await ctx.client.send_presence_update("composing", m.chat)
        await asyncio.sleep(3)
        await ctx.client.send_presence_update("available", m.chat)
        latency = int((time.monotonic() - start) * 1000)

        text = (
            "╭─「 *SYSTEM INFO* 」\n"
            "│\n"
            "│ *🖥️ Operating System*\n"
            f"│ • OS: {platform.system()} {platform.release()}\n"
            f"│ • Platform: {os.name}\n"
            f"│ • Architecture: {platform.machine()}\n"
            "│\n"
            "│ *💾 Memory (RAM)*\n"
            f"│ • Total: {format_bytes(total)}\n"
            f"│ • Used: {format_bytes(used)} ({percent}%)\n"
            f"│ • Free: {format_bytes(free)}\n"
            "│\n"
            "│ *⚙️ Processor*\n"
            f"│ • Model: {cpu_model()}\n"
            f"│ • Cores: {os.cpu_count() or 1}\n"
            "│\n"
            "│ *⏱️ Uptime*\n"
            f"│ • {format_uptime(time.time() - _STARTED)}\n"
            "│\n"
            "│ *📡 Bot Ping*\n"
            f"│ • {latency}ms\n"
            "│\n"
            "╰─「 *Pong! 🏓* 」"
        )
        await ctx.client.send_message(m.chat, {"text": text})
