import re

from loguru import logger

from lynae.plugins.base import Plugin

_FILENAME = re.compile(r"^[a-zA-Z0-9_-]+\.py$")
PROTECTED = ("sf.py",)


class SavePluginFile(Plugin):
    command = re.compile(r"^sf(\s|$)")
    help = ["sf <filename>.py"]
    tags = ["owner"]
    description = "Save a script from quoted message to plugins folder (Owner only)"

    async def execute(self, m, ctx):
        client = ctx.client
        p = ctx.used_prefix
        if not ctx.config.is_owner(m.sender):
            await client.send_message(m.chat, {"text": "❌ This command is only available for bot owners."})
            return
        if not m.quoted:
            await client.send_message(m.chat, {"text": (
                "❌ Please reply to a message containing the script code.\n\n"
                f"Usage: {p}sf <filename>.py\n\n"
                f"Example:\n1. Send your script code to chat\n2. Reply to that message\n3. Type: {p}sf mycommand.py"
            )})
            return
        if not m.args:
            await client.send_message(m.chat, {"text": (
                f"❌ Please specify a filename.\n\nUsage: {p}sf <filename>.py\n\nExample: {p}sf mycommand.py"
            )})
            return

        filename = m.args[0]
        if not filename.endswith(".py"):
            await client.send_message(m.chat, {"text": f"❌ Filename must end with .py extension.\n\nExample: {p}sf mycommand.py"})
            return
        if not _FILENAME.match(filename):
            await client.send_message(m.chat, {"text": (
                "❌ Invalid filename. Only letters, numbers, underscores, and hyphens are allowed.\n\n"
                f"Example: {p}sf my_command.py"
            )})
            return
        if filename in PROTECTED or filename.startswith("_"):
            await client.send_message(m.chat, {"text": f"❌ Cannot overwrite {filename}. Please use a different filename."})
            return

        script = m.quoted_text
        if not script.strip():
            await client.send_message(m.chat, {"text": (
                "❌ Could not extract script content from quoted message.\n\n"
                "Please make sure you're replying to a text message that contains the script code."
            )})
            return

        plugins_dir = ctx.registry.plugins_dir if ctx.registry else ctx.config.resolve_plugins_dir()
        path = plugins_dir / filename
        if path.exists():
            await client.send_message(m.chat, {"text": f"⚠️ File {filename} already exists. It will be overwritten."})

        try:
            path.write_text(script, encoding="utf-8")
        except OSError as e:
            logger.error(f"Error saving script {filename}: {e}")
            await client.send_message(m.chat, {"text": f"❌ Error saving script: {e}"})
            return

        result = ctx.registry.reload(filename) if ctx.registry else None
        status = "🔄 Plugin loaded." if result and result.success else "🔄 Plugin will be picked up by hot-reload."
        if result and not result.success:
            status = f"⚠️ Saved, but loading failed: {result.error}"
        await client.send_message(m.chat, {"text": (
            f"✅ Script saved successfully!\n\n📁 File: {filename}\n📂 Location: {path}\n\n{status}"
        )})
