"""Lynae - Entry point. Starts the transport, dispatcher and plugin watcher."""

import asyncio
import os
import signal
import sys
from pathlib import Path

from loguru import logger

from lynae.bus.queue import MessageBus
from lynae.channels.base import MessagingClient
from lynae.config import load_config
from lynae.handler.dispatcher import Dispatcher
from lynae.plugins.registry import PluginRegistry
from lynae.plugins.watcher import PluginWatcher
from lynae.utils.logger import is_transport_noise, setup_logging


class LynaeBot:
    """Main application: wires bus, plugin registry, dispatcher and transport."""

    def __init__(self, config_path: str = "config.yaml", client: MessagingClient | None = None):
        self.config = load_config(config_path)
        self.bus = MessageBus()
        self.registry = PluginRegistry(self.config.resolve_plugins_dir())
        self.client = client or self._init_client()
        if self.client.bus is None:
            self.client.bus = self.bus
        self.dispatcher = Dispatcher(self.client, self.registry, self.config)
        self.watcher: PluginWatcher | None = None
        self._tasks: list[asyncio.Task] = []
        self._stopped = False

    def _init_client(self) -> MessagingClient:
        from lynae.channels.whatsapp import WhatsAppClient

        return WhatsAppClient(self.config.resolve_auth_dir(), self.bus, bio=self.config.bio)

    async def start(self) -> None:
        logger.info(f"{self.config.bot_name} starting...")

        self.registry.load_all()
        if len(self.registry) == 0:
            logger.warning(f"No plugins found in {self.registry.plugins_dir}")

        self.client.on_logged_out(self._on_logged_out)

        self._tasks.append(asyncio.create_task(self._dispatch_inbound()))

        if self.config.hot_reload:
            self.watcher = PluginWatcher(self.registry, debounce=self.config.watch_debounce_ms / 1000)
            self._tasks.append(asyncio.create_task(self.watcher.run()))

        logger.info(f"Starting {self.client.name} client...")
        self._tasks.append(asyncio.create_task(self._start_client()))

        logger.info(f"{self.config.bot_name} running with {len(self.registry)} plugin(s)")

        try:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        except asyncio.CancelledError:
            pass

    async def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        logger.info(f"{self.config.bot_name} stopping...")
        if self.watcher:
            self.watcher.stop()
        for task in self._tasks:
            task.cancel()
        try:
            await self.client.stop()
        except Exception as e:
            logger.error(f"Error stopping {self.client.name}: {e}")
        logger.info(f"{self.config.bot_name} stopped")

    async def _on_logged_out(self) -> None:
        logger.error(f"Device logged out. Delete {self.config.resolve_auth_dir()} and restart to pair again.")
        await self.stop()

    async def _start_client(self) -> None:
        try:
            await self.client.start()
        except Exception as e:
            logger.error(f"Failed to start {self.client.name}: {e}")

    async def _dispatch_inbound(self) -> None:
        """Feed inbound batches to the dispatcher, one at a time."""
        logger.info("Inbound dispatcher started")
        while True:
            try:
                batch = await self.bus.consume_inbound()
                await self.dispatcher.handle_batch(batch)
            except asyncio.CancelledError:
                break
            except Exception as e:
                if is_transport_noise(e):
                    continue
                logger.error(f"Dispatcher error: {e}")


def _exception_handler(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    exc = context.get("exception")
    if is_transport_noise(exc) or is_transport_noise(context.get("message")):
        return
    loop.default_exception_handler(context)


def _print_main_usage() -> None:
    print("Usage: lynae [run] [config_path]")
    print("       lynae plugins [config_path]")
    print()
    print("  run       start the bot in the foreground (default)")
    print("  plugins   load the plugin directory once and report the result")


def _list_plugins(config_path: str) -> int:
    config = load_config(config_path)
    registry = PluginRegistry(config.resolve_plugins_dir())
    results = registry.load_all()
    for result in results:
        if result.success:
            plugin = result.plugin
            print(f"  ok    {result.source:<12} {', '.join(plugin.help)}  [{', '.join(plugin.tags)}]")
        else:
            print(f"  FAIL  {result.source:<12} {result.error}")
    failed = sum(1 for r in results if not r.success)
    print(f"{len(registry)} loaded, {failed} failed ({registry.plugins_dir})")
    return 1 if failed else 0


def main():
    """CLI entry point."""
    default_config = os.environ.get("LYNAE_CONFIG_PATH", "config.yaml")
    args = sys.argv[1:]

    if args and args[0] in {"-h", "--help", "help"}:
        _print_main_usage()
        return

    if args and args[0] == "plugins":
        setup_logging("WARNING")
        raise SystemExit(_list_plugins(args[1] if len(args) > 1 else default_config))

    if args and args[0] == "run":
        args = args[1:]
    config_path = args[0] if args else default_config

    config = load_config(config_path)
    setup_logging(config.log_level)
    if not Path(config_path).exists():
        logger.info(f"No config at {config_path}, using defaults")

    app = LynaeBot(config_path)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    loop.set_exception_handler(_exception_handler)

    def shutdown():
        logger.info("Shutdown signal received")
        loop.create_task(app.stop())

    if sys.platform != "win32":
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, shutdown)

    try:
        loop.run_until_complete(app.start())
    except KeyboardInterrupt:
        logger.info("Interrupted")
        loop.run_until_complete(app.stop())
    finally:
        loop.close()


if __name__ == "__main__":
    main()
