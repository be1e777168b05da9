"""Bridge entrypoint. Loads config, wires the engine and runs until signalled."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from dataclasses import dataclass
from pathlib import Path

import yaml
from loguru import logger

from dibridge import __version__
from dibridge.adapters.discord import DiscordAdapter
from dibridge.adapters.irc import IRCClient, IRCListener
from dibridge.config import BridgeOptions, Config, cfg, load_config_with_env
from dibridge.core.errors import BridgeConfigurationError, BridgeError
from dibridge.formatting.emoji import EmojiCache
from dibridge.gateway import MappingStore, MessageRouter
from dibridge.identity import CapabilityNegotiator, IdentityResolver

try:
    import uvloop
except ImportError:
    uvloop = None

# Third-party libraries to intercept and route through loguru
_INTERCEPTED_LIBRARIES = ["pydle", "discord"]


def _intercept_logging(level: str) -> None:
    """Route stdlib logging from pydle and discord.py to loguru."""

    class InterceptHandler(logging.Handler):
        def emit(self, record: logging.LogRecord) -> None:
            try:
                log_level: str | int = logger.level(record.levelname).name
            except ValueError:
                log_level = record.levelno
            logger.patch(
                lambda r: r.update(
                    name=record.name,
                    function=record.funcName,
                    line=record.lineno,
                ),
            ).opt(exception=record.exc_info).log(log_level, "{}", record.getMessage())

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for lib in _INTERCEPTED_LIBRARIES:
        lib_logger = logging.getLogger(lib)
        lib_logger.handlers = [InterceptHandler()]
        lib_logger.propagate = False
        lib_logger.setLevel(level)


def setup_logging(verbose: bool = False) -> None:
    """Configure loguru.
    Level: verbose=True or LOG_LEVEL=DEBUG enables DEBUG; otherwise INFO."""
    level = "INFO"
    if verbose:
        level = "DEBUG"
    else:
        env_level = (os.environ.get("LOG_LEVEL") or "").upper()
        if env_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
            level = env_level

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan> | {message}",
    )
    _intercept_logging(level)


def reload_config(config_path: Path) -> Config:
    """Load config from path and update global cfg. Raises on invalid config; cfg is then unchanged."""
    data = load_config_with_env(config_path)
    cfg.reload(data)
    return cfg


@dataclass
class Bridge:
    """The wired components of one running bridge."""

    router: MessageRouter
    irc: IRCClient
    listener: IRCListener
    discord: DiscordAdapter


def build_bridge(config: Config, options: BridgeOptions) -> Bridge:
    """Wire adapters, identity and router. Raises DuplicateMappingError on a bad mapping set."""
    store = MappingStore()
    store.set_mappings(config.channel_mappings)

    negotiator = CapabilityNegotiator()
    irc_kwargs: dict[str, str] = {}
    if config.sasl_login and config.sasl_password:
        irc_kwargs["sasl_username"] = config.sasl_login
        irc_kwargs["sasl_password"] = config.sasl_password
    irc = IRCClient(
        config.irc_nick,
        negotiator=negotiator,
        throttle_limit=config.irc_throttle_limit,
        **irc_kwargs,
    )

    emoji = EmojiCache()
    discord = DiscordAdapter(config.discord_token, config.guild_id, emoji)
    identity = IdentityResolver(irc)
    router = MessageRouter(
        store,
        identity,
        irc,
        discord,
        emoji=emoji,
        filters=config.filters(),
        avatar_url=config.avatar_url,
        inbox_size=config.inbox_size,
        max_concurrent_sends=config.max_concurrent_sends,
    )
    listener = IRCListener(
        irc,
        router,
        identity,
        negotiator,
        prejoin_commands=config.irc_listener_prejoin_commands,
        show_join_quit=options.show_join_quit,
        debug_presence=options.debug_presence,
    )
    irc.set_handler(listener)
    discord.bind(router)
    return Bridge(router=router, irc=irc, listener=listener, discord=discord)


async def apply_reload(bridge: Bridge, config_path: Path) -> None:
    """Re-read the config file and apply mappings, filters and join/quit announcements."""
    try:
        data = load_config_with_env(config_path)
        candidate = Config(data)
        candidate.validate()
        await bridge.router.set_mappings(candidate.channel_mappings)
    except (BridgeError, yaml.YAMLError) as exc:
        logger.error("Config reload failed; keeping previous settings: {}", exc)
        return
    # The global cfg only follows a reload the router accepted
    cfg.reload(data, validate=False)
    bridge.router.update_filters(cfg.filters())
    bridge.listener.show_join_quit = cfg.show_join_quit
    logger.info("Config reloaded (SIGHUP)")


async def _run(config: Config, options: BridgeOptions, config_path: Path) -> None:
    """Wire and start everything, then wait for SIGINT/SIGTERM and tear down."""
    bridge = build_bridge(config, options)
    loop = asyncio.get_running_loop()
    stop = asyncio.Event()
    reloads: set[asyncio.Task] = set()

    def on_sighup() -> None:
        task = loop.create_task(apply_reload(bridge, config_path))
        reloads.add(task)
        task.add_done_callback(reloads.discard)

    loop.add_signal_handler(signal.SIGHUP, on_sighup)
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    bridge.router.start()
    await bridge.discord.start()
    bridge.irc.start(
        config.irc_server,
        tls=config.irc_tls,
        tls_verify=config.irc_tls_verify(options.dev_mode),
        password=config.irc_password,
    )
    logger.info("Bridge is now running. Press Ctrl-C to exit.")

    await stop.wait()
    logger.info("Shutting down bridge...")
    await bridge.router.close()


def main(argv: list[str] | None = None) -> None:
    """Main entrypoint."""
    parser = argparse.ArgumentParser(prog="dibridge", description="dibridge: Discord <-> IRC bridge")
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--debug-presence", action="store_true", help="Include presence in debug output")
    parser.add_argument("--dev", action="store_true", help="Development mode (relaxed TLS verification)")
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    args = parser.parse_args(argv)

    setup_logging(args.debug)

    if not args.config.exists():
        logger.error("Config file not found: {}", args.config)
        sys.exit(1)

    try:
        config = reload_config(args.config)
    except (BridgeConfigurationError, yaml.YAMLError) as exc:
        logger.error("Could not read config: {}", exc)
        sys.exit(1)
    logger.info("Config loaded from {}", args.config)
    options = config.options(dev_mode=args.dev, debug=args.debug, debug_presence=args.debug_presence)

    # uvloop when installed for better I/O throughput
    run = uvloop.run if uvloop is not None else asyncio.run
    try:
        run(_run(config, options, args.config))
    except BridgeConfigurationError as exc:
        logger.error("Bridge failed to initialise: {}", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
