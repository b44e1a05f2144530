"""Main entry point for slashkit.

Initializes logging in two phases (defaults then config-driven),
creates the SlashkitBot, and runs the async event loop with graceful
shutdown on SIGTERM/SIGINT or on the owner's /shutdown command.

Key functions:
    main: Async entry point.
    run: Synchronous wrapper for the ``slashkit`` console script.
"""

import asyncio
import signal
import sys

import structlog

from .logging_config import setup_logging


async def main():
    """Main async entry point."""
    # Phase 1: defaults, cache_logger_on_first_use=False
    setup_logging()
    logger = structlog.get_logger("slashkit")

    from . import __version__
    logger.info("slashkit_starting", version=__version__)

    # Import here to ensure logging is configured first
    from .bot import SlashkitBot
    from .config import get_config

    config = get_config()
    config.validate()

    # Phase 2: reconfigure with real config, cache_logger_on_first_use=True
    setup_logging(config)

    bot = SlashkitBot(config)
    await bot.setup()

    loop = asyncio.get_running_loop()

    def handle_shutdown(sig):
        logger.info("shutdown_signal_received", signal=sig.name)
        bot.shutdown_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, handle_shutdown, sig)
        except NotImplementedError:
            # Windows: add_signal_handler not supported.
            if sig == signal.SIGINT:
                signal.signal(
                    signal.SIGINT,
                    lambda s, f: loop.call_soon_threadsafe(handle_shutdown, signal.SIGINT),
                )

    try:
        bot_task = asyncio.create_task(bot.run())
        shutdown_task = asyncio.create_task(bot.shutdown_event.wait())

        done, _ = await asyncio.wait(
            {bot_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED
        )
        shutdown_task.cancel()

        if bot_task in done:
            # The gateway connection ended on its own; surface its error
            bot_task.result()
        else:
            bot_task.cancel()
            try:
                await bot_task
            except asyncio.CancelledError:
                pass

    except Exception as e:
        logger.error("bot_error", error=str(e))
        raise
    finally:
        await bot.stop()
        logger.info("slashkit_stopped")


def run():
    """Synchronous entry point for the ``slashkit`` console script."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
    except SystemExit as e:
        sys.exit(e.code)


if __name__ == "__main__":
    run()
