import asyncio
import logging
import sys

from rich.logging import RichHandler

from poolbook.config import load_config
from poolbook.errors import ConfigurationError, ListenerError
from poolbook.state_machine import MarketListener
from poolbook.ui import run_ui

logger = logging.getLogger("poolbook")


def setup_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


async def run(listener: MarketListener) -> None:
    await listener.start()
    try:
        if not listener.config.refresh_interval:
            await listener.refresh_order_book()
        await run_ui(listener)
    finally:
        await listener.stop()


def main() -> None:
    setup_logging()
    try:
        config = load_config()
        listener = MarketListener(config.listener, config.chains)
    except ConfigurationError as exc:
        logger.error("Invalid configuration: %s", exc)
        sys.exit(2)
    try:
        asyncio.run(run(listener))
    except ListenerError as exc:
        logger.error("Failed to start market listener: %s", exc)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Shutting down market listener")


if __name__ == "__main__":
    main()
