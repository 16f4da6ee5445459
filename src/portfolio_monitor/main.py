"""
Portfolio Monitor - polls an OKX account and notifies on trades, moves and alerts
"""
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path

import yaml

from portfolio_monitor.config import load_config, load_credentials
from portfolio_monitor.core.application_service import ApplicationService
from portfolio_monitor.exceptions import ConfigurationError
from portfolio_monitor.logger import configure_root_logger

logger = logging.getLogger(__name__)


def setup_signal_handlers(stop_event: asyncio.Event):
    """Set up signal handlers for graceful shutdown"""
    loop = asyncio.get_running_loop()

    def signal_handler(sig: signal.Signals):
        logger.info(f"Received {sig.name} signal, initiating graceful shutdown...")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler, sig)


async def main():
    """Main entry point"""
    config_path = Path(os.getenv('CONFIG_PATH', 'config.yaml'))
    configure_root_logger()

    try:
        config = load_config(config_path if config_path.exists() else None)
        credentials = load_credentials()
    except (ConfigurationError, yaml.YAMLError) as e:
        logger.error(f"Failed to load configuration: {e}")
        sys.exit(1)

    configure_root_logger(config.logging)

    app = ApplicationService(config, credentials)
    stop_event = asyncio.Event()
    setup_signal_handlers(stop_event)

    try:
        await app.start()
        await stop_event.wait()
    except Exception as e:
        logger.error(f"Unhandled exception in main: {e}", exc_info=True)
        await app.stop()
        sys.exit(1)

    await app.stop()


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Application terminated by user")


if __name__ == "__main__":
    run()
