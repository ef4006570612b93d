#!/usr/bin/env python3
"""Entry point for the PingPong bot service.

Runs with a ROFL-managed signing key by default, or with PRIVATE_KEY from
the environment when started with ``--local``. Stops on SIGINT or SIGTERM.
"""

import argparse
import asyncio
import logging
import os
import signal
import sys

from dotenv import load_dotenv

from pingpong_bot.bot import PingPongBot

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

ENV_HELP = """Environment Variables:
  RPC_URL              - HTTP RPC endpoint (alias: PROVIDER)
  WS_RPC_URL           - WebSocket endpoint (default: derived from RPC_URL)
  CONTRACT_ADDRESS     - PingPong contract address (alias: CONTRACT)
  PRIVATE_KEY          - Signing key (required with --local)
  POLLING_INTERVAL     - Seconds between reconciliation passes (default: 30)
  RETRY_DELAY          - Seconds before restarting after a failure (default: 10)
  CONFIRMATION_TIMEOUT - Seconds to wait for a Pong receipt (default: 120)
  MAX_EVENT_ATTEMPTS   - Failed Pong attempts before an event is dropped (default: 5)
  STATE_FILE           - Checkpoint file (default: state.json)
  LOG_LEVEL            - Logging level (overridden by --log-level)
"""


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger once for the whole process.

    Args:
        level: Logging level name; unknown names fall back to INFO
    """
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="PingPong Bot - answer Ping events with Pong transactions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=ENV_HELP,
    )
    parser.add_argument(
        "--local",
        action="store_true",
        help="Sign with PRIVATE_KEY instead of the ROFL-managed key"
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO)"
    )
    return parser.parse_args()


async def main() -> None:
    """Load configuration, install signal handlers and run the bot.

    Raises:
        SystemExit: If the configuration is missing or invalid
    """
    load_dotenv()
    args = parse_args()

    setup_logging(args.log_level)
    logger.info(f"Starting in {'LOCAL' if args.local else 'ROFL'} mode")

    try:
        bot = PingPongBot.from_env(local_mode=args.local)
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        logger.error("Set RPC_URL and CONTRACT_ADDRESS"
                     f"{' and PRIVATE_KEY' if args.local else ''} (see --help)")
        sys.exit(1)

    loop = asyncio.get_running_loop()

    def handle_signal() -> None:
        # Later signals get default handling
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        bot.stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal)

    await bot.run()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting")
    sys.exit(0)
