"""CLI entry point for Heybot."""

import asyncio
import signal
import sys

import structlog

from heybot.app import build_robot
from heybot.core.config import HeybotConfig
from heybot.exceptions import AdapterError
from heybot.scripts.builtin import DEFAULT_SCRIPTS

logger = structlog.get_logger()

_STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


async def main() -> None:
    try:
        config = HeybotConfig()
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        print("Check HEYBOT_* environment variables or the .env file.", file=sys.stderr)
        sys.exit(1)

    try:
        robot = build_robot(config, scripts=DEFAULT_SCRIPTS)
    except AdapterError as e:
        print(f"Adapter failed: {e}", file=sys.stderr)
        sys.exit(1)

    loop = asyncio.get_running_loop()
    run_task = asyncio.ensure_future(robot.run())
    for sig in _STOP_SIGNALS:
        loop.add_signal_handler(sig, run_task.cancel)

    try:
        await run_task
    except asyncio.CancelledError:
        logger.info("robot_interrupted")
    finally:
        for sig in _STOP_SIGNALS:
            loop.remove_signal_handler(sig)
        await robot.shutdown()
        print("\nShutdown complete.")


def run() -> None:
    asyncio.run(main())
