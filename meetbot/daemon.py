#!/usr/bin/env python3
"""
Meeting bot entry point.

Loads the session configuration from the environment, runs one session to
completion and reports the terminal outcome through the webhook.

Usage:
    MEETING_URL=https://meet.google.com/abc-defg-hij BOT_ID=42 meetbot -v
    python -m meetbot --verbose

Signals:
    SIGTERM / SIGINT request a graceful stop (``ApiRequest``); the session
    still goes through Cleanup before the process exits.
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import Optional

from meetbot.config import SessionConfig, load_config
from meetbot.errors import ConfigError, MeetingEndReason
from meetbot.machine import SessionController
from meetbot.session import Session

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool = False):
    """
    Configure logging for container/journald output.

    Format excludes timestamp (the log collector adds its own).
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def create_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Join a Google Meet or Microsoft Teams meeting and record it",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    return parser


def _install_signal_handlers(controller: SessionController) -> list[signal.Signals]:
    loop = asyncio.get_running_loop()
    installed = []

    def signal_handler(sig):
        logger.info(f"Received signal {sig.name}, stopping meeting")
        controller.stop_meeting(MeetingEndReason.ApiRequest)

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, signal_handler, sig)
            installed.append(sig)
        except (NotImplementedError, RuntimeError) as e:
            logger.debug(f"Signal handler for {sig.name} not installed: {e}")
    return installed


async def run_session(
    config: SessionConfig,
    session: Optional[Session] = None,
    controller: Optional[SessionController] = None,
) -> bool:
    """
    Run one session and send the terminal outcome event.

    Args:
        config: Loaded session configuration
        session: Pre-built session (tests inject one with fakes)
        controller: Pre-built controller

    Returns:
        True if the recording ended normally
    """
    session = session or Session.from_config(config)
    controller = controller or SessionController(session)
    installed = _install_signal_handlers(controller)

    logger.info(f"Starting bot {config.bot_id} for {config.meeting_provider} meeting {config.meeting_url}")
    session.events.joining_call()

    try:
        await controller.run()

        if controller.was_recording_successful():
            logger.info(f"Recording finished: {controller.get_end_reason().value}")
            session.events.recording_succeeded()
            return True

        error = controller.get_error()
        reason = controller.get_end_reason()
        message = str(error) if error is not None else f"Session ended with {reason.value if reason else 'no reason'}"
        logger.error(f"Recording failed: {message}")
        session.events.recording_failed(message)
        return False
    finally:
        loop = asyncio.get_running_loop()
        for sig in installed:
            loop.remove_signal_handler(sig)
        await session.close()


def main(args: Optional[list] = None) -> int:
    """
    Main entry point.

    Args:
        args: Command line arguments (default: sys.argv[1:])

    Returns:
        Process exit code: 0 on success, 1 otherwise
    """
    parser = create_argument_parser()
    parsed = parser.parse_args(args)

    configure_logging(parsed.verbose)

    try:
        config = load_config()
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    try:
        succeeded = asyncio.run(run_session(config))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 1
    return 0 if succeeded else 1


if __name__ == "__main__":
    sys.exit(main())
