"""CLI host: auto-connect from a profile, then read irc commands from stdin."""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from pathlib import Path

from loguru import logger

from ircagent import __version__
from ircagent.agent import ConsoleUI, LoggingAgent
from ircagent.config import AGENT_HOME, ProfileResolver
from ircagent.extension import IRCExtension


def setup_logging(verbose: bool = False) -> None:
    """Configure loguru. Replace default logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else "INFO",
        format=(
            "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
            "<cyan>{name}</cyan> | {message}"
        ),
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Bridge an agent session to IRC")
    parser.add_argument(
        "--irc-config",
        type=Path,
        default=os.environ.get("IRC_CONFIG") or None,
        help="Path to IRC config file (default: ~/.pi/agent/irc/config.json)",
    )
    parser.add_argument(
        "--irc-profile",
        default=os.environ.get("IRC_PROFILE") or None,
        help="IRC profile name to auto-connect",
    )
    parser.add_argument(
        "--snapshot",
        type=Path,
        default=AGENT_HOME / "irc" / "session.yaml",
        help="Where to persist the session snapshot",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


async def _run(args: argparse.Namespace) -> None:
    ui = ConsoleUI()
    extension = IRCExtension(
        LoggingAgent(),
        ui,
        resolver=ProfileResolver(args.irc_config) if args.irc_config else None,
        snapshot_path=args.snapshot,
    )
    if extension.previous_session is not None:
        prev = extension.previous_session
        logger.info("Previous IRC session: {} on {}:{}", prev.nick, prev.host, prev.port)

    await extension.on_session_start(args.irc_profile)

    loop = asyncio.get_running_loop()
    try:
        while True:
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not line:
                break
            text = line.strip()
            if text.startswith("irc"):
                text = text[3:]
            await extension.handle_command(text)
    except asyncio.CancelledError:
        logger.info("Shutting down")
    finally:
        await extension.on_session_shutdown()


def main() -> None:
    """Main entrypoint."""
    args = build_parser().parse_args()
    setup_logging(args.verbose)
    try:
        asyncio.run(_run(args))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
