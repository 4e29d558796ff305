"""
Task Deadline Bot — Broadcast CLI.

Usage:
    python -m src.cli.notify --message "text" [--login user1 --login user2]
                             [--format html|markdown|markdownv2]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from src.adapters.factory import run_broadcast
from src.config import setup_logging
from src.core.broadcast import ValidationError

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="taskbot-notify",
        description="Send a message to every opted-in Telegram user.",
    )
    parser.add_argument(
        "-m", "--message", nargs="+", required=True,
        help="Message text (several words are joined with spaces)",
    )
    parser.add_argument(
        "-l", "--login", dest="logins", action="append", default=[],
        help="Only send to this login (repeatable)",
    )
    parser.add_argument(
        "--format", "--parse-mode", dest="parse_mode", default=None,
        help="Rich-text mode: plain, html, markdown or markdownv2",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()

    message = " ".join(args.message)
    try:
        result = asyncio.run(run_broadcast(message, args.logins, args.parse_mode))
    except ValidationError as exc:
        logger.error("Invalid broadcast: %s", exc)
        return 1
    except Exception as exc:
        logger.error("Broadcast failed: %s", exc)
        return 1

    if not result.total:
        logger.warning("Broadcast completed with zero recipients.")
    print(f"Sent {result.sent}/{result.total}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
