"""
Scheduling core entry point.

Only the offline console demo ships here; HTTP route handlers live with the
transport layer and import ``simbooking.core.create_core`` directly.

Usage:
    Console mode: python main.py console [--scenario walkin] [--date 2026-03-14]
"""

import logging
import sys

from simbooking.config import settings

logger = logging.getLogger(__name__)


def _run_console_mode(argv: list[str]) -> None:
    """Start the offline console demo (no database required)."""
    from console_demo import main as console_main

    logger.debug("Starting console demo for %s", settings.business.name)
    console_main(argv)


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "console":
        _run_console_mode(sys.argv[2:])
    else:
        print("Usage: python main.py console [--scenario schedule|walkin|session] [--date YYYY-MM-DD]")
        sys.exit(2)
