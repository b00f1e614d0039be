# src/taskflow/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then either:
- runs one command given on the command line (`taskflow tree`, `taskflow /stats month`), or
- starts the console REPL.
"""

from __future__ import annotations

import logging
import sys

from ..cli.bootstrap import create_initial_state
from ..cli.commands import registry as command_registry
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def run_once(state, argv: list[str]) -> int:
    line = " ".join(argv).strip()
    if not line.startswith("/"):
        line = "/" + line

    reply = command_registry.handle(state, line, emit=print)
    if reply is not None:
        print(reply)
    return 0


def main(argv: list[str] | None = None) -> int:
    settings = get_settings()
    argv = sys.argv[1:] if argv is None else argv

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    if argv:
        # one-shot output should stay clean
        console_level = max(console_level, logging.WARNING)

    setup_logging(log_dir=settings.log_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)

    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)

    if argv:
        return run_once(state, argv)

    if not settings.console_enabled:
        logger.info("Console disabled and no command given. Nothing to do.")
        return 0

    try:
        run_console_loop(state)
    finally:
        logger.info("Bye.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
