# src/taskflow/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path


# Console floor per taskflow logger (prefix match). Everything still goes to the file.
_CONSOLE_MIN_LEVEL: dict[str, int] = {
    # "TaskStore ready" / per-row debug
    "taskflow.tasks.task_store": logging.WARNING,
    # refusals are already the command reply
    "taskflow.cli.commands": logging.WARNING,
    # REPL start / EOF chatter
    "taskflow.connectors.console_connector": logging.WARNING,
}


class _ConsoleNoiseFilter(logging.Filter):
    """
    Make interactive console usable:
    - allow taskflow logs (import row warnings, repaired time state, tree defects)
    - but raise the floor for loggers whose INFO lines only repeat what the user sees
    - suppress Python warnings (captured as 'py.warnings') unless ERROR+
    - suppress third-party noise unless ERROR+
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name

        if name == "taskflow" or name.startswith("taskflow."):
            for prefix, floor in _CONSOLE_MIN_LEVEL.items():
                if name == prefix or name.startswith(prefix + "."):
                    return record.levelno >= floor
            return True

        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/taskflow",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> None:
    """
    Configure logging with:
    - Console handler: readable + filtered for interactive use
    - File handler: full logs for debugging

    Call this ONCE, very early (before first logger.info).
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "taskflow.log"

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    # Remove any pre-existing handlers to avoid duplicates.
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    fh = logging.FileHandler(str(log_file), encoding="utf-8")
    fh.setLevel(file_level)
    fh.setFormatter(fmt)
    root.addHandler(fh)

    # Route warnings.warn(...) into logging as 'py.warnings'
    logging.captureWarnings(True)
