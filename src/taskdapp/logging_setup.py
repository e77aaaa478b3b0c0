# src/taskdapp/logging_setup.py

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

# Third-party loggers that are only interesting when something breaks.
_THIRD_PARTY_LEVELS = {
    "web3": logging.INFO,
    "web3.providers": logging.WARNING,
    "web3.manager": logging.WARNING,
    "urllib3": logging.WARNING,
    "aiohttp": logging.WARNING,
    "asyncio": logging.WARNING,
}

# The wallet watcher polls every few seconds.
_CHATTY_OWN_LOGGERS = ("taskdapp.chain.web3_provider", "taskdapp.chain.subscriptions")


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keeps the console readable next to the prompt.

    Our own records pass, except the polling loggers below WARNING.
    Everything else (captured py.warnings included) needs ERROR+.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if not name.startswith("taskdapp."):
            return record.levelno >= logging.ERROR
        if name.startswith(_CHATTY_OWN_LOGGERS):
            return record.levelno >= logging.WARNING
        return True


def setup_logging(
    *,
    log_dir: str | Path = ".local/taskdapp",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    max_bytes: int = 2_000_000,
    backups: int = 3,
) -> Path:
    """
    Console handler on stderr (filtered) plus a rotating taskdapp.log with everything.

    Call once, before the first log line. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "taskdapp.log"

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter("%(asctime)s %(levelname)-7s %(message)s", datefmt="%H:%M:%S"))
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backups, encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    for name, level in _THIRD_PARTY_LEVELS.items():
        logging.getLogger(name).setLevel(level)

    return log_file
