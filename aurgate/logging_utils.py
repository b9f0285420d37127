"""Process-wide logging.

The log file receives everything at the requested level, including the CMD
lines from lib.command. The console only shows warnings; operator dialogue
is printed through rich.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Tuple, Union

FILE_HANDLER_NAME = "aurgate-file"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

logger = logging.getLogger(__name__)


def _open_log_file(requested: Path) -> Tuple[logging.FileHandler, Path]:
    try:
        requested.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(requested, encoding="utf-8"), requested
    except OSError:
        fallback = Path.cwd() / requested.name
        return logging.FileHandler(fallback, encoding="utf-8"), fallback


def configure_logging(
    log_path: Union[str, Path],
    level: int = logging.INFO,
    also_console: bool = True,
) -> Path:
    """Attach aurgate's handlers to the root logger once per process.

    An unwritable log location falls back to the same file name in the
    current directory. Returns the file actually written.
    """

    root = logging.getLogger()
    root.setLevel(level)
    for h in root.handlers:
        if h.get_name() == FILE_HANDLER_NAME and isinstance(h, logging.FileHandler):
            return Path(h.baseFilename)

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    requested = Path(log_path)
    file_handler, chosen = _open_log_file(requested)
    file_handler.set_name(FILE_HANDLER_NAME)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    if also_console:
        console = logging.StreamHandler()
        console.setFormatter(fmt)
        console.setLevel(max(level, logging.WARNING))
        root.addHandler(console)

    if chosen != requested:
        logger.warning("Cannot write log file %s, using %s", requested, chosen)
    logger.info("Logging initialized at %s", chosen)
    return chosen
