from __future__ import annotations

import logging
import os
from pathlib import Path

DEFAULT_LOG_PATH = "/var/log/gentoo-autobuilder.log"
FALLBACK_LOG_NAME = "gentoo-autobuilder.log"

# run_cmd lines look like "... INFO gentoo_autobuilder.lib.command: RUN emerge ..."
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S%z"

_CONFIGURED_ATTR = "_autobuilder_log_path"


def _open_file_handler(log_path: str) -> tuple[logging.Handler, str]:
    try:
        Path(os.path.dirname(log_path) or ".").mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(log_path), log_path
    except OSError:
        # read-only /var on a live medium
        fallback = str(Path.cwd() / FALLBACK_LOG_NAME)
        return logging.FileHandler(fallback), fallback


def configure_logging(
    log_path: str = DEFAULT_LOG_PATH,
    level: int = logging.INFO,
    also_console: bool = True,
) -> str:
    """Attach the run log to the root logger and return the file actually used.

    Each record carries a timestamp, level and the emitting module, so the log
    shows which helper ran a command (``RUN``/``DRY-RUN``/``OK``/``Exit`` from
    ``lib.command``), which step was active (``>>> [STEP n/N]`` from
    ``pipeline``), the decisions taken and the rollback outcome from
    ``lib.backup``. Calling it again keeps the first file.
    """

    root = logging.getLogger()
    root.setLevel(level)

    existing = getattr(root, _CONFIGURED_ATTR, None)
    if existing is not None:
        return existing

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)
    file_handler, chosen_path = _open_file_handler(log_path)
    handlers: list[logging.Handler] = [file_handler]
    if also_console:
        handlers.append(logging.StreamHandler())

    for h in handlers:
        h.setFormatter(fmt)
        root.addHandler(h)
    setattr(root, _CONFIGURED_ATTR, chosen_path)

    logging.getLogger(__name__).info("Logging to %s (requested %s)", chosen_path, log_path)
    return chosen_path
