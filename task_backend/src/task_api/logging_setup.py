from __future__ import annotations

import logging
import sys


class _DriverNoiseFilter(logging.Filter):
    """
    Keep the console readable:
    - allow all task_api logs at the configured level
    - suppress pymongo topology/heartbeat chatter unless WARNING+
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name.startswith("pymongo"):
            return record.levelno >= logging.WARNING
        return True


_HANDLER_NAME = "task_api.console"


def setup_logging(level: str = "INFO") -> None:
    """
    Configure a single console handler on the root logger.

    Safe to call more than once: an existing task_api handler is replaced, while
    handlers installed by others (uvicorn, pytest) are left alone.
    """
    root = logging.getLogger()
    root.setLevel(level)

    for h in list(root.handlers):
        if h.get_name() == _HANDLER_NAME:
            root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.set_name(_HANDLER_NAME)
    ch.setLevel(level)
    ch.setFormatter(fmt)
    ch.addFilter(_DriverNoiseFilter())
    root.addHandler(ch)

    logging.captureWarnings(True)
