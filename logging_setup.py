"""Console logging configuration for the content runtime."""

import logging

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"


def setup_console_logging(level: int = logging.WARNING) -> None:
    """Install a single console handler on the root logger.

    Call once at startup. Later calls only adjust the level so handlers
    are never duplicated.
    """
    root = logging.getLogger()
    if root.handlers:
        root.setLevel(level)
        return

    root.setLevel(level)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root.addHandler(handler)
