import logging
import sys
from pathlib import Path

from kubespace import env_vars

LOG_FORMAT = "%(asctime)s %(levelname)s %(filename)s:%(lineno)d -- %(message)s"

_formatter = logging.Formatter(LOG_FORMAT)


def init_logger(name: str | None = None, file_name: str | None = None) -> logging.Logger:
    """Return a configured logger.

    Output goes to stderr, or to ``KUBESPACE_LOGGING_PATH/<file_name>`` when a
    logging path is set. Repeated calls for the same name reuse the handler.

    Args:
        name: Logger name, usually ``__name__``
        file_name: Log file name, defaults to ``KUBESPACE_LOGGING_FILE_NAME``
    """
    logger = logging.getLogger(name)
    logger.setLevel(env_vars.KUBESPACE_LOGGING_LEVEL.upper())

    if logger.handlers:
        return logger

    log_dir = env_vars.KUBESPACE_LOGGING_PATH
    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(
            Path(log_dir) / (file_name or env_vars.KUBESPACE_LOGGING_FILE_NAME), encoding="utf-8"
        )
    else:
        handler = logging.StreamHandler(sys.stderr)

    handler.setFormatter(_formatter)
    logger.addHandler(handler)
    logger.propagate = False
    return logger
