"""
Logging setup shared by the CLI, the API server and the poller.
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
CONSOLE_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5


def setup_logger(name: Optional[str] = None,
                 log_file: Optional[Union[str, Path]] = None,
                 level: Optional[str] = None) -> logging.Logger:
    """
    Attach a rotating file handler and a console handler to a logger.

    Args:
        name: Logger name. None configures the root logger, which every
              module logger propagates to.
        log_file: Rotating log file. When omitted only the console is used.
        level: Level name, LOG_LEVEL from the environment by default.

    Returns:
        logging.Logger: The configured logger
    """
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_level = getattr(logging, level_name, logging.INFO)

    target = logging.getLogger(name)
    target.setLevel(log_level)

    # Already configured
    if target.handlers:
        return target

    handlers = []
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        rotating = RotatingFileHandler(log_file, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS)
        rotating.setFormatter(logging.Formatter(FILE_FORMAT))
        handlers.append(rotating)

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    handlers.append(console)

    for handler in handlers:
        handler.setLevel(log_level)
        target.addHandler(handler)
    return target
