"""Logging utilities for dns01-renewer.

The best way to use this module is through `pre_config_setup` and
`post_config_setup`. `pre_config_setup` configures the terminal logger
from the command line before the zone configuration is read.
`post_config_setup` adds the size rotated log file named by the zone
configuration, if any, which receives everything down to DEBUG.

"""
import logging
import logging.handlers
import os
from typing import Optional

from dns01_renewer import constants
from dns01_renewer import errors
from dns01_renewer import util

# Logging format
CLI_FMT = "%(message)s"
FILE_FMT = "%(asctime)s:%(levelname)s:%(name)s:%(message)s"

logger = logging.getLogger(__name__)


def pre_config_setup(verbose_count: int = 0, quiet: bool = False) -> logging.Handler:
    """Setup terminal logging.

    :param int verbose_count: each step lowers the terminal level by 10
    :param bool quiet: only show errors on the terminal

    :returns: the standard error handler
    :rtype: logging.Handler

    """
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(logging.Formatter(CLI_FMT))
    if quiet:
        level = constants.QUIET_LOGGING_LEVEL
    else:
        level = max(constants.DEFAULT_LOGGING_LEVEL - verbose_count * 10, logging.DEBUG)
    stream_handler.setLevel(level)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # send all records to handlers
    root_logger.addHandler(stream_handler)
    logger.debug('Terminal logging level set at %d', level)
    return stream_handler


def post_config_setup(logfile: Optional[str]) -> Optional[logging.Handler]:
    """Add the log file handler once the zone configuration is known.

    :param str logfile: path of the log file, ``None`` to keep logging
        to standard error only

    :returns: the file handler, if one was added

    :raises .errors.Error: if the log file cannot be opened

    """
    if not logfile:
        return None
    handler = setup_log_file_handler(logfile, FILE_FMT)
    logging.getLogger().addHandler(handler)
    logger.debug('Saving debug log to %s', logfile)
    return handler


def setup_log_file_handler(logfile: str, fmt: str) -> logging.Handler:
    """Setup file debug logging.

    :param str logfile: path of the log file
    :param str fmt: logging format string

    :returns: file handler
    :rtype: logging.Handler

    """
    log_dir = os.path.dirname(logfile)
    try:
        if log_dir:
            util.make_or_verify_dir(log_dir, 0o700)
        handler = logging.handlers.RotatingFileHandler(
            logfile, maxBytes=constants.LOG_MAX_BYTES,
            backupCount=constants.LOG_BACKUP_COUNT)
    except OSError as error:
        raise errors.Error(f'Unable to open log file {logfile}: {error}') from error
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(fmt=fmt))
    return handler
