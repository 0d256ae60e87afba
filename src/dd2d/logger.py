"""> DD2D: logger settings and boilerplate.

.. note:: Always use the old printf style formatting for log messages, not fstrings,
    otherwise compute time may be wasted on string conversions when logging is disabled.

The methods in this module are thin `logging` wrappers around the package logger
`dd2d.logger.LOGGER` and its console handler `dd2d.logger.CONSOLE_LOGGER`.
Packages that build on DD2D can access the same logger object with:

>>> import logging
>>> import dd2d
>>> dd2d_logger = logging.getLogger("dd2d")

Console logs are written at `INFO` level to `sys.stderr` by default:

>>> dd2d_logger.handlers  # doctest: +ELLIPSIS
[<StreamHandler ... (INFO)>]

The examples below redirect the console handler to `sys.stdout`
(`...` stands for a timestamp).

>>> import sys
>>> cli_handler = dd2d_logger.handlers[0]
>>> _ = cli_handler.setStream(sys.stdout)
>>> cli_handler.formatter.color_enabled = False
>>> dd2d_logger.info("iteration %d", 1)  # doctest: +ELLIPSIS
INFO [...] dd2d: iteration 1
>>> cli_handler.setLevel(logging.ERROR)
>>> dd2d_logger.info("not shown")
>>> cli_handler.setLevel(logging.INFO)
>>> cli_handler.formatter.color_enabled = True
>>> _ = cli_handler.setStream(sys.stderr)

Simulation drivers additionally write a log file to the output directory,
see `dd2d.io.logfile_enable`. The console level can be changed temporarily with
`dd2d.io.log_cli_level`.

All DD2D modules that log should `from dd2d import logger as _log`.
The method `quiet_aliens` can be invoked to suppress logging messages from dependencies.

"""

import functools as ft
import logging
import sys

import numpy as np

# NOTE: Do NOT import any dd2d submodules here to avoid cyclical imports.

np.set_printoptions(
    formatter={
        "float_kind": np.format_float_scientific,
        "object": ft.partial(np.array2string, separator=", "),
    },
    linewidth=1000,
)


class ConsoleFormatter(logging.Formatter):
    """Log formatter that uses terminal color codes."""

    def colorfmt(self, code):
        # Color is disabled by setting `.color_enabled` = False.
        if hasattr(self, "color_enabled") and not self.color_enabled:
            return "%(levelname)s [%(asctime)s] %(name)s: %(message)s"
        return (
            f"\033[{code}m%(levelname)s [%(asctime)s]\033[m"
            + " \033[1m%(name)s:\033[m %(message)s"
        )

    def format(self, record):
        format_specs = {
            logging.CRITICAL: self.colorfmt("1;31"),
            logging.ERROR: self.colorfmt("31"),
            logging.INFO: self.colorfmt("32"),
            logging.WARNING: self.colorfmt("33"),
            logging.DEBUG: self.colorfmt("34"),
        }
        self._style._fmt = format_specs.get(record.levelno)
        return super().format(record)


LOGGER = logging.getLogger("dd2d")
# Handlers filter by their own levels, so the logger itself passes everything.
LOGGER.setLevel(logging.DEBUG)
CONSOLE_LOGGER = logging.StreamHandler()
CONSOLE_LOGGER.setFormatter(ConsoleFormatter(datefmt="%H:%M"))
CONSOLE_LOGGER.setLevel(logging.INFO)
LOGGER.addHandler(CONSOLE_LOGGER)


def handle_exception(exec_type, exec_value, exec_traceback):
    # Ignore KeyboardInterrupt so ^C (ctrl + C) works as expected.
    if issubclass(exec_type, KeyboardInterrupt):
        sys.__excepthook__(exec_type, exec_value, exec_traceback)
        return
    LOGGER.exception(
        "uncaught exception", exc_info=(exec_type, exec_value, exec_traceback)
    )


sys.excepthook = handle_exception


def critical(msg, *args, **kwargs):
    """Log a CRITICAL message in DD2D."""
    LOGGER.critical(msg, *args, **kwargs)


def error(msg, *args, **kwargs):
    """Log an ERROR message in DD2D."""
    LOGGER.error(msg, *args, **kwargs)


def warning(msg, *args, **kwargs):
    """Log a WARNING message in DD2D."""
    LOGGER.warning(msg, *args, **kwargs)


def info(msg, *args, **kwargs):
    """Log an INFO message in DD2D."""
    LOGGER.info(msg, *args, **kwargs)


def debug(msg, *args, **kwargs):
    """Log a DEBUG message in DD2D."""
    LOGGER.debug(msg, *args, **kwargs)


def exception(msg, *args, **kwargs):
    """Log a message with level ERROR but retain exception information.

    This function should only be called from an exception handler.

    """
    LOGGER.exception(msg, *args, **kwargs)


def quiet_aliens(root_level=logging.WARNING, level=logging.CRITICAL):
    """Restrict loggers of other packages.

    .. note:: Primarily intended for internal use (test suite/development).

    - `root_level` sets the level for the "root" logger
    - `level` sets the level for everything else (except "dd2d")

    """
    logging.getLogger().setLevel(root_level)
    for name in logging.Logger.manager.loggerDict.keys():
        if name != "dd2d":
            logging.getLogger(name).setLevel(level)
