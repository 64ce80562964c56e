"""
Logging for the ``cashkarp`` package.

Every module logs under the ``cashkarp`` logger, so one ``set_level()``
call controls the whole package.  Two levels below DEBUG trace the step
controller:

    DEBUG2   rejected trial steps (step size, error, tolerance)
    DEBUG3   accepted steps

Warnings meant for the user (step clamped, minimum step reached) go
through a per-integrator :class:`RateLimitedLog`.

>>> from cashkarp.logger import get_logger, set_level, DEBUG2
>>> set_level(DEBUG2)
>>> get_logger(__name__).debug2("rejected h=%g", 0.1)
"""

import logging
import sys

ROOT_NAME = "cashkarp"

DEBUG2 = 9
DEBUG3 = 8

for _level, _name in ((DEBUG2, "DEBUG2"), (DEBUG3, "DEBUG3")):
    logging.addLevelName(_level, _name)


class _CashKarpLogger(logging.Logger):
    """``logging.Logger`` with ``debug2``/``debug3`` shortcuts for the trace levels."""

    def debug2(self, msg, *args, **kwargs):
        kwargs.setdefault("stacklevel", 2)
        self.log(DEBUG2, msg, *args, **kwargs)

    def debug3(self, msg, *args, **kwargs):
        kwargs.setdefault("stacklevel", 2)
        self.log(DEBUG3, msg, *args, **kwargs)


logging.setLoggerClass(_CashKarpLogger)


def get_logger(name: str | None = None) -> _CashKarpLogger:
    """Logger *name* (default: the package logger ``cashkarp``)."""
    return logging.getLogger(name or ROOT_NAME)


def set_level(level: int | str = logging.INFO) -> None:
    """Level of the package logger; accepts ``"DEBUG2"``/``"DEBUG3"`` too."""
    get_logger().setLevel(level)


def setup(level: int | str = logging.INFO, stream=None) -> None:
    """Attach one handler to the package logger; later calls do nothing."""
    root = get_logger()
    if root.handlers:
        return
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)-7s %(name)s: %(message)s"))
    root.addHandler(handler)
    set_level(level)


class RateLimitedLog:
    """
    Warning sink with a hard cap on the number of emitted messages.

    Each integrator owns one, so the cap of one trajectory never silences
    another.  After ``max_messages`` warnings a single notice is emitted
    and every further message is dropped.

    Parameters
    ----------
    logger : logging.Logger, optional
        Destination; defaults to the ``cashkarp`` root logger.
    max_messages : int
        Number of messages forwarded before silencing.
    enabled : bool
        When False nothing is ever emitted (``verbose=False``).
    """

    def __init__(self, logger=None, max_messages=10, enabled=True):
        self.logger = logger if logger is not None else get_logger()
        self.max_messages = max_messages
        self.enabled = enabled
        self.count = 0
        self.silenced = False

    def __call__(self, method, msg):
        if not self.enabled:
            return
        if self.count < self.max_messages:
            self.logger.warning("%s::%s(): %s", ROOT_NAME, method, msg)
            self.count += 1
        elif not self.silenced:
            self.logger.warning(
                "%s: too many warnings. Silencing further output", ROOT_NAME,
            )
            self.silenced = True
