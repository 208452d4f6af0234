# Copyright Red Hat
#
# defdiff/_defdiff.py - Defaults diff global definitions
#
# This file is part of the defdiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Global definitions for the top-level defdiff package.
"""
from typing import Optional, TextIO, TYPE_CHECKING
import logging
import weakref
import sys

if TYPE_CHECKING:
    from .progress import ProgressBase

_log = logging.getLogger("defdiff")

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error

# Defdiff debugging subsystem mask
DEFDIFF_DEBUG_COMMAND = 1
DEFDIFF_DEBUG_CAPTURE = 2
DEFDIFF_DEBUG_DIFF = 4
DEFDIFF_DEBUG_ALL = DEFDIFF_DEBUG_COMMAND | DEFDIFF_DEBUG_CAPTURE | DEFDIFF_DEBUG_DIFF

# Defdiff debugging subsystem names
DEFDIFF_SUBSYSTEM_COMMAND = "defdiff.command"
DEFDIFF_SUBSYSTEM_CAPTURE = "defdiff.capture"
DEFDIFF_SUBSYSTEM_DIFF = "defdiff.diff"

_DEBUG_MASK_TO_SUBSYSTEM = {
    DEFDIFF_DEBUG_COMMAND: DEFDIFF_SUBSYSTEM_COMMAND,
    DEFDIFF_DEBUG_CAPTURE: DEFDIFF_SUBSYSTEM_CAPTURE,
    DEFDIFF_DEBUG_DIFF: DEFDIFF_SUBSYSTEM_DIFF,
}

_debug_subsystems = set()

# Registry of active progress instances: uses a WeakSet so we don't prevent
# garbage collection.
_active_progress: weakref.WeakSet = weakref.WeakSet()

#: The command line utility used to read and write the defaults database.
DEFAULTS_CMD = "defaults"

#: The domain holding settings shared by all applications.
GLOBAL_DOMAIN = "NSGlobalDomain"


class SubsystemFilter(logging.Filter):
    """
    Filters DEBUG records based on a set of enabled subsystem names.
    Non-DEBUG records or DEBUG records without a 'subsystem' attribute
    are always passed through.
    """

    def __init__(self, name=""):
        super().__init__(name)
        self.enabled_subsystems = set(_debug_subsystems)

    def filter(self, record):
        if record.levelno != logging.DEBUG:
            return True

        if not hasattr(record, "subsystem"):
            return True

        return record.subsystem in self.enabled_subsystems

    def set_debug_subsystems(self, subsystems):
        """Sets the collection of subsystems to allow."""
        self.enabled_subsystems = set(subsystems)


def get_debug_mask():
    """
    Return the current debug mask for the ``defdiff`` package.

    :returns: The current debug mask value
    :rtype: int
    """
    enabled_subsystems = set(_debug_subsystems)
    defdiff_log = logging.getLogger("defdiff")

    for handler in defdiff_log.handlers:
        for f in handler.filters:
            if isinstance(f, SubsystemFilter):
                enabled_subsystems.update(f.enabled_subsystems)

    mask_map = {v: k for k, v in _DEBUG_MASK_TO_SUBSYSTEM.items()}
    mask = 0
    for subsystem_name in enabled_subsystems:
        mask |= mask_map.get(subsystem_name, 0)
    return mask


def set_debug_mask(mask):
    """
    Set the debug mask for the ``defdiff`` package.

    :param mask: the logical OR of the ``DEFDIFF_DEBUG_*``
                 values to log.
    :rtype: None
    """
    # pylint: disable=global-statement
    global _debug_subsystems

    if mask < 0 or mask > DEFDIFF_DEBUG_ALL:
        raise ValueError(f"Invalid defdiff debug mask: {mask}")

    enabled_subsystems = [
        subsystem_name
        for flag, subsystem_name in _DEBUG_MASK_TO_SUBSYSTEM.items()
        if mask & flag
    ]

    defdiff_log = logging.getLogger("defdiff")
    for handler in defdiff_log.handlers:
        for f in handler.filters:
            if isinstance(f, SubsystemFilter):
                f.set_debug_subsystems(enabled_subsystems)

    _debug_subsystems = set(enabled_subsystems)


def register_progress(progress: "ProgressBase"):
    """Register a progress instance for log coordination."""
    _active_progress.add(progress)
    progress.registered = True


def unregister_progress(progress: "ProgressBase"):
    """Unregister a progress instance."""
    _active_progress.discard(progress)
    progress.registered = False


def notify_log_output(stream: TextIO):
    """
    Notify progress instances that log output occurred on stream.

    Called by ProgressAwareHandler after emitting a record.

    :param stream: The stream that received output.
    :type stream: ``TextIO``
    """
    if stream not in (sys.stdout, sys.stderr):
        return
    for progress in list(_active_progress):
        if hasattr(progress, "reset_position"):
            progress.reset_position()


class ProgressAwareHandler(logging.StreamHandler):
    """
    A logging handler that coordinates with active Progress instances.

    After emitting a log record, notifies any Progress instances writing
    to the same stream so they can avoid erasing the log message.
    """

    def __init__(self, stream: Optional[TextIO] = None, **kwargs):
        super().__init__(stream=stream or sys.stderr, **kwargs)

    def emit(self, record):
        try:
            msg = self.format(record)
            self.stream.write(msg + "\n")
            self.stream.flush()
            notify_log_output(self.stream)
        except Exception:  # pylint: disable=broad-exception-caught
            self.handleError(record)


#
# Defdiff exception types
#


class DefdiffError(Exception):
    """
    Base class for defaults diff errors.
    """


class DefdiffCalloutError(DefdiffError):
    """
    An error calling out to an external program, including timeouts.
    """


class DefdiffNotFoundError(DefdiffError):
    """
    A required program, file or directory does not exist.
    """


class DefdiffParseError(DefdiffError):
    """
    A property list could not be decoded.
    """


class DefdiffArgumentError(DefdiffError):
    """
    An invalid argument was passed to a defdiff API call.
    """


class DefdiffConfigError(DefdiffError):
    """
    The configuration file contains an invalid value.
    """


__all__ = [
    "DEFDIFF_DEBUG_COMMAND",
    "DEFDIFF_DEBUG_CAPTURE",
    "DEFDIFF_DEBUG_DIFF",
    "DEFDIFF_DEBUG_ALL",
    "DEFDIFF_SUBSYSTEM_COMMAND",
    "DEFDIFF_SUBSYSTEM_CAPTURE",
    "DEFDIFF_SUBSYSTEM_DIFF",
    "DEFAULTS_CMD",
    "GLOBAL_DOMAIN",
    "SubsystemFilter",
    "get_debug_mask",
    "set_debug_mask",
    "register_progress",
    "unregister_progress",
    "notify_log_output",
    "ProgressAwareHandler",
    "DefdiffError",
    "DefdiffCalloutError",
    "DefdiffNotFoundError",
    "DefdiffParseError",
    "DefdiffArgumentError",
    "DefdiffConfigError",
]
