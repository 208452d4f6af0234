# Copyright Red Hat
#
# defdiff/config.py - Defaults diff configuration
#
# This file is part of the defdiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Defdiff configuration file handling.
"""
from configparser import ConfigParser, Error as ConfigParserError
from dataclasses import dataclass, field
from os.path import exists, expanduser, join
from typing import Tuple
import logging

from defdiff import DEFAULTS_CMD, DefdiffConfigError

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error

#: Base directory for defdiff configuration
DEFDIFF_CFG_DIR = join(expanduser("~"), ".config", "defdiff")

#: Main configuration file path
DEFDIFF_CFG_PATH = join(DEFDIFF_CFG_DIR, "defdiff.conf")

#: Main configuration file section
_DEFDIFF_CFG_GLOBAL = "Global"

_DEFDIFF_CFG_DEFAULTS_COMMAND = "DefaultsCommand"
_DEFDIFF_CFG_TIMEOUT = "Timeout"
_DEFDIFF_CFG_EXCLUDE_DOMAINS = "ExcludeDomains"
_DEFDIFF_CFG_INCLUDE_GLOBAL = "IncludeGlobalDomain"

#: Default timeout in seconds for each call to the defaults utility
DEFAULT_TIMEOUT = 10


@dataclass(frozen=True)
class DefdiffConfig:
    """
    Defdiff configuration.
    """

    #: Program used to list and export domains
    defaults_command: str = DEFAULTS_CMD
    #: Timeout in seconds applied to each call to ``defaults_command``
    timeout: int = DEFAULT_TIMEOUT
    #: Domain name patterns to skip when capturing (glob notation)
    exclude_domains: Tuple[str, ...] = field(default_factory=tuple)
    #: Capture the global domain in addition to the listed domains
    include_global: bool = True

    def __post_init__(self):
        if self.timeout <= 0:
            raise DefdiffConfigError(
                f"Timeout must be a positive number of seconds: {self.timeout}"
            )
        if not self.defaults_command:
            raise DefdiffConfigError("DefaultsCommand cannot be empty")

    @classmethod
    def from_file(cls, config_file: str = DEFDIFF_CFG_PATH) -> "DefdiffConfig":
        """
        Load ``DefdiffConfig`` from an INI-style configuration file located at
        ``config_file``.

        :param config_file: path to defdiff.conf
        :type config_file: ``str``.
        :returns: A ``DefdiffConfig`` instance initialised from ``config_file``.
        :rtype: ``DefdiffConfig``
        :raises DefdiffConfigError: If the file cannot be parsed or contains
                                    invalid values.
        """
        if not exists(config_file):
            _log_debug("No configuration file at '%s': using defaults", config_file)
            return DefdiffConfig()

        _log_debug("Loading configuration from '%s'", config_file)
        cfg = ConfigParser()
        try:
            cfg.read([config_file])
        except ConfigParserError as err:
            raise DefdiffConfigError(
                f"Failed to parse configuration file '{config_file}': {err}"
            ) from err

        if not cfg.has_section(_DEFDIFF_CFG_GLOBAL):
            return DefdiffConfig()

        section = cfg[_DEFDIFF_CFG_GLOBAL]
        kwargs = {}
        if _DEFDIFF_CFG_DEFAULTS_COMMAND in section:
            kwargs["defaults_command"] = section[_DEFDIFF_CFG_DEFAULTS_COMMAND].strip()

        try:
            if _DEFDIFF_CFG_TIMEOUT in section:
                kwargs["timeout"] = section.getint(_DEFDIFF_CFG_TIMEOUT)
            if _DEFDIFF_CFG_INCLUDE_GLOBAL in section:
                kwargs["include_global"] = section.getboolean(
                    _DEFDIFF_CFG_INCLUDE_GLOBAL
                )
        except ValueError as err:
            raise DefdiffConfigError(
                f"Invalid value in configuration file '{config_file}': {err}"
            ) from err

        if _DEFDIFF_CFG_EXCLUDE_DOMAINS in section:
            patterns = section[_DEFDIFF_CFG_EXCLUDE_DOMAINS]
            kwargs["exclude_domains"] = tuple(
                pat.strip() for pat in patterns.split(",") if pat.strip()
            )

        return DefdiffConfig(**kwargs)
