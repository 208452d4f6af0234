# Copyright Red Hat
#
# defdiff/snapshot/reader.py - Defaults diff snapshot capture
#
# This file is part of the defdiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Capture snapshots of the defaults database.

Domains are enumerated and exported with the ``defaults`` utility, or read
from a directory of property list files previously written by
``defaults export``. A domain that cannot be exported or decoded is logged
and left out of the snapshot.
"""
from subprocess import run, CalledProcessError, TimeoutExpired
from fnmatch import fnmatch
from datetime import datetime
from typing import Dict, List, Optional, TextIO
import logging
import plistlib
import sys
import os

from defdiff import (
    DEFDIFF_SUBSYSTEM_CAPTURE,
    GLOBAL_DOMAIN,
    DefdiffArgumentError,
    DefdiffCalloutError,
    DefdiffError,
    DefdiffNotFoundError,
    DefdiffParseError,
)
from defdiff.config import DefdiffConfig
from defdiff.progress import ProgressFactory, TermControl

from .store import DomainSettings, Snapshot
from .values import from_plist

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_capture(msg, *args, **kwargs):
    """A wrapper for capture subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": DEFDIFF_SUBSYSTEM_CAPTURE}, **kwargs)


#: File name extension for exported domains in a snapshot directory
PLIST_EXT = ".plist"


def _run_defaults(config: DefdiffConfig, args: List[str]) -> bytes:
    """
    Run the configured defaults utility with ``args`` and return its output.

    :param config: The effective configuration.
    :type config: ``DefdiffConfig``
    :param args: Arguments to pass to the utility.
    :type args: ``List[str]``
    :returns: The standard output of the command.
    :rtype: ``bytes``
    :raises DefdiffNotFoundError: If the utility is not installed.
    :raises DefdiffCalloutError: If the command fails or times out.
    """
    cmd = [config.defaults_command] + args
    _log_debug_capture("Running '%s'", " ".join(cmd))
    try:
        result = run(
            cmd,
            capture_output=True,
            check=True,
            timeout=config.timeout,
        )
    except FileNotFoundError as err:
        raise DefdiffNotFoundError(
            f"{config.defaults_command} command not found: {err}"
        ) from err
    except TimeoutExpired as err:
        raise DefdiffCalloutError(
            f"Timed out after {config.timeout}s running '{' '.join(cmd)}'"
        ) from err
    except CalledProcessError as err:
        stderr = err.stderr.decode("utf8", errors="replace").strip()
        raise DefdiffCalloutError(
            f"'{' '.join(cmd)}' failed (status={err.returncode}): {stderr}"
        ) from err
    return result.stdout


def _is_excluded(domain: str, config: DefdiffConfig) -> bool:
    return any(fnmatch(domain, pattern) for pattern in config.exclude_domains)


def list_domains(config: Optional[DefdiffConfig] = None) -> List[str]:
    """
    Return the list of domains to capture.

    :param config: The effective configuration.
    :type config: ``Optional[DefdiffConfig]``
    :returns: Domain names in the order reported by the defaults utility,
              preceded by the global domain if enabled, with excluded
              domains removed.
    :rtype: ``List[str]``
    """
    config = config or DefdiffConfig()
    output = _run_defaults(config, ["domains"])
    try:
        listing = output.decode("utf8")
    except UnicodeDecodeError as err:
        raise DefdiffParseError(f"Malformed domain list: {err}") from err

    domains = [domain.strip() for domain in listing.split(",") if domain.strip()]
    if config.include_global and GLOBAL_DOMAIN not in domains:
        domains.insert(0, GLOBAL_DOMAIN)

    excluded = [domain for domain in domains if _is_excluded(domain, config)]
    if excluded:
        _log_debug_capture("Excluding domains: %s", ", ".join(excluded))

    return [domain for domain in domains if domain not in excluded]


def export_domain(domain: str, config: Optional[DefdiffConfig] = None) -> bytes:
    """
    Export the settings of ``domain`` as property list data.

    :param domain: The domain to export.
    :type domain: ``str``
    :param config: The effective configuration.
    :type config: ``Optional[DefdiffConfig]``
    :returns: The exported property list.
    :rtype: ``bytes``
    """
    config = config or DefdiffConfig()
    return _run_defaults(config, ["export", domain, "-"])


def parse_domain_plist(domain: str, data: bytes) -> DomainSettings:
    """
    Decode exported property list ``data`` into ``DomainSettings``.

    A property list whose root object is not a dictionary produces an
    empty ``DomainSettings``.

    :param domain: The domain the data belongs to.
    :type domain: ``str``
    :param data: XML or binary property list data.
    :type data: ``bytes``
    :returns: The settings of the domain.
    :rtype: ``DomainSettings``
    :raises DefdiffParseError: If ``data`` is not a valid property list.
    """
    try:
        root = plistlib.loads(data)
    except (plistlib.InvalidFileException, ValueError, TypeError) as err:
        raise DefdiffParseError(
            f"Failed to parse property list for domain '{domain}': {err}"
        ) from err

    if not isinstance(root, dict):
        _log_debug_capture(
            "Domain '%s' root is %s, not a dictionary", domain, type(root).__name__
        )
        return DomainSettings()

    return DomainSettings({str(key): from_plist(val) for key, val in root.items()})


def capture_snapshot(
    config: Optional[DefdiffConfig] = None,
    quiet: bool = False,
    term_control: Optional[TermControl] = None,
    term_stream: Optional[TextIO] = None,
) -> Snapshot:
    """
    Capture a snapshot of every domain reported by the defaults utility.

    Domains that fail to export or parse are skipped.

    :param config: The effective configuration.
    :type config: ``Optional[DefdiffConfig]``
    :param quiet: Do not report progress.
    :type quiet: ``bool``
    :param term_control: An optional ``TermControl`` for progress output.
    :type term_control: ``Optional[TermControl]``
    :param term_stream: The stream for progress output. Defaults to
                        ``sys.stderr``.
    :type term_stream: ``Optional[TextIO]``
    :returns: The captured snapshot.
    :rtype: ``Snapshot``
    :raises DefdiffError: If the list of domains cannot be obtained.
    """
    config = config or DefdiffConfig()
    domains = list_domains(config)
    settings: Dict[str, DomainSettings] = {}

    _log_debug("Capturing %d domains", len(domains))
    if not domains:
        return Snapshot(settings)

    progress = ProgressFactory.get_progress(
        "Capturing domains",
        quiet=quiet,
        term_stream=term_stream or sys.stderr,
        term_control=term_control,
    )
    start_time = datetime.now()
    progress.start(len(domains))
    try:
        for i, domain in enumerate(domains):
            progress.progress(i, f"Exporting '{domain}'")
            try:
                settings[domain] = parse_domain_plist(
                    domain, export_domain(domain, config)
                )
            except DefdiffNotFoundError:
                raise
            except DefdiffError as err:
                _log_debug_capture("Skipping domain '%s': %s", domain, err)
    except KeyboardInterrupt:
        progress.cancel("Quit!")
        raise
    except DefdiffError:
        progress.cancel("Capture failed.")
        raise

    end_time = datetime.now()
    skipped = len(domains) - len(settings)
    progress.end(
        f"Captured {len(settings)} domains in {end_time - start_time}"
        + (f" ({skipped} skipped)" if skipped else "")
    )
    return Snapshot(settings, captured_at=end_time)


def load_snapshot(path: str, config: Optional[DefdiffConfig] = None) -> Snapshot:
    """
    Load a snapshot from a directory of exported property lists.

    Each ``<domain>.plist`` file in ``path`` provides the settings for
    ``<domain>``. Files that cannot be read or decoded are skipped.

    :param path: The directory to load.
    :type path: ``str``
    :param config: The effective configuration (for domain exclusions).
    :type config: ``Optional[DefdiffConfig]``
    :returns: The loaded snapshot.
    :rtype: ``Snapshot``
    :raises DefdiffNotFoundError: If ``path`` does not exist.
    :raises DefdiffArgumentError: If ``path`` is not a directory.
    """
    config = config or DefdiffConfig()
    if not os.path.exists(path):
        raise DefdiffNotFoundError(f"Snapshot directory '{path}' does not exist")
    if not os.path.isdir(path):
        raise DefdiffArgumentError(f"Snapshot path '{path}' is not a directory")

    settings: Dict[str, DomainSettings] = {}
    latest = 0.0
    for name in sorted(os.listdir(path)):
        if not name.endswith(PLIST_EXT):
            continue
        domain = name[: -len(PLIST_EXT)]
        if not domain or _is_excluded(domain, config):
            continue
        file_path = os.path.join(path, name)
        try:
            with open(file_path, "rb") as fp:
                settings[domain] = parse_domain_plist(domain, fp.read())
            latest = max(latest, os.path.getmtime(file_path))
        except (OSError, DefdiffParseError) as err:
            _log_debug_capture("Skipping '%s': %s", file_path, err)

    _log_debug("Loaded %d domains from '%s'", len(settings), path)
    captured_at = datetime.fromtimestamp(latest) if latest else None
    return Snapshot(settings, captured_at=captured_at)
