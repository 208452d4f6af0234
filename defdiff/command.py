# Copyright Red Hat
#
# defdiff/command.py - Defaults diff command interface
#
# This file is part of the defdiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""The ``defdiff.command`` module provides both the defdiff command line
interface infrastructure, and a simple procedural interface to the
``defdiff`` library modules.

The procedural interface is used by the ``defdiff`` command line tool,
and may be used by application programs, or interactively in the
Python shell by users who do not require the full object API.
"""
from argparse import ArgumentParser
from subprocess import run, CalledProcessError, TimeoutExpired
from typing import List, Optional
from os.path import basename
import logging
import sys

from defdiff import (
    DEFDIFF_DEBUG_COMMAND,
    DEFDIFF_DEBUG_CAPTURE,
    DEFDIFF_DEBUG_DIFF,
    DEFDIFF_DEBUG_ALL,
    DEFDIFF_SUBSYSTEM_COMMAND,
    DefdiffArgumentError,
    DefdiffCalloutError,
    DefdiffNotFoundError,
    SubsystemFilter,
    set_debug_mask,
    ProgressAwareHandler,
    __version__,
)
from defdiff.config import DefdiffConfig, DEFDIFF_CFG_PATH, DEFAULT_TIMEOUT
from defdiff.snapshot import capture_snapshot, list_domains, load_snapshot
from defdiff.diff import DiffResult, detect_diff

DIFF_FORMATS = DiffResult.DIFF_FORMATS
DEFAULT_DIFF_FORMAT = "short"
COLOR_MODES = ["auto", "never", "always"]

#: Helper program that places its standard input on the clipboard
CLIPBOARD_CMD = "pbcopy"

#: Prompt written to stderr between the two captures of ``watch``
WATCH_PROMPT = "Make your changes, then press Enter to capture again... "

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_command(msg, *args, **kwargs):
    """A wrapper for command subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": DEFDIFF_SUBSYSTEM_COMMAND}, **kwargs)


_DEFAULT_LOG_LEVEL = logging.WARNING
_CONSOLE_HANDLER = None


def copy_to_clipboard(text: str, timeout: int = DEFAULT_TIMEOUT):
    """
    Place ``text`` on the system clipboard.

    :param text: The text to copy.
    :type text: ``str``
    :param timeout: Timeout in seconds for the clipboard helper.
    :type timeout: ``int``
    :raises DefdiffNotFoundError: If the clipboard helper is not installed.
    :raises DefdiffCalloutError: If the clipboard helper fails.
    """
    _log_debug_command("Copying %d characters to clipboard", len(text))
    try:
        run(
            [CLIPBOARD_CMD],
            input=text,
            text=True,
            capture_output=True,
            check=True,
            timeout=timeout,
        )
    except FileNotFoundError as err:
        raise DefdiffNotFoundError(f"{CLIPBOARD_CMD} command not found: {err}") from err
    except TimeoutExpired as err:
        raise DefdiffCalloutError(
            f"Timed out after {timeout}s running '{CLIPBOARD_CMD}'"
        ) from err
    except CalledProcessError as err:
        raise DefdiffCalloutError(
            f"'{CLIPBOARD_CMD}' failed (status={err.returncode}): "
            f"{(err.stderr or '').strip()}"
        ) from err


def parse_output_formats(values: Optional[List[str]]) -> List[str]:
    """
    Parse a list of comma-separated output format arguments.

    :param values: Values given for ``--output-format`` or ``None``.
    :type values: ``Optional[List[str]]``
    :returns: The requested formats in order, without duplicates.
    :rtype: ``List[str]``
    :raises DefdiffArgumentError: If an unknown format is requested.
    """
    if not values:
        return [DEFAULT_DIFF_FORMAT]

    formats = []
    for value in values:
        for name in value.split(","):
            name = name.strip()
            if not name:
                continue
            if name not in DIFF_FORMATS:
                raise DefdiffArgumentError(
                    f"Unknown diff format: {name} "
                    f"(choose from {', '.join(DIFF_FORMATS)})"
                )
            if name not in formats:
                formats.append(name)
    return formats or [DEFAULT_DIFF_FORMAT]


def load_config(config_file: Optional[str] = None) -> DefdiffConfig:
    """
    Load the defdiff configuration.

    :param config_file: Path to an alternate configuration file.
    :type config_file: ``Optional[str]``
    :returns: The effective configuration.
    :rtype: ``DefdiffConfig``
    """
    return DefdiffConfig.from_file(config_file or DEFDIFF_CFG_PATH)


def diff_snapshot_dirs(
    before_path: str, after_path: str, config: Optional[DefdiffConfig] = None
) -> DiffResult:
    """
    Compare two directories of exported property lists.

    :param before_path: Directory holding the earlier snapshot.
    :type before_path: ``str``
    :param after_path: Directory holding the later snapshot.
    :type after_path: ``str``
    :param config: The effective configuration.
    :type config: ``Optional[DefdiffConfig]``
    :returns: The detected differences.
    :rtype: ``DiffResult``
    """
    before = load_snapshot(before_path, config=config)
    after = load_snapshot(after_path, config=config)
    return detect_diff(before, after)


def _output_results(
    results: DiffResult,
    output_formats: List[str],
    config: DefdiffConfig,
    pretty: bool = False,
    color: str = "auto",
):
    spacer = ""
    for output_format in output_formats:
        print(spacer, end="")
        if output_format == "summary":
            print(results.summary(color=color))
        elif output_format == "short":
            if results.total_changes:
                print(results.short(color=color))
            else:
                print("No changes detected.")
        elif output_format == "full":
            if results.total_changes:
                print(results.full(tool=config.defaults_command))
            else:
                print("No changes detected.")
        elif output_format == "json":
            print(results.json(pretty=pretty, tool=config.defaults_command))
        elif output_format == "commands":
            commands = results.commands(tool=config.defaults_command)
            if commands:
                print("\n".join(commands))
        spacer = "\n"


def _check_output_args(cmd_args) -> Optional[List[str]]:
    """
    Validate the output arguments shared by the diff commands.

    :returns: The list of output formats or ``None`` if the arguments are
              invalid.
    """
    try:
        output_formats = parse_output_formats(cmd_args.output_format)
    except DefdiffArgumentError as err:
        _log_error("%s", err)
        return None

    if cmd_args.pretty and "json" not in output_formats:
        _log_error("Option --pretty only supported with --output-format=json")
        return None

    return output_formats


def _finish_diff(cmd_args, results: DiffResult, output_formats, config) -> int:
    _output_results(
        results,
        output_formats,
        config,
        pretty=cmd_args.pretty,
        color=cmd_args.color,
    )

    if cmd_args.copy:
        commands = results.commands(tool=config.defaults_command)
        if not commands:
            _log_info("No commands to copy")
            return 0
        copy_to_clipboard("\n".join(commands) + "\n", timeout=config.timeout)
        _log_info("Copied %d commands to clipboard", len(commands))
    return 0


def _domains_cmd(cmd_args):
    """
    List domains command handler.

    Print the domains that a capture would include, one per line.

    :param cmd_args: Command line arguments for the command
    :returns: integer status code returned from ``main()``
    """
    config = load_config(cmd_args.config)
    for domain in list_domains(config):
        print(domain)
    return 0


def _watch_cmd(cmd_args):
    """
    Watch command handler.

    Capture a snapshot, wait for the user to make changes, capture a second
    snapshot and report the differences.

    :param cmd_args: Command line arguments for the command
    :returns: integer status code returned from ``main()``
    """
    output_formats = _check_output_args(cmd_args)
    if output_formats is None:
        return 1

    config = load_config(cmd_args.config)
    before = capture_snapshot(config, quiet=cmd_args.quiet)
    _log_info("Captured %d keys in %d domains", before.key_count, len(before))

    try:
        print(WATCH_PROMPT, end="", file=sys.stderr, flush=True)
        input()
    except EOFError:
        _log_debug_command("End of input while waiting: capturing now")

    after = capture_snapshot(config, quiet=cmd_args.quiet)
    _log_info("Captured %d keys in %d domains", after.key_count, len(after))

    results = detect_diff(before, after)
    return _finish_diff(cmd_args, results, output_formats, config)


def _diff_cmd(cmd_args):
    """
    Diff command handler.

    Compare two directories of exported property lists.

    :param cmd_args: Command line arguments for the command
    :returns: integer status code returned from ``main()``
    """
    output_formats = _check_output_args(cmd_args)
    if output_formats is None:
        return 1

    if cmd_args.diff_from == cmd_args.diff_to:
        _log_error("Cannot compare '%s' to itself.", cmd_args.diff_from)
        return 1

    config = load_config(cmd_args.config)
    results = diff_snapshot_dirs(cmd_args.diff_from, cmd_args.diff_to, config)
    return _finish_diff(cmd_args, results, output_formats, config)


def setup_logging(cmd_args):
    """
    Set up defdiff logging.
    """
    # pylint: disable=global-statement
    global _CONSOLE_HANDLER
    level = _DEFAULT_LOG_LEVEL
    if cmd_args.verbose and cmd_args.verbose > 1:
        level = logging.DEBUG
    elif cmd_args.verbose and cmd_args.verbose > 0:
        level = logging.INFO

    defdiff_log = logging.getLogger("defdiff")
    formatter = logging.Formatter("%(levelname)s - %(message)s")
    defdiff_log.setLevel(level)
    if defdiff_log.hasHandlers():
        defdiff_log.handlers.clear()

    # Subsystem log filtering
    _defdiff_subsystem_filter = SubsystemFilter("defdiff")

    # Main console handler
    _CONSOLE_HANDLER = ProgressAwareHandler()

    _CONSOLE_HANDLER.setLevel(level)
    _CONSOLE_HANDLER.setFormatter(formatter)
    _CONSOLE_HANDLER.addFilter(_defdiff_subsystem_filter)

    defdiff_log.addHandler(_CONSOLE_HANDLER)


def shutdown_logging():
    """
    Shut down defdiff logging.
    """
    logging.shutdown()


def set_debug(debug_arg):
    """
    Set debugging mask from command line argument.
    """
    if not debug_arg:
        return

    mask_map = {
        "command": DEFDIFF_DEBUG_COMMAND,
        "capture": DEFDIFF_DEBUG_CAPTURE,
        "diff": DEFDIFF_DEBUG_DIFF,
        "all": DEFDIFF_DEBUG_ALL,
    }

    mask = 0
    for name in debug_arg.split(","):
        if name not in mask_map:
            raise ValueError(f"Unknown debug option: {name}")
        mask |= mask_map[name]
    set_debug_mask(mask)


def _add_output_args(parser):
    """
    Add output arguments shared by the diff commands.
    """
    parser.add_argument(
        "-o",
        "--output-format",
        type=str,
        action="append",
        metavar="FORMAT",
        default=None,
        help=f"Output format for diff data ({', '.join(DIFF_FORMATS)})",
    )
    parser.add_argument(
        "-P",
        "--pretty",
        action="store_true",
        help="Pretty print output if supported by output format",
    )
    parser.add_argument(
        "--copy",
        action="store_true",
        help="Copy the generated commands to the clipboard",
    )
    parser.add_argument(
        "--color",
        type=str,
        choices=COLOR_MODES,
        default=COLOR_MODES[0],
        help=f"Enable colored output ({', '.join(COLOR_MODES)})",
    )


DOMAINS_CMD = "domains"
WATCH_CMD = "watch"
DIFF_CMD = "diff"


def main(args):
    """
    Main entry point for defdiff.
    """
    parser = ArgumentParser(
        description="Defaults snapshot diff", prog=basename(args[0])
    )

    # Global arguments
    parser.add_argument(
        "-d",
        "--debug",
        metavar="DEBUGOPTS",
        type=str,
        help="A list of debug options to enable",
    )
    parser.add_argument("-v", "--verbose", help="Enable verbose output", action="count")
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        help="Report the version number of defdiff",
        version=__version__,
    )
    parser.add_argument(
        "-c",
        "--config",
        metavar="CONFIG",
        type=str,
        default=None,
        help=f"Path to an alternate configuration file (default: {DEFDIFF_CFG_PATH})",
    )

    subparser = parser.add_subparsers(dest="command", help="Command")

    domains_parser = subparser.add_parser(
        DOMAINS_CMD, help="List the domains that would be captured"
    )
    domains_parser.set_defaults(func=_domains_cmd)

    watch_parser = subparser.add_parser(
        WATCH_CMD,
        help="Capture, wait for changes, capture again and show the differences",
    )
    _add_output_args(watch_parser)
    watch_parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Do not output progress or status information",
    )
    watch_parser.set_defaults(func=_watch_cmd)

    diff_parser = subparser.add_parser(
        DIFF_CMD,
        help="Compare two directories of exported property lists",
    )
    _add_output_args(diff_parser)
    diff_parser.add_argument(
        "diff_from",
        type=str,
        metavar="BEFORE",
        help="Directory of exported property lists for the earlier state",
    )
    diff_parser.add_argument(
        "diff_to",
        type=str,
        metavar="AFTER",
        help="Directory of exported property lists for the later state",
    )
    diff_parser.set_defaults(func=_diff_cmd)

    cmd_args = parser.parse_args(args[1:])

    status = 1

    try:
        set_debug(cmd_args.debug)
    except ValueError as err:
        print(err)
        parser.print_help()
        return status

    setup_logging(cmd_args)

    _log_debug_command("Parsed %s", " ".join(args[1:]))

    if "func" not in cmd_args:
        parser.print_help()
        return status

    if cmd_args.debug:
        status = cmd_args.func(cmd_args)
    else:
        try:
            status = cmd_args.func(cmd_args)
        # pylint: disable=broad-except
        except KeyboardInterrupt:  # pragma: no cover
            _log_info("Exiting on user cancel")
        except Exception as err:
            _log_error("Command failed: %s", err)

    shutdown_logging()
    return status


def cli():
    """
    Console script entry point for defdiff.
    """
    sys.exit(main(sys.argv))


# vim: set et ts=4 sw=4 :
