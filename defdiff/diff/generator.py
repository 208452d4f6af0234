# Copyright Red Hat
#
# defdiff/diff/generator.py - Defaults diff command generation
#
# This file is part of the defdiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Generate ``defaults`` commands that reproduce a detected change.

Removed keys become ``defaults delete`` commands and added or modified keys
become ``defaults write`` commands for the new value, with the type flag
chosen from the value variant. Dictionaries containing nested arrays or
dictionaries cannot be expressed with ``-dict`` arguments and produce a
comment line instead. Values the generator does not know how to write also
produce a comment line: generation never fails.
"""
from typing import Optional
import logging

from defdiff import DEFAULTS_CMD, DEFDIFF_SUBSYSTEM_DIFF
from defdiff.snapshot.values import (
    Value,
    Boolean,
    Integer,
    Real,
    Text,
    Binary,
    Array,
    Dictionary,
    Timestamp,
    Reference,
)

from .changes import Change, Removed

_log = logging.getLogger(__name__)


def _log_debug_diff(msg, *args, **kwargs):
    """A wrapper for diff subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": DEFDIFF_SUBSYSTEM_DIFF}, **kwargs)


#: Characters that must be escaped inside a double quoted shell word.
_ESCAPES = str.maketrans({"\\": "\\\\", '"': '\\"', "$": "\\$", "`": "\\`"})


def escape_string(value: str) -> str:
    """
    Escape ``value`` for use inside a double quoted shell word.

    Backslash, double quote, dollar sign and backtick are each prefixed
    with a backslash.

    :param value: The string to escape.
    :type value: ``str``
    :returns: The escaped string.
    :rtype: ``str``
    """
    return value.translate(_ESCAPES)


def _quote(value: str) -> str:
    return f'"{escape_string(value)}"'


#: Line breaks that would end a shell comment early.
_COMMENT_ESCAPES = str.maketrans({"\r": "\\r", "\n": "\\n"})


def _comment_safe(value: str) -> str:
    return value.translate(_COMMENT_ESCAPES)


def _bool_literal(value: bool) -> str:
    return "true" if value else "false"


def _scalar_argument(value: Value) -> Optional[str]:
    """
    Format a Boolean, Integer, Real or Text value as a typed argument.

    :returns: The argument string or ``None`` for any other value type.
    """
    if isinstance(value, Boolean):
        return f"-bool {_bool_literal(value.value)}"
    if isinstance(value, Integer):
        return f"-int {value.value}"
    if isinstance(value, Real):
        return f"-float {value.value!r}"
    if isinstance(value, Text):
        return f"-string {_quote(value.value)}"
    return None


def _format_array_elements(array: Array) -> str:
    # Elements without a scalar argument form are dropped.
    elements = [_scalar_argument(item) for item in array]
    return " ".join(element for element in elements if element is not None)


def _has_nested_structure(dictionary: Dictionary) -> bool:
    return any(isinstance(v, (Array, Dictionary)) for _, v in dictionary.items())


def _format_dict_value(key: str, value: Value) -> Optional[str]:
    if isinstance(value, Binary):
        return f"{_quote(key)} -data {value.hex()}"
    argument = _scalar_argument(value)
    if argument is None:
        return None
    return f"{_quote(key)} {argument}"


def _format_dict_pairs(dictionary: Dictionary) -> str:
    pairs = [_format_dict_value(k, v) for k, v in dictionary.items()]
    return " ".join(pair for pair in pairs if pair is not None)


def _write_command(tool: str, domain: str, key: str, value: Value) -> str:
    """
    Return a ``write`` command setting ``domain`` ``key`` to ``value``.
    """
    prefix = f"{tool} write {_quote(domain)} {_quote(key)}"

    if isinstance(value, (Boolean, Integer, Real, Text)):
        return f"{prefix} {_scalar_argument(value)}"
    if isinstance(value, Binary):
        return f"{prefix} -data {value.hex()}"
    if isinstance(value, Timestamp):
        return f"{prefix} -date {_quote(value.canonical())}"
    if isinstance(value, Reference):
        return f"{prefix} -int {value.value} # UID type stored as integer"
    if isinstance(value, Array):
        elements = _format_array_elements(value)
        return f"{prefix} -array{' ' + elements if elements else ''}"
    if isinstance(value, Dictionary):
        if _has_nested_structure(value):
            _log_debug_diff("Nested dictionary for %s %s", domain, key)
            return (
                "# Nested dictionary not supported by defaults command: "
                f"{_comment_safe(domain)} {_comment_safe(key)}"
            )
        pairs = _format_dict_pairs(value)
        return f"{prefix} -dict{' ' + pairs if pairs else ''}"

    _log_debug_diff("Unsupported value type '%s' for %s %s", value.kind, domain, key)
    return f"# Unsupported type for key: {_comment_safe(key)}"


def generate_command(change: Change, tool: str = DEFAULTS_CMD) -> str:
    """
    Generate the command that applies ``change`` to the defaults database.

    For ``Removed`` changes a ``delete`` command is returned. For ``Added``
    and ``Modified`` changes a ``write`` command for the new value is
    returned; the old value of a ``Modified`` change is not used.

    :param change: The change to reproduce.
    :type change: ``Change``
    :param tool: The name of the defaults utility.
    :type tool: ``str``
    :returns: The command text, or a shell comment if the value cannot be
              written by the defaults utility.
    :rtype: ``str``
    """
    if isinstance(change, Removed):
        return f"{tool} delete {_quote(change.domain)} {_quote(change.key)}"
    return _write_command(tool, change.domain, change.key, change.new_value)
