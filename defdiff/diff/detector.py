# Copyright Red Hat
#
# defdiff/diff/detector.py - Defaults diff detection
#
# This file is part of the defdiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Defaults snapshot difference detection
"""
from dataclasses import dataclass, field
from typing import ClassVar, Iterator, List, Mapping, Optional, Tuple
import logging
import json

from defdiff import DEFAULTS_CMD, DEFDIFF_SUBSYSTEM_DIFF
from defdiff.progress import TermControl
from defdiff.snapshot.store import Snapshot
from defdiff.snapshot.values import Value, values_equal

from .changes import Added, Change, Modified, Removed
from .difftypes import DiffType
from .generator import generate_command

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_diff(msg, *args, **kwargs):
    """A wrapper for diff subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": DEFDIFF_SUBSYSTEM_DIFF}, **kwargs)


@dataclass(frozen=True)
class DomainDiff:
    """
    The changes detected for one domain, ordered by key.
    """

    domain: str
    changes: Tuple[Change, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "changes", tuple(self.changes))

    def __len__(self) -> int:
        return len(self.changes)

    def __iter__(self) -> Iterator[Change]:
        return iter(self.changes)


class DiffResult:
    """Container for snapshot diff results with formatting methods."""

    #: Constant for the names of the string diff formats
    DIFF_FORMATS: ClassVar[List[str]] = [
        "summary",
        "short",
        "full",
        "json",
        "commands",
    ]

    def __init__(self, domain_diffs: List[DomainDiff]):
        """
        Initialise a new ``DiffResult`` object.

        :param domain_diffs: The per-domain changes, ordered by domain name.
        :type domain_diffs: ``List[DomainDiff]``
        """
        self._domain_diffs: Tuple[DomainDiff, ...] = tuple(domain_diffs)
        self.total_changes: int = sum(len(dd) for dd in self._domain_diffs)

    def __repr__(self) -> str:
        return f"DiffResult([...], total_changes={self.total_changes})"

    def __eq__(self, other):
        if not isinstance(other, DiffResult):
            return NotImplemented
        return self._domain_diffs == other._domain_diffs

    __hash__ = None

    # List-like interface
    def __iter__(self) -> Iterator[DomainDiff]:
        return iter(self._domain_diffs)

    def __len__(self) -> int:
        return len(self._domain_diffs)

    def __getitem__(self, index: int) -> DomainDiff:
        return self._domain_diffs[index]

    @property
    def domain_diffs(self) -> Tuple[DomainDiff, ...]:
        """
        The per-domain changes, ordered by domain name.
        """
        return self._domain_diffs

    def domains(self) -> List[str]:
        """
        Return the names of the domains with changes.

        :returns: Domain names in order.
        :rtype: ``List[str]``
        """
        return [dd.domain for dd in self._domain_diffs]

    def changes(self) -> List[Change]:
        """
        Return all changes ordered by domain and then key.

        :returns: A flat list of changes.
        :rtype: ``List[Change]``
        """
        return [change for dd in self._domain_diffs for change in dd]

    def _of_type(self, diff_type: DiffType) -> List[Change]:
        return [change for change in self.changes() if change.diff_type == diff_type]

    @property
    def added(self) -> List[Change]:
        """
        Changes with ``DiffType.ADDED`` type.
        """
        return self._of_type(DiffType.ADDED)

    @property
    def removed(self) -> List[Change]:
        """
        Changes with ``DiffType.REMOVED`` type.
        """
        return self._of_type(DiffType.REMOVED)

    @property
    def modified(self) -> List[Change]:
        """
        Changes with ``DiffType.MODIFIED`` type.
        """
        return self._of_type(DiffType.MODIFIED)

    # Output formats
    def commands(self, tool: str = DEFAULTS_CMD) -> List[str]:
        """
        Return the generated command for every change, in order.

        :param tool: The name of the defaults utility.
        :type tool: ``str``
        :returns: Command strings.
        :rtype: ``List[str]``
        """
        return [generate_command(change, tool=tool) for change in self.changes()]

    def short(self, color: str = "auto", term_control: Optional[TermControl] = None):
        """
        Return a brief listing of changes grouped by domain, one line per
        change with value previews.

        :param color: A string to control color rendering: "auto", "always", or
                      "never".
        :type color: ``str``
        :param term_control: An optional ``TermControl`` instance to use for
                             formatting. Overrides ``color`` if set.
        :type term_control: ``Optional[TermControl]``
        :returns: Brief string description of the changes.
        :rtype: ``str``
        """
        tc = term_control or TermControl(color=color)
        marks = {
            DiffType.ADDED: tc.GREEN + "+" + tc.NORMAL,
            DiffType.REMOVED: tc.RED + "-" + tc.NORMAL,
            DiffType.MODIFIED: tc.YELLOW + "~" + tc.NORMAL,
        }
        blocks = []
        for dd in self._domain_diffs:
            count = len(dd)
            lines = [
                f"{tc.BOLD}{dd.domain}{tc.NORMAL} "
                f"({count} change{'s' if count != 1 else ''})"
            ]
            lines.extend(
                f"  {marks[change.diff_type]} {change.describe()}" for change in dd
            )
            blocks.append("\n".join(lines))
        return "\n".join(blocks)

    def full(self, tool: str = DEFAULTS_CMD) -> str:
        """
        Return a full description of every change including the command
        that reproduces it.

        :param tool: The name of the defaults utility.
        :type tool: ``str``
        :returns: String description of the changes.
        :rtype: ``str``
        """
        records = []
        for change in self.changes():
            records.append(
                f"Domain: {change.domain}\n"
                f"  key: {change.key}\n"
                f"  diff_type: {change.diff_type.value}\n"
                f"  change: {change.describe()}\n"
                f"  command: {generate_command(change, tool=tool)}"
            )
        return "\n\n".join(records)

    def json(self, pretty: bool = False, tool: str = DEFAULTS_CMD) -> str:
        """
        Return JSON representation of the changes in this instance.

        :param pretty: Indent JSON to be human readable.
        :type pretty: ``bool``
        :param tool: The name of the defaults utility.
        :type tool: ``str``
        :returns: JSON string description of the changes.
        :rtype: ``str``
        """
        out = {
            "total_changes": self.total_changes,
            "domains": [
                {
                    "domain": dd.domain,
                    "changes": [
                        dict(
                            change.to_dict(),
                            command=generate_command(change, tool=tool),
                        )
                        for change in dd
                    ],
                }
                for dd in self._domain_diffs
            ],
        }
        return json.dumps(out, indent=4 if pretty else None)

    def summary(
        self, color: str = "auto", term_control: Optional[TermControl] = None
    ) -> str:
        """
        Return a summary of this ``DiffResult`` instance.

        :param color: A string to control color rendering: "auto", "always", or
                      "never".
        :type color: ``str``
        :param term_control: An optional ``TermControl`` instance to use for
                             formatting. Overrides ``color`` if set.
        :type term_control: ``Optional[TermControl]``
        :returns: A string summarizing this instance.
        :rtype: ``str``
        """
        tc = term_control or TermControl(color=color)
        return (
            f"Total changes:     {self.total_changes}\n"
            f"  Domains changed:  {len(self)}\n"
            f"  Keys {tc.GREEN + 'added:    ' + tc.NORMAL} {len(self.added)}\n"
            f"  Keys {tc.RED + 'removed:  ' + tc.NORMAL} {len(self.removed)}\n"
            f"  Keys {tc.YELLOW + 'modified: ' + tc.NORMAL} {len(self.modified)}"
        )


def _by_key(item):
    return item[0]


def _detect_domain_changes(
    domain: str,
    before: Mapping[str, Value],
    after: Mapping[str, Value],
) -> List[Change]:
    """
    Detect the key changes between two versions of one domain.

    :returns: Changes ordered by key.
    :rtype: ``List[Change]``
    """
    changes: List[Change] = []

    for key, after_value in after.items():
        if key not in before:
            changes.append(Added(domain, key, after_value))
        elif not values_equal(before[key], after_value):
            changes.append(Modified(domain, key, before[key], after_value))

    for key, before_value in before.items():
        if key not in after:
            changes.append(Removed(domain, key, before_value))

    changes.sort(key=lambda change: change.key)
    return changes


def detect_diff(before: Snapshot, after: Snapshot) -> DiffResult:
    """
    Detect the differences between two snapshots.

    Domains present only in ``after`` contribute an ``Added`` change for
    every key, domains present only in ``before`` a ``Removed`` change for
    every key, and domains present in both are compared key by key. Domains
    without changes are omitted.

    :param before: The earlier snapshot.
    :type before: ``Snapshot``
    :param after: The later snapshot.
    :type after: ``Snapshot``
    :returns: Domain diffs ordered by domain name.
    :rtype: ``DiffResult``
    """
    domain_diffs: List[DomainDiff] = []
    _log_debug(
        "Comparing snapshots with %d and %d domains",
        before.domain_count,
        after.domain_count,
    )

    for domain, after_settings in after.domains.items():
        before_settings = before.domains.get(domain)
        if before_settings is None:
            _log_debug_diff("Domain '%s' added", domain)
            changes = [
                Added(domain, key, value)
                for key, value in sorted(
                    after_settings.values.items(), key=_by_key
                )
            ]
        else:
            changes = _detect_domain_changes(
                domain, before_settings.values, after_settings.values
            )

        if changes:
            _log_debug_diff("Domain '%s': %d changes", domain, len(changes))
            domain_diffs.append(DomainDiff(domain, changes))

    for domain, before_settings in before.domains.items():
        if domain in after.domains:
            continue
        _log_debug_diff("Domain '%s' removed", domain)
        changes = [
            Removed(domain, key, value)
            for key, value in sorted(
                before_settings.values.items(), key=_by_key
            )
        ]
        if changes:
            domain_diffs.append(DomainDiff(domain, changes))

    domain_diffs.sort(key=lambda dd: dd.domain)
    result = DiffResult(domain_diffs)
    _log_debug(
        "Found %d changes in %d domains", result.total_changes, len(domain_diffs)
    )
    return result
