# Copyright Red Hat
#
# defdiff/diff/changes.py - Defaults diff change records
#
# This file is part of the defdiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Representation of a single difference between two snapshots.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Optional
import json

from defdiff.snapshot.values import Value, format_value

from .difftypes import DiffType


@dataclass(frozen=True)
class Change(ABC):
    """
    Base class for a change to one key of one domain.
    """

    domain: str
    key: str

    diff_type: ClassVar[Optional[DiffType]] = None

    @abstractmethod
    def describe(self) -> str:
        """
        Return a one line description of this change using value previews.

        :returns: A human readable summary of the change.
        :rtype: ``str``
        """

    def __str__(self) -> str:
        return self.describe()

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert this ``Change`` object into a dictionary representation
        suitable for encoding as JSON.

        :returns: A dictionary mapping this instance's keys to values.
        :rtype: ``Dict[str, Any]``
        """
        return {
            "domain": self.domain,
            "key": self.key,
            "diff_type": self.diff_type.value,
        }

    def json(self, pretty=False) -> str:
        """
        Return a string representation of this ``Change`` in JSON notation.

        :param pretty: Indent JSON to be human readable.
        :type pretty: ``bool``
        :returns: A JSON representation of this instance.
        :rtype: ``str``
        """
        return json.dumps(self.to_dict(), indent=4 if pretty else None)


@dataclass(frozen=True)
class Added(Change):
    """
    A key present only in the later snapshot.
    """

    value: Value

    diff_type: ClassVar[DiffType] = DiffType.ADDED

    @property
    def new_value(self) -> Value:
        """The value written by this change."""
        return self.value

    def describe(self) -> str:
        return f"{self.key}: {format_value(self.value)}"

    def to_dict(self) -> Dict[str, Any]:
        out = super().to_dict()
        out["value_type"] = self.value.kind
        out["value"] = self.value.to_json()
        return out


@dataclass(frozen=True)
class Removed(Change):
    """
    A key present only in the earlier snapshot.
    """

    old_value: Value

    diff_type: ClassVar[DiffType] = DiffType.REMOVED

    def describe(self) -> str:
        return f"{self.key}: {format_value(self.old_value)}"

    def to_dict(self) -> Dict[str, Any]:
        out = super().to_dict()
        out["old_value_type"] = self.old_value.kind
        out["old_value"] = self.old_value.to_json()
        return out


@dataclass(frozen=True)
class Modified(Change):
    """
    A key present in both snapshots with different values.
    """

    old_value: Value
    new_value: Value

    diff_type: ClassVar[DiffType] = DiffType.MODIFIED

    def describe(self) -> str:
        return (
            f"{self.key}: {format_value(self.old_value)} -> "
            f"{format_value(self.new_value)}"
        )

    def to_dict(self) -> Dict[str, Any]:
        out = super().to_dict()
        out["old_value_type"] = self.old_value.kind
        out["old_value"] = self.old_value.to_json()
        out["new_value_type"] = self.new_value.kind
        out["new_value"] = self.new_value.to_json()
        return out
