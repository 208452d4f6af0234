# Copyright Red Hat
#
# defdiff/snapshot/values.py - Defaults diff setting values
#
# This file is part of the defdiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Typed representation of defaults setting values.

Every value read from the defaults database is one of a closed set of
variants: ``Boolean``, ``Integer``, ``Real``, ``Text``, ``Binary``,
``Array``, ``Dictionary``, ``Timestamp`` and ``Reference``. Anything else
decoded from a property list is carried as an explicit ``Unsupported``
marker so that neither comparison nor command generation ever fails.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Tuple
from types import MappingProxyType
import plistlib
import math
import sys

#: Tolerance used when comparing ``Real`` values.
REAL_EPSILON = sys.float_info.epsilon

#: Canonical text format for ``Timestamp`` values (plist XML date format).
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

#: Default maximum preview length for ``format_value()``.
PREVIEW_MAX_LEN = 30


class Value(ABC):
    """
    Base class for all defaults setting values.

    Equality between ``Value`` objects is the recursive comparison
    implemented by ``values_equal()``.
    """

    #: Short variant name used in descriptions and JSON output.
    kind = "value"

    def __eq__(self, other):
        if not isinstance(other, Value):
            return NotImplemented
        return values_equal(self, other)

    __hash__ = None

    @abstractmethod
    def to_json(self) -> Any:
        """
        Return a representation of this value suitable for encoding as JSON.
        """


@dataclass(frozen=True, eq=False)
class Boolean(Value):
    """A boolean setting."""

    value: bool
    kind = "bool"

    def to_json(self) -> bool:
        return self.value


@dataclass(frozen=True, eq=False)
class Integer(Value):
    """An integer setting."""

    value: int
    kind = "int"

    def to_json(self) -> int:
        return self.value


@dataclass(frozen=True, eq=False)
class Real(Value):
    """A floating point setting."""

    value: float
    kind = "float"

    def to_json(self) -> float:
        return self.value


@dataclass(frozen=True, eq=False)
class Text(Value):
    """A string setting."""

    value: str
    kind = "string"

    def to_json(self) -> str:
        return self.value


@dataclass(frozen=True, eq=False)
class Binary(Value):
    """An opaque data setting."""

    value: bytes
    kind = "data"

    def hex(self) -> str:
        """
        Return the lower case hexadecimal encoding of this value.

        :returns: Two hex digits per byte.
        :rtype: ``str``
        """
        return self.value.hex()

    def to_json(self) -> str:
        return self.hex()


@dataclass(frozen=True, eq=False)
class Array(Value):
    """An ordered list of values."""

    items: Tuple[Value, ...] = field(default_factory=tuple)
    kind = "array"

    def __post_init__(self):
        object.__setattr__(self, "items", tuple(self.items))

    def __len__(self):
        return len(self.items)

    def __iter__(self):
        return iter(self.items)

    def to_json(self) -> list:
        return [item.to_json() for item in self.items]


@dataclass(frozen=True, eq=False)
class Dictionary(Value):
    """
    A mapping of string keys to values. Key order is preserved as read
    but is not significant for equality.
    """

    members: Mapping[str, Value] = field(default_factory=dict)
    kind = "dict"

    def __post_init__(self):
        object.__setattr__(self, "members", MappingProxyType(dict(self.members)))

    def __len__(self):
        return len(self.members)

    def items(self):
        """Return a view of the ``(key, value)`` pairs of this dictionary."""
        return self.members.items()

    def to_json(self) -> dict:
        return {key: value.to_json() for key, value in self.members.items()}


@dataclass(frozen=True, eq=False)
class Timestamp(Value):
    """
    A date setting. Naive datetimes are interpreted as UTC.
    """

    value: datetime
    kind = "date"

    def __post_init__(self):
        when = self.value
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        object.__setattr__(self, "value", when.astimezone(timezone.utc))

    def canonical(self) -> str:
        """
        Return the canonical text form of this timestamp.

        :returns: The timestamp in plist XML date notation.
        :rtype: ``str``
        """
        return self.value.strftime(TIMESTAMP_FORMAT)

    def to_json(self) -> str:
        return self.canonical()


@dataclass(frozen=True, eq=False)
class Reference(Value):
    """An opaque object identifier (a plist UID)."""

    value: int
    kind = "uid"

    def to_json(self) -> dict:
        return {"uid": self.value}


@dataclass(frozen=True, eq=False)
class Unsupported(Value):
    """Marker for decoded data outside the supported value types."""

    description: str
    kind = "unsupported"

    def to_json(self) -> dict:
        return {"unsupported": self.description}


def _reals_equal(a: float, b: float) -> bool:
    if math.isnan(a) or math.isnan(b):
        return math.isnan(a) and math.isnan(b)
    if a == b:
        return True
    return abs(a - b) < REAL_EPSILON


# pylint: disable=too-many-return-statements
def values_equal(a: Value, b: Value) -> bool:
    """
    Compare two values recursively.

    Values of different variants are never equal. ``Real`` values are
    compared within ``REAL_EPSILON``, arrays element by element in order
    and dictionaries key by key regardless of order.

    :param a: The first value.
    :type a: ``Value``
    :param b: The second value.
    :type b: ``Value``
    :returns: ``True`` if the values are equal or ``False`` otherwise.
    :rtype: ``bool``
    """
    if type(a) is not type(b):
        return False
    if isinstance(a, Real):
        return _reals_equal(a.value, b.value)
    if isinstance(a, Array):
        return len(a.items) == len(b.items) and all(
            values_equal(x, y) for x, y in zip(a.items, b.items)
        )
    if isinstance(a, Dictionary):
        if a.members.keys() != b.members.keys():
            return False
        return all(values_equal(v, b.members[k]) for k, v in a.members.items())
    if isinstance(a, Unsupported):
        return a.description == b.description
    return a.value == b.value


def from_plist(obj: Any) -> Value:
    """
    Convert an object tree decoded by ``plistlib`` into a ``Value``.

    :param obj: The decoded property list object.
    :returns: The equivalent ``Value``. Objects of an unknown type are
              returned as ``Unsupported``.
    :rtype: ``Value``
    """
    # bool is a subclass of int: test it first.
    if isinstance(obj, bool):
        return Boolean(obj)
    if isinstance(obj, int):
        return Integer(obj)
    if isinstance(obj, float):
        return Real(obj)
    if isinstance(obj, str):
        return Text(obj)
    if isinstance(obj, (bytes, bytearray)):
        return Binary(bytes(obj))
    if isinstance(obj, (list, tuple)):
        return Array(tuple(from_plist(item) for item in obj))
    if isinstance(obj, dict):
        return Dictionary({str(k): from_plist(v) for k, v in obj.items()})
    if isinstance(obj, datetime):
        return Timestamp(obj)
    if isinstance(obj, plistlib.UID):
        return Reference(obj.data)
    return Unsupported(type(obj).__name__)


def _truncate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return text[0 : max(0, max_len - 3)] + "..."


# pylint: disable=too-many-return-statements
def format_value(value: Value, max_len: int = PREVIEW_MAX_LEN) -> str:
    """
    Return a short human readable preview of ``value``.

    Long strings are truncated on character boundaries to ``max_len``
    characters including a trailing ellipsis. Containers are summarised
    by their size.

    :param value: The value to format.
    :type value: ``Value``
    :param max_len: The maximum length of a string preview.
    :type max_len: ``int``
    :returns: A preview string.
    :rtype: ``str``
    """
    if isinstance(value, Boolean):
        return "true" if value.value else "false"
    if isinstance(value, Integer):
        return str(value.value)
    if isinstance(value, Real):
        return f"{value.value:.2f}"
    if isinstance(value, Text):
        return f'"{_truncate(value.value, max_len)}"'
    if isinstance(value, Binary):
        return f"<data {len(value.value)} bytes>"
    if isinstance(value, Array):
        return f"[{len(value)} items]"
    if isinstance(value, Dictionary):
        return f"{{{len(value)} keys}}"
    if isinstance(value, Timestamp):
        return value.canonical()
    if isinstance(value, Reference):
        return f"UID({value.value})"
    if isinstance(value, Unsupported):
        return f"<unsupported: {value.description}>"
    return "<unknown>"
