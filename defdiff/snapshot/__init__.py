# Copyright Red Hat
#
# defdiff/snapshot/__init__.py - Defaults diff snapshot package
#
# This file is part of the defdiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Snapshot package.

Provides the typed value model for defaults settings, the immutable
snapshot store, and capture of snapshots from the ``defaults`` utility or
from a directory of exported property lists.
"""
from .values import (
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
    Unsupported,
    values_equal,
    from_plist,
    format_value,
)
from .store import DomainSettings, Snapshot
from .reader import capture_snapshot, list_domains, load_snapshot

__all__ = [
    "Value",
    "Boolean",
    "Integer",
    "Real",
    "Text",
    "Binary",
    "Array",
    "Dictionary",
    "Timestamp",
    "Reference",
    "Unsupported",
    "values_equal",
    "from_plist",
    "format_value",
    "DomainSettings",
    "Snapshot",
    "capture_snapshot",
    "list_domains",
    "load_snapshot",
]
