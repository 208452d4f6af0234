# Copyright Red Hat
#
# defdiff/diff/__init__.py - Defaults diff package
#
# This file is part of the defdiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Diff package.

Detects the differences between two snapshots and generates the
``defaults`` commands that reproduce them.
"""
from .difftypes import DiffType
from .changes import Change, Added, Removed, Modified
from .generator import generate_command, escape_string
from .detector import DomainDiff, DiffResult, detect_diff

__all__ = [
    "DiffType",
    "Change",
    "Added",
    "Removed",
    "Modified",
    "DomainDiff",
    "DiffResult",
    "detect_diff",
    "generate_command",
    "escape_string",
]
