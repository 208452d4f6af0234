# Copyright Red Hat
#
# defdiff/diff/difftypes.py - Defaults diff types
#
# This file is part of the defdiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Defaults diff types
"""
from enum import Enum


class DiffType(Enum):
    """
    Enum for different difference types.
    """

    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"
