# Copyright Red Hat
#
# defdiff/__init__.py - Defaults diff package initialisation
#
# This file is part of the defdiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Defdiff top-level package.
"""
from ._defdiff import *  # noqa: F401, F403
from ._defdiff import __all__  # noqa: F401

__version__ = "0.1.0"
