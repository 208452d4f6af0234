# Copyright Red Hat
#
# tests/diff/__init__.py - Defaults diff diff tests
#
# This file is part of the defdiff project.
#
# SPDX-License-Identifier: Apache-2.0
