# Copyright Red Hat
#
# tests/snapshot/__init__.py - Defaults diff snapshot tests
#
# This file is part of the defdiff project.
#
# SPDX-License-Identifier: Apache-2.0
