# Copyright Red Hat
#
# tests/test_config.py - Defaults diff configuration tests
#
# This file is part of the defdiff project.
#
# SPDX-License-Identifier: Apache-2.0
import unittest
from tempfile import TemporaryDirectory
import os

from defdiff import DefdiffConfigError
from defdiff.config import DefdiffConfig, DEFAULT_TIMEOUT


class DefdiffConfigTests(unittest.TestCase):
    def setUp(self):
        self._tmpdir = TemporaryDirectory()
        self.addCleanup(self._tmpdir.cleanup)

    def _write_config(self, text):
        path = os.path.join(self._tmpdir.name, "defdiff.conf")
        with open(path, "w", encoding="utf8") as fp:
            fp.write(text)
        return path

    def test_defaults(self):
        config = DefdiffConfig()
        self.assertEqual(config.defaults_command, "defaults")
        self.assertEqual(config.timeout, DEFAULT_TIMEOUT)
        self.assertEqual(config.exclude_domains, ())
        self.assertTrue(config.include_global)

    def test_from_file_missing(self):
        path = os.path.join(self._tmpdir.name, "nonexistent.conf")
        self.assertEqual(DefdiffConfig.from_file(path), DefdiffConfig())

    def test_from_file_no_global_section(self):
        path = self._write_config("[Other]\nKey = value\n")
        self.assertEqual(DefdiffConfig.from_file(path), DefdiffConfig())

    def test_from_file(self):
        path = self._write_config(
            "[Global]\n"
            "DefaultsCommand = /usr/local/bin/defaults\n"
            "Timeout = 30\n"
            "ExcludeDomains = com.apple.spaces, ContextStoreAgent* ,\n"
            "IncludeGlobalDomain = no\n"
        )
        config = DefdiffConfig.from_file(path)
        self.assertEqual(config.defaults_command, "/usr/local/bin/defaults")
        self.assertEqual(config.timeout, 30)
        self.assertEqual(
            config.exclude_domains, ("com.apple.spaces", "ContextStoreAgent*")
        )
        self.assertFalse(config.include_global)

    def test_from_file_bad_timeout(self):
        path = self._write_config("[Global]\nTimeout = soon\n")
        with self.assertRaises(DefdiffConfigError):
            DefdiffConfig.from_file(path)

    def test_from_file_non_positive_timeout(self):
        path = self._write_config("[Global]\nTimeout = 0\n")
        with self.assertRaises(DefdiffConfigError):
            DefdiffConfig.from_file(path)

    def test_from_file_bad_boolean(self):
        path = self._write_config("[Global]\nIncludeGlobalDomain = perhaps\n")
        with self.assertRaises(DefdiffConfigError):
            DefdiffConfig.from_file(path)

    def test_from_file_empty_command(self):
        path = self._write_config("[Global]\nDefaultsCommand =\n")
        with self.assertRaises(DefdiffConfigError):
            DefdiffConfig.from_file(path)

    def test_from_file_malformed(self):
        path = self._write_config("Timeout = 3\n")
        with self.assertRaises(DefdiffConfigError):
            DefdiffConfig.from_file(path)

    def test_frozen(self):
        config = DefdiffConfig()
        with self.assertRaises(AttributeError):
            config.timeout = 5
