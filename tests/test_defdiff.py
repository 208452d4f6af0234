# Copyright Red Hat
#
# tests/test_defdiff.py - Defaults diff global definitions tests
#
# This file is part of the defdiff project.
#
# SPDX-License-Identifier: Apache-2.0
import unittest
from io import StringIO
import logging
import sys

import defdiff

log = logging.getLogger()


class DefdiffTests(unittest.TestCase):
    def tearDown(self):
        defdiff.set_debug_mask(0)

    def test_set_debug_mask(self):
        defdiff.set_debug_mask(defdiff.DEFDIFF_DEBUG_ALL)
        self.assertEqual(defdiff.get_debug_mask(), defdiff.DEFDIFF_DEBUG_ALL)

    def test_set_debug_mask_bad_mask(self):
        with self.assertRaises(ValueError):
            defdiff.set_debug_mask(defdiff.DEFDIFF_DEBUG_ALL + 1)
        with self.assertRaises(ValueError):
            defdiff.set_debug_mask(-1)

    def test_SubsystemFilter(self):
        defdiff.set_debug_mask(0)
        sf = defdiff.SubsystemFilter("defdiff")
        self.assertEqual(sf.enabled_subsystems, set())
        defdiff.set_debug_mask(defdiff.DEFDIFF_DEBUG_DIFF | defdiff.DEFDIFF_DEBUG_CAPTURE)
        sf2 = defdiff.SubsystemFilter("defdiff")
        self.assertIn(defdiff.DEFDIFF_SUBSYSTEM_DIFF, sf2.enabled_subsystems)
        self.assertIn(defdiff.DEFDIFF_SUBSYSTEM_CAPTURE, sf2.enabled_subsystems)
        self.assertNotIn(defdiff.DEFDIFF_SUBSYSTEM_COMMAND, sf2.enabled_subsystems)

    def test_SubsystemFilter_filter(self):
        sf = defdiff.SubsystemFilter("defdiff")
        sf.set_debug_subsystems([defdiff.DEFDIFF_SUBSYSTEM_DIFF])

        def record(level, subsystem=None):
            rec = logging.LogRecord("defdiff", level, __file__, 1, "msg", None, None)
            if subsystem:
                rec.subsystem = subsystem
            return rec

        self.assertTrue(sf.filter(record(logging.INFO, defdiff.DEFDIFF_SUBSYSTEM_COMMAND)))
        self.assertTrue(sf.filter(record(logging.DEBUG)))
        self.assertTrue(sf.filter(record(logging.DEBUG, defdiff.DEFDIFF_SUBSYSTEM_DIFF)))
        self.assertFalse(
            sf.filter(record(logging.DEBUG, defdiff.DEFDIFF_SUBSYSTEM_CAPTURE))
        )

    def test_notify_log_output_resets_progress(self):
        class FakeProgress:
            registered = False
            first_update = False

            def reset_position(self):
                self.first_update = True

        progress = FakeProgress()
        defdiff.register_progress(progress)
        self.assertTrue(progress.registered)
        try:
            defdiff.notify_log_output(StringIO())
            self.assertFalse(progress.first_update)

            defdiff.notify_log_output(sys.stderr)
            self.assertTrue(progress.first_update)
        finally:
            defdiff.unregister_progress(progress)
        self.assertFalse(progress.registered)

    def test_ProgressAwareHandler_emit(self):
        stream = StringIO()
        handler = defdiff.ProgressAwareHandler(stream=stream)
        handler.setFormatter(logging.Formatter("%(levelname)s - %(message)s"))
        rec = logging.LogRecord("defdiff", logging.WARNING, __file__, 1, "hello", None, None)
        handler.emit(rec)
        self.assertEqual(stream.getvalue(), "WARNING - hello\n")

    def test_exception_hierarchy(self):
        for exc in (
            defdiff.DefdiffCalloutError,
            defdiff.DefdiffNotFoundError,
            defdiff.DefdiffParseError,
            defdiff.DefdiffArgumentError,
            defdiff.DefdiffConfigError,
        ):
            self.assertTrue(issubclass(exc, defdiff.DefdiffError))

    def test_version(self):
        self.assertTrue(defdiff.__version__)
