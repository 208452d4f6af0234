# Copyright Red Hat
#
# tests/test_progress.py - Progress and TermControl tests
#
# This file is part of the defdiff project.
#
# SPDX-License-Identifier: Apache-2.0
import unittest
from typing import Optional
from unittest.mock import MagicMock, patch
from io import StringIO
import curses

from defdiff.progress import (
    NullProgress,
    Progress,
    ProgressBase,
    ProgressFactory,
    SimpleProgress,
    TermControl,
    _flush_with_broken_pipe_guard,
)


def _mock_term_control(stream=None):
    tc = MagicMock(spec=TermControl)
    tc.CLEAR_EOL = "<CE>"
    tc.UP = "<UP>"
    tc.BOL = "<BOL>"
    tc.HIDE_CURSOR = "<HIDE_CURSOR>"
    tc.SHOW_CURSOR = "<SHOW_CURSOR>"
    tc.NORMAL = "<N>"
    tc.columns = 100
    tc.render.side_effect = lambda x: x  # pass through
    tc.term_stream = stream if stream is not None else StringIO()
    return tc


class TestTermControl(unittest.TestCase):
    def test_term_control_default_stdout(self):
        """Test TermControl when stream is None"""
        tc = TermControl()
        self.assertIsNotNone(tc)

    def test_term_control_no_tty(self):
        """Test TermControl when stream is not a TTY."""
        mock_stream = MagicMock()
        mock_stream.isatty.return_value = False

        tc = TermControl(term_stream=mock_stream)

        self.assertEqual(tc.BOL, "")
        self.assertEqual(tc.GREEN, "")
        self.assertIsNone(tc.columns)

    def test_term_control_curses_error(self):
        """Test TermControl handles curses setup errors gracefully."""
        mock_stream = MagicMock()
        mock_stream.isatty.return_value = True

        with patch("defdiff.progress.curses") as mock_curses:
            mock_curses.setupterm.side_effect = curses.error("Curses error")

            tc = TermControl(term_stream=mock_stream)
            self.assertEqual(tc.BOL, "")

    def test_term_control_color_always_forces_ansi(self):
        """Test color="always" falls back to ANSI colors without curses."""
        mock_stream = MagicMock()
        mock_stream.isatty.return_value = False

        with patch("defdiff.progress.curses") as mock_curses:
            mock_curses.setupterm.side_effect = curses.error("Curses error")

            tc = TermControl(term_stream=mock_stream, color="always")
            self.assertEqual(tc.RED, "\033[0;31m")
            self.assertEqual(tc.NORMAL, "\033[0m")
            self.assertEqual(tc.GREEN, "\033[0;32m")

    def test_term_control_init_success(self):
        """Test successful TermControl initialization with mocked curses."""
        mock_stream = MagicMock()
        mock_stream.isatty.return_value = True

        with patch("defdiff.progress.curses") as mock_curses:
            mock_curses.tigetnum.side_effect = lambda x: 80 if x == "cols" else 24
            mock_curses.tigetstr.side_effect = lambda x: (
                b"seq" if x in ["cr", "setaf"] else None
            )
            mock_curses.tparm.return_value = b"\x1b[30m"

            tc = TermControl(term_stream=mock_stream)

            self.assertEqual(tc.columns, 80)
            self.assertEqual(tc.lines, 24)
            self.assertEqual(tc.BOL, "seq")
            self.assertEqual(tc.RED, "\x1b[30m")
            mock_curses.tparm.assert_any_call(b"seq", 6)

    def test_term_control_never_skips_colors(self):
        mock_stream = MagicMock()
        mock_stream.isatty.return_value = True

        with patch("defdiff.progress.curses") as mock_curses:
            mock_curses.tigetnum.return_value = 80
            mock_curses.tigetstr.return_value = b"seq"
            mock_curses.tparm.return_value = b"\x1b[30m"

            tc = TermControl(term_stream=mock_stream, color="never")
            self.assertEqual(tc.BOL, "seq")
            self.assertEqual(tc.GREEN, "")

    def test_term_control_render(self):
        """Test the render method replaces placeholders."""
        tc = TermControl(term_stream=MagicMock())
        tc.GREEN = "<G>"
        tc.NORMAL = "<N>"

        text = "This is ${GREEN}green${NORMAL}"
        rendered = tc.render(text)
        self.assertEqual(rendered, "This is <G>green<N>")

        self.assertEqual(tc.render("${UNKNOWN}text"), "text")

    def test_term_control_init_keyboard_interrupt(self):
        """Test that KeyboardInterrupt in setupterm is re-raised."""
        mock_stream = MagicMock()
        mock_stream.isatty.return_value = True

        with patch("defdiff.progress.curses") as mock_curses:
            mock_curses.setupterm.side_effect = KeyboardInterrupt()
            with self.assertRaises(KeyboardInterrupt):
                TermControl(term_stream=mock_stream)


class TestFlushGuard(unittest.TestCase):
    def test_flush_guard_broken_pipe(self):
        mock_stream = MagicMock()
        mock_stream.flush.side_effect = BrokenPipeError()
        mock_stream.fileno.return_value = 10

        with patch("defdiff.progress.os") as mock_os:
            mock_os.open.return_value = 999
            mock_os.devnull = "/dev/null"
            mock_os.O_WRONLY = 1

            with self.assertRaises(SystemExit):
                _flush_with_broken_pipe_guard(mock_stream)

            mock_os.open.assert_called_with("/dev/null", 1)
            mock_os.dup2.assert_called_with(999, 10)
            mock_os.close.assert_called_with(999)

    def test_flush_guard_no_flush_attr(self):
        mock_stream = MagicMock()
        del mock_stream.flush
        _flush_with_broken_pipe_guard(mock_stream)


class TestProgressBase(unittest.TestCase):
    def test_bad_child_no_FIXED(self):
        class BadProgress(ProgressBase):
            FIXED = -1

            def __init__(self):
                super().__init__()
                self.header = "Header"
                self.width = self._calculate_width(width=20)

            def _do_start(self):
                pass

            def _do_progress(self, done: int, message: Optional[str] = None):
                pass

            def _do_end(self, message: Optional[str] = None):
                pass

        with self.assertRaisesRegex(ValueError, "FIXED and header must be"):
            BadProgress()

    def test_bad_child_no_header(self):
        class BadProgress(ProgressBase):
            FIXED = 1

            def __init__(self):
                super().__init__()
                self.width = self._calculate_width(width=20)

            def _do_start(self):
                pass

            def _do_progress(self, done: int, message: Optional[str] = None):
                pass

            def _do_end(self, message: Optional[str] = None):
                pass

        with self.assertRaisesRegex(ValueError, "FIXED and header must be"):
            BadProgress()


class TestProgress(unittest.TestCase):
    def setUp(self):
        self.mock_tc = _mock_term_control()

    def test_init_valid(self):
        p = Progress("Header", tc=self.mock_tc)
        self.assertGreater(p.width, 10)

    def test_init_missing_capabilities(self):
        bad_tc = _mock_term_control()
        bad_tc.CLEAR_EOL = ""

        with self.assertRaisesRegex(ValueError, "Terminal does not support"):
            Progress("H", tc=bad_tc)

    def test_lifecycle(self):
        p = Progress("Test", tc=self.mock_tc, width=20)
        p.start(4)
        p.progress(0, "Exporting 'com.example'")
        output = self.mock_tc.term_stream.getvalue()
        self.assertIn("<HIDE_CURSOR>", output)
        self.assertIn("Test", output)
        self.assertIn("Exporting 'com.example'", output)

        p.end("Captured 4 domains")
        output = self.mock_tc.term_stream.getvalue()
        self.assertIn("100%", output)
        self.assertIn("<SHOW_CURSOR>", output)
        self.assertIn("Captured 4 domains", output)

    def test_message_truncated_to_budget(self):
        p = Progress("Test", tc=self.mock_tc, width=20)
        p.start(2)
        p.progress(0, "x" * 500)
        output = self.mock_tc.term_stream.getvalue()
        self.assertIn("x" * (p.budget - 3) + "...", output)
        self.assertNotIn("x" * p.budget, output)

    def test_lifecycle_cancel(self):
        p = Progress("Test", tc=self.mock_tc, width=20)
        p.start(10)
        p.progress(3, "step")
        p.cancel("Quit!")
        output = self.mock_tc.term_stream.getvalue()
        self.assertIn("<SHOW_CURSOR>", output)
        self.assertIn("Quit!", output)
        self.assertFalse(p.registered)

    def test_start_non_positive_raises(self):
        p = Progress("H", tc=self.mock_tc)

        with self.assertRaisesRegex(ValueError, "must be positive"):
            p.start(0)

    def test_progress_before_start_raises(self):
        p = Progress("H", tc=self.mock_tc)

        with self.assertRaisesRegex(ValueError, "called before start"):
            p.progress(1)

    def test_cancel_before_start_raises(self):
        p = Progress("H", tc=self.mock_tc)

        with self.assertRaisesRegex(
            ValueError, r"Progress.cancel\(\) called before start\(\)"
        ):
            p.cancel("BadQuit!")

    def test_progress_after_end_raises(self):
        p = Progress("P", tc=self.mock_tc)

        p.start(10)
        p.progress(10, "Stuff")
        p.end("Done!")

        with self.assertRaisesRegex(ValueError, "called before start"):
            p.progress(1, "More Stuff!")

    def test_done_greater_than_total_raises(self):
        p = Progress("H", tc=self.mock_tc)

        p.start(10)
        with self.assertRaisesRegex(ValueError, "cannot be > total"):
            p.progress(11)


class TestSimpleProgress(unittest.TestCase):
    def test_flow(self):
        mock_stream = StringIO()
        sp = SimpleProgress("Simple", term_stream=mock_stream, width=50)

        sp.start(100)
        sp.progress(50, "working")

        output = mock_stream.getvalue()
        self.assertIn(
            "Simple:  50% [=========================-------------------------] (working)",
            output,
        )

        sp.end("Finished")
        self.assertIn("Finished", mock_stream.getvalue())

    def test_progress_negative_raises(self):
        sp = SimpleProgress("S", term_stream=StringIO())

        sp.start(100)
        with self.assertRaises(ValueError):
            sp.progress(-1, "working")

    def test_end_before_start_raises(self):
        sp = SimpleProgress("S", term_stream=StringIO())

        with self.assertRaisesRegex(ValueError, "called before start"):
            sp.end("2BadMice!")


class TestNullProgress(unittest.TestCase):
    def test_lifecycle(self):
        np = NullProgress()
        np.start(10)
        np.progress(5)
        np.end()
        self.assertFalse(np.registered)

    def test_no_register(self):
        np = NullProgress(register=False)
        np.start(1)
        self.assertFalse(np.registered)
        np.end()

    def test_done_greater_than_total_raises(self):
        np = NullProgress()

        np.start(10)
        with self.assertRaisesRegex(ValueError, "cannot be > total"):
            np.progress(11)


class TestProgressFactory(unittest.TestCase):
    def test_get_progress_quiet(self):
        p = ProgressFactory.get_progress("H", quiet=True)
        self.assertIsInstance(p, NullProgress)

    def test_get_progress_simple(self):
        mock_stream = MagicMock()
        mock_stream.isatty.return_value = False

        p = ProgressFactory.get_progress("H", term_stream=mock_stream)
        self.assertIsInstance(p, SimpleProgress)

    def test_get_progress_fancy(self):
        mock_stream = MagicMock()
        mock_stream.isatty.return_value = True

        with patch("defdiff.progress.TermControl") as mock_tc_cls:
            mock_instance = mock_tc_cls.return_value
            mock_instance.CLEAR_EOL = "yes"
            mock_instance.UP = "yes"
            mock_instance.BOL = "yes"
            mock_instance.columns = 80

            p = ProgressFactory.get_progress("H", term_stream=mock_stream)
            self.assertIsInstance(p, Progress)

    def test_get_progress_fancy_fallback(self):
        mock_stream = MagicMock()
        mock_stream.isatty.return_value = True

        with patch("defdiff.progress.TermControl") as mock_tc_cls:
            mock_instance = mock_tc_cls.return_value
            mock_instance.CLEAR_EOL = ""
            mock_instance.UP = ""
            mock_instance.BOL = ""
            mock_instance.columns = 80

            p = ProgressFactory.get_progress("H", term_stream=mock_stream)
            self.assertIsInstance(p, SimpleProgress)

    def test_progress_factory_missing_isatty_attr(self):
        class DumbStream:
            pass

        p = ProgressFactory.get_progress("H", term_stream=DumbStream())
        self.assertIsInstance(p, SimpleProgress)
