# Copyright Red Hat
#
# defdiff/progress.py - Defaults diff terminal progress indicator
#
# This file is part of the defdiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Terminal control and progress indicator
"""
from typing import Dict, List, Optional, TextIO
from datetime import datetime, timedelta
from abc import ABC, abstractmethod
import curses
import sys
import os
import re

from defdiff import register_progress, unregister_progress

#: Default number of columns if not detected from terminal.
DEFAULT_COLUMNS = 80

#: Minimum width of a progress bar.
PROGRESS_MIN_WIDTH = 10

#: Minimum budget to reserve for status messages
MIN_BUDGET = 10

#: Default width of a progress bar as a fraction of the terminal size.
DEFAULT_WIDTH_FRAC = 0.5

#: Maximum redraws per second for ``Progress``
DEFAULT_FPS = 10


class TermControl:
    """
    Portable terminal control sequences and colors.

    Uses terminfo (via ``curses``) to look up the control sequences for the
    current terminal. Each attribute holds the sequence for an action, or
    the empty string if the terminal does not support it, so that output
    built from these attributes degrades to plain text:

        >>> term = TermControl()
        >>> print("Domain " + term.GREEN + "added" + term.NORMAL)

    ``render()`` expands ``${NAME}`` references in a template string.
    """

    # Cursor movement:
    BOL: str = ""  #: Move the cursor to the beginning of the line
    UP: str = ""  #: Move the cursor up one line

    # Deletion:
    CLEAR_EOL: str = ""  #: Clear to the end of the line.

    # Output modes:
    BOLD: str = ""  #: Turn on bold mode
    NORMAL: str = ""  #: Turn off all modes

    # Cursor display:
    HIDE_CURSOR: str = ""  #: Make the cursor invisible
    SHOW_CURSOR: str = ""  #: Make the cursor visible

    # Foreground colors:
    RED: str = ""  #: Removed keys
    GREEN: str = ""  #: Added keys and the progress bar
    YELLOW: str = ""  #: Modified keys
    CYAN: str = ""  #: Progress header

    # Terminal size:
    columns: Optional[int] = None  #: Terminal width
    lines: Optional[int] = None  #: Terminal height

    _STRING_CAPABILITIES: List[str] = (
        "BOL:cr UP:cuu1 CLEAR_EOL:el BOLD:bold NORMAL:sgr0 "
        "HIDE_CURSOR:civis SHOW_CURSOR:cnorm"
    ).split()

    #: ANSI color number of each color attribute.
    _ANSI_COLORS: Dict[str, int] = {"RED": 1, "GREEN": 2, "YELLOW": 3, "CYAN": 6}

    def _force_ansi(self):
        for color, number in self._ANSI_COLORS.items():
            setattr(self, color, f"\033[0;{30 + number}m")
        self.NORMAL = "\033[0m"

    def __init__(self, term_stream: Optional[TextIO] = None, color: str = "auto"):
        """
        Initialize terminal capabilities and size information.

        If the output stream is not a tty or terminal setup fails,
        the instance will have no terminal capabilities (all control
        attributes remain empty strings or None).

        :param term_stream: Output stream to query for capabilities.
        :type term_stream: ``Optional[TextIO]``
        :param color: A string to control color rendering: "auto", "always", or
                      "never".
        :type color: ``str``
        """
        if term_stream is None:
            term_stream = sys.stdout

        self.term_stream = term_stream

        if color != "always":
            if not hasattr(term_stream, "isatty") or not term_stream.isatty():
                return

        try:
            curses.setupterm()
        # curses.error cannot be named in an except clause on all builds.
        except BaseException as err:  # pylint: disable=broad-exception-caught
            if isinstance(err, (KeyboardInterrupt, SystemExit)):  # pragma: no cover
                raise
            if color == "always":
                self._force_ansi()
            return  # pragma: no cover

        self.columns = curses.tigetnum("cols")
        self.lines = curses.tigetnum("lines")

        for capability in self._STRING_CAPABILITIES:
            (attr, cap_name) = capability.split(":")
            setattr(self, attr, self._tigetstr(cap_name) or "")

        if color != "never":
            set_fg_ansi = self._tigetstr("setaf")
            if set_fg_ansi:
                set_fg_ansi = set_fg_ansi.encode("utf8")
                for name, number in self._ANSI_COLORS.items():
                    seq = curses.tparm(set_fg_ansi, number).decode("utf8")
                    setattr(self, name, seq or "")

    def _tigetstr(self, cap_name):
        # Strip terminfo padding delays of the form "$<2>".
        cap = curses.tigetstr(cap_name)
        cap = cap.decode(encoding="utf8") if cap else ""
        return cap.split("$", maxsplit=1)[0]

    def render(self, template):
        """
        Expand each ``${NAME}`` in ``template`` to the matching control
        string. Unknown names expand to the empty string.

        :param template: Template string containing ${NAME} patterns.
        :type template: ``str``
        :returns: The rendered string.
        :rtype: ``str``
        """
        return re.sub(
            r"\$\{(\w+)\}", lambda match: getattr(self, match.group(1), ""), template
        )


def _flush_with_broken_pipe_guard(stream: TextIO) -> None:
    """
    Handle ``BrokenPipeError`` when attempting to flush output streams.

    :param stream: The stream to flush.
    :type stream: TextIO
    """
    if stream is None or not hasattr(stream, "flush"):
        return
    try:
        stream.flush()
    except BrokenPipeError as err:
        devnull = os.open(os.devnull, os.O_WRONLY)
        try:
            if hasattr(stream, "fileno"):
                os.dup2(devnull, stream.fileno())
        finally:
            os.close(devnull)
        raise SystemExit() from err


class ProgressBase(ABC):
    """
    An abstract progress reporting class.
    """

    FIXED = -1

    def __init__(self, register: bool = True):
        self.total: int = 0
        self.header: Optional[str] = None
        self.term: Optional[TermControl] = None
        self.stream: Optional[TextIO] = None
        self.width: int = -1
        self.first_update: bool = True
        self.registered: bool = False
        self.register: bool = register

    def reset_position(self):
        """Mark progress bar as displaced by external output."""
        self.first_update = True

    def _calculate_width(self, width: Optional[int] = None) -> int:
        """
        Calculate the width of the progress bar body.

        :param width: An optional width value in characters. If unset half
                      of the terminal width remaining after the header is
                      used.
        :type width: ``Optional[int]``
        :returns: The calculated progress bar width in characters.
        :rtype: ``int``
        :raises ``ValueError``: If FIXED is negative or header is unset.
        """
        if self.FIXED < 0 or self.header is None:
            raise ValueError(
                f"{self.__class__.__name__}: FIXED and header must be "
                "initialised before calculating the bar width"
            )

        if width is not None:
            return width

        columns = DEFAULT_COLUMNS
        if self.term is not None and self.term.columns:
            columns = self.term.columns

        fixed = self.FIXED + len(self.header)
        return max(PROGRESS_MIN_WIDTH, round((columns - fixed) * DEFAULT_WIDTH_FRAC))

    def start(self, total: int):
        """
        Begin a progress run with the specified ``total``.

        :param total: The total number of expected progress items.
        :type total: ``int``
        """
        if total <= 0:
            raise ValueError("total must be positive.")

        self.total = total

        if self.register:
            register_progress(self)

        self._do_start()

    @abstractmethod
    def _do_start(self):
        """Hook invoked when progress begins."""

    def _check_in_progress(self, done: int, step: str):
        theclass = self.__class__.__name__
        if self.total == 0:
            raise ValueError(f"{theclass}.{step}() called before start()")

        if done < 0:
            raise ValueError(f"{theclass}.{step}() done cannot be negative.")

        if done > self.total:
            raise ValueError(f"{theclass}.{step}() done cannot be > total.")

    def progress(self, done: int, message: Optional[str] = None):
        """
        Advance the progress indicator to the specified ``done`` count.

        :param done: The number of completed progress items.
        :type done: ``int``
        :param message: An optional progress message.
        :type message: ``Optional[str]``
        """
        self._check_in_progress(done, "progress")
        self._do_progress(done, message)

    @abstractmethod
    def _do_progress(self, done: int, message: Optional[str] = None):
        """Hook for subclasses to update the progress display."""

    def end(self, message: Optional[str] = None):
        """
        End the progress run and finalize the display.

        :param message: An optional completion message.
        :type message: ``Optional[str]``
        """
        self._check_in_progress(self.total, "end")
        self.progress(self.total, "")
        self._do_end(message)
        self.total = 0
        if self.registered:
            unregister_progress(self)

    @abstractmethod
    def _do_end(self, message: Optional[str] = None):
        """Hook for subclasses to finalize the progress display."""

    def cancel(self, message: Optional[str] = None):
        """
        End the progress run with error and finalize the display.

        :param message: An optional error message.
        :type message: ``Optional[str]``
        """
        self._check_in_progress(self.total, "cancel")
        self._do_end(message=message)
        self.total = 0
        if self.registered:
            unregister_progress(self)


class Progress(ProgressBase):
    """
    A 2-line progress bar redrawn in place on a terminal:

        Capturing domains:  20% [=========------------------------------]
                           progress message
    """

    BAR = (
        "${BOLD}${CYAN}%s${NORMAL}: %3d%% "
        "${GREEN}[${BOLD}%s%s${NORMAL}${GREEN}]${NORMAL}\n"
    )  #: Progress bar format string

    FIXED = 9  #: Length of fixed characters in BAR.

    def __init__(
        self,
        header,
        register: bool = True,
        width: Optional[int] = None,
        tc: Optional[TermControl] = None,
    ):
        """
        Initialise a two-line terminal progress renderer.

        :param header: The progress header to display.
        :type header: ``str``
        :param register: Register this ``Progress`` for log callbacks.
        :type register: ``bool``
        :param width: An optional bar width in characters.
        :type width: ``Optional[int]``
        :param tc: An optional ``TermControl`` for the output stream.
        :type tc: ``Optional[TermControl]``
        :raises ValueError: If terminal lacks required capabilities.
        """
        super().__init__(register=register)

        self.header = header
        self.term = tc or TermControl()
        self.stream = self.term.term_stream

        if not (self.term.CLEAR_EOL and self.term.UP and self.term.BOL):
            raise ValueError("Terminal does not support required control characters.")

        self.width = self._calculate_width(width=width)
        self.pbar: Optional[str] = None
        self.budget: int = max(MIN_BUDGET, (self.term.columns or DEFAULT_COLUMNS) - 10)
        self._interval = timedelta(seconds=1.0 / DEFAULT_FPS)
        self._last: Optional[datetime] = None

    def _do_start(self):
        self.pbar = self.term.render(self.BAR)
        self.first_update = True
        self._last = datetime.now() - self._interval

    def _do_progress(self, done: int, message: Optional[str] = None):
        message = message or ""
        percent = float(done) / float(self.total)
        n = int((self.width - 10) * percent)

        now = datetime.now()
        if done < self.total and now - self._last < self._interval:
            return
        self._last = now

        if self.first_update:
            prefix = self.term.HIDE_CURSOR + self.term.BOL
            self.first_update = False
        else:
            prefix = 2 * (self.term.BOL + self.term.UP + self.term.CLEAR_EOL)

        if len(message) > self.budget:
            message = message[0 : self.budget - 3] + "..."

        bar = self.pbar % (
            self.header,
            percent * 100,
            "=" * n,
            "-" * (self.width - 10 - n),
        )
        print(
            prefix + bar + self.term.CLEAR_EOL + message + "\n",
            file=self.stream,
            end="",
        )
        _flush_with_broken_pipe_guard(self.stream)

    def _do_end(self, message: Optional[str] = None):
        print(
            2 * (self.term.BOL + self.term.UP + self.term.CLEAR_EOL)
            + self.term.SHOW_CURSOR
            + self.term.NORMAL,
            file=self.stream,
            end="",
        )
        if message:
            print(message, file=self.stream)
        _flush_with_broken_pipe_guard(self.stream)


class SimpleProgress(ProgressBase):
    """
    A simple progress bar that does not rely on terminal capabilities.
    """

    BAR = "%s: %3d%% [%s%s] (%s)"  #: Progress bar format string
    FIXED = 12  #: Length of fixed characters in BAR.

    def __init__(
        self,
        header,
        register: bool = True,
        term_stream: Optional[TextIO] = None,
        width: Optional[int] = None,
    ):
        super().__init__(register=register)
        self.header = header
        self.stream = term_stream or sys.stdout
        self.width = self._calculate_width(width=width)

    def _do_start(self):
        return

    def _do_progress(self, done: int, message: Optional[str] = None):
        percent = float(done) / float(self.total)
        n = int(self.width * percent)

        print(
            self.BAR
            % (
                self.header,
                percent * 100,
                "=" * n,
                "-" * (self.width - n),
                message or "",
            ),
            file=self.stream,
        )
        _flush_with_broken_pipe_guard(self.stream)

    def _do_end(self, message: Optional[str] = None):
        if message:
            print(message, file=self.stream)

        _flush_with_broken_pipe_guard(self.stream)


class NullProgress(ProgressBase):
    """
    A progress class that produces no output.
    """

    def _do_start(self):
        return

    def _do_progress(self, done: int, message: Optional[str] = None):
        return

    def _do_end(self, message: Optional[str] = None):
        return


class ProgressFactory:
    """
    A factory for constructing progress objects.
    """

    @staticmethod
    def get_progress(
        header: str,
        quiet: bool = False,
        term_stream: Optional[TextIO] = None,
        term_control: Optional[TermControl] = None,
        width: Optional[int] = None,
        register: bool = True,
    ) -> ProgressBase:
        """
        Return an appropriate ProgressBase implementation: ``NullProgress``
        if ``quiet`` is set, ``SimpleProgress`` if the output stream is not a
        terminal and ``Progress`` otherwise.

        :param header: The progress report header.
        :type header: ``str``
        :param quiet: Suppress all output.
        :type quiet: ``bool``
        :param term_stream: An optional ``TextIO`` output object.
                            Defaults to ``sys.stdout`` if unspecified.
        :type term_stream: ``Optional[TextIO]``
        :param term_control: An optional ``TermControl`` object to use
                             for the progress report. Overrides
                             ``term_stream`` if set.
        :type term_control: ``Optional[TermControl]``
        :param width: An optional bar width in characters.
        :type width: ``Optional[int]``
        :param register: Register the new object with the log system for
                         notification callbacks.
        :type register: ``bool``
        :returns: An appropriate progress implementation.
        :rtype: ``ProgressBase``
        """
        if term_control:
            term_stream = term_control.term_stream

        term_stream = term_stream or sys.stdout
        if quiet:
            return NullProgress(register=register)
        if not hasattr(term_stream, "isatty") or not term_stream.isatty():
            return SimpleProgress(
                header, register=register, term_stream=term_stream, width=width
            )
        try:
            return Progress(
                header,
                register=register,
                width=width,
                tc=term_control or TermControl(term_stream=term_stream),
            )
        except ValueError:
            return SimpleProgress(
                header, register=register, term_stream=term_stream, width=width
            )
