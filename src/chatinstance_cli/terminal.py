from __future__ import annotations

import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TextIO

_SPINNER_FRAMES = "⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏"


class Spinner:
    """Thread-based spinner that renders on the current line using \\r."""

    def __init__(self, out: TextIO, label: str = " Thinking..."):
        self._out = out
        self._label = label
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._frame_width = 1 + len(label)

    def start(self) -> None:
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        if self._stop.is_set():
            return
        self._stop.set()
        if self._thread:
            self._thread.join()
        self._out.write("\r" + " " * self._frame_width + "\r")
        self._out.flush()

    def _run(self) -> None:
        i = 0
        try:
            while not self._stop.is_set():
                frame = _SPINNER_FRAMES[i % len(_SPINNER_FRAMES)] + self._label
                self._out.write("\r" + frame)
                self._out.flush()
                self._stop.wait(0.08)
                i += 1
        except (UnicodeEncodeError, OSError):
            pass  # Terminal doesn't support these characters; fail silently


class Terminal:
    """User-facing output sink. Everything the user reads goes through here."""

    def __init__(self, out: TextIO | None = None, *, spinner: bool | None = None):
        self._out = out or sys.stdout
        if spinner is None:
            isatty = getattr(self._out, "isatty", None)
            spinner = bool(isatty and isatty())
        self._spinner_enabled = spinner

    def write(self, text: str) -> None:
        self._out.write(text)
        self._out.flush()

    def line(self, text: str = "") -> None:
        self.write(text + "\n")

    def error(self, message: str) -> None:
        self.line(f"Error: {message}")

    @contextmanager
    def spinner(self, label: str = " Thinking...") -> Iterator[None]:
        if not self._spinner_enabled:
            yield
            return
        spinner = Spinner(self._out, label=label)
        spinner.start()
        try:
            yield
        finally:
            spinner.stop()
