"""Progress output for the tile builder."""

import sys
import threading


class Reporter:
    """Prints progress lines to stdout and problems to stderr.

    With quiet=True only errors are printed. Lines are written under a lock
    so output from worker threads does not interleave.
    """

    def __init__(self, quiet: bool = False):
        self.quiet = quiet
        self._lock = threading.Lock()

    def _emit(self, text: str, stream) -> None:
        with self._lock:
            print(text, file=stream, flush=True)

    def info(self, text: str = "") -> None:
        if not self.quiet:
            self._emit(text, sys.stdout)

    def warn(self, text: str) -> None:
        if not self.quiet:
            self._emit(f"⚠️  {text}", sys.stdout)

    def error(self, text: str) -> None:
        self._emit(f"❌ {text}", sys.stderr)

    def banner(self, title: str) -> None:
        if self.quiet:
            return
        width = 60
        self._emit("╔" + "═" * width + "╗", sys.stdout)
        self._emit("║  " + title.ljust(width - 2) + "║", sys.stdout)
        self._emit("╚" + "═" * width + "╝", sys.stdout)


# Shared default used when callers do not pass their own reporter
SILENT = Reporter(quiet=True)
