from __future__ import annotations

import sys
from collections.abc import Callable
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Progress reporting for import runs.

The orchestrator reports through a plain callback
``(current, total, successful, failed) -> None`` called synchronously after
each unit of work (a row for flat imports, a document for grouped imports).
ProgressReporter guarantees exactly one final call with ``current == total``,
also when nothing succeeded or there was nothing to do.

TqdmProgress is the terminal sink used by the CLI: a single tqdm bar on a TTY
and nothing at all otherwise, so CI logs stay free of control sequences.
"""

__all__ = [
    "ProgressCallback",
    "ProgressReporter",
    "TqdmProgress",
    "is_tty_enabled",
]

ProgressCallback = Callable[[int, int, int, int], None]


def is_tty_enabled() -> bool:
    """Check if TTY output is enabled.

    Returns:
        True if stdout is a TTY and progress should be displayed, False otherwise
    """
    return sys.stdout.isatty()


class ProgressReporter:
    """Running position of one run, forwarded to an optional callback."""

    def __init__(self, total: int, callback: ProgressCallback | None = None) -> None:
        self.total = total
        self.callback = callback
        self.current = 0
        self.calls = 0
        self._final_sent = False

    def _emit(self, successful: int, failed: int) -> None:
        if self._final_sent:
            return
        if self.current == self.total:
            self._final_sent = True
        self.calls += 1
        if self.callback is not None:
            self.callback(self.current, self.total, successful, failed)

    def advance(self, count: int, successful: int, failed: int) -> None:
        """Move forward by ``count`` units and report."""
        if count <= 0:
            return
        self.current = min(self.total, self.current + count)
        self._emit(successful, failed)

    def finish(self, successful: int, failed: int) -> None:
        """Send the final ``current == total`` call unless it already went out."""
        self.current = self.total
        self._emit(successful, failed)


class TqdmProgress:
    """Progress callback drawing a tqdm bar (TTY only).

    Usable as a context manager; the bar is created lazily on the first call
    because the unit total is only known once the file has been parsed.
    """

    def __init__(self, description: str = "Importing", *, unit: str = "row") -> None:
        self.description = description
        self.unit = unit
        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None = None

    def __call__(self, current: int, total: int, successful: int, failed: int) -> None:
        if not self.enabled:
            return
        if self.pbar is None:
            self.pbar = tqdm(
                total=total,
                desc=self.description,
                unit=self.unit,
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        self.pbar.update(current - self.pbar.n)
        self.pbar.set_postfix(success=successful, failed=failed)
        if current >= total:
            self.close()

    def close(self) -> None:
        """Close the progress bar."""
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> TqdmProgress:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
