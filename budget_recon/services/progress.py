from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Progress display for source workbook loads (TTY only).

A single tqdm bar counts finished source loads. In non-TTY environments (CI,
piped output) the bar is disabled to avoid control sequence noise in logs.
"""

__all__ = [
    "LoadProgress",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class LoadProgress:
    """Progress bar over the source loads of one reconciliation run."""

    def __init__(self, total_sources: int, *, description: str = "Loading sources") -> None:
        self.total_sources = total_sources
        self.description = description
        self.finished = 0
        self.failed = 0

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_sources,
                desc=description,
                unit="file",
                leave=False,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def finish_source(self, name: str, success: bool = True) -> None:
        """Record one finished load (called from the main thread as futures complete)."""
        self.finished += 1
        if not success:
            self.failed += 1
        if self.pbar is not None:
            self.pbar.update(1)
            self.pbar.set_postfix(last=name, failed=self.failed)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> LoadProgress:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
