"""console progress for mirror lookups and downloads."""

import sys
from contextlib import contextmanager
from functools import partial
from typing import Callable, Iterator, Optional
from rich.console import Console
from rich.progress import (
    Progress,
    SpinnerColumn,
    TextColumn,
    BarColumn,
    DownloadColumn,
    TransferSpeedColumn,
    TimeRemainingColumn,
)


def _ignore(nbytes: int):
    pass


class ProgressManager:
    """hands out spinners and download bars, or silent stand-ins off a terminal."""

    def __init__(self, console: Optional[Console] = None, enabled: Optional[bool] = None):
        """
        args:
            console: rich console to draw on. a new one is created if omitted.
            enabled: force progress on or off. by default only shown on a tty.
        """
        self.console = console or Console()
        self._enabled = self._should_show_progress() if enabled is None else enabled

    def _should_show_progress(self) -> bool:
        return sys.stdout.isatty() and not sys.stdout.closed

    @contextmanager
    def spinner(self, description: str, transient: bool = True):
        """
        show a spinner while something of unknown length runs.

        yields:
            task id for the spinner, or None when progress is disabled
        """
        if not self._enabled:
            yield None
            return

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=self.console,
            transient=transient,
        ) as progress:
            yield progress.add_task(description, total=None)

    @contextmanager
    def download(self, filename: str, total: int) -> Iterator[Callable[[int], None]]:
        """
        a byte-counting bar for one archive download.

        yields:
            callable taking the number of bytes just written
        """
        if not self._enabled:
            yield _ignore
            return

        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            console=self.console,
        ) as progress:
            task_id = progress.add_task(f"downloading {filename}", total=total)
            yield partial(progress.advance, task_id)
