"""Single progress counter shared by every algorithm family of a run"""
from typing import Any, Optional

from rich.console import Console
from rich.progress import (
    Progress,
    BarColumn,
    MofNCompleteColumn,
    TextColumn,
    TimeRemainingColumn,
)


class ProgressCounter:
    """
    Monotonic counter over all (k, variant, repetition) cells of a run

    Each family is given the offset at which its cells start, so the bar
    moves continuously across families. Rendering with rich is optional;
    the count is kept either way.

    Args:
        total: Number of cells in the whole run
        enabled: Render a progress bar
        description: Text shown next to the bar
        console: Console to render on
    """

    def __init__(
        self,
        total: int,
        enabled: bool = True,
        description: str = "Consensus clustering",
        console: Optional[Console] = None,
    ):
        self.total = total
        self.completed = 0
        self.description = description
        self._progress: Optional[Progress] = None
        self._task = None
        if enabled:
            self._progress = Progress(
                TextColumn("[cyan]{task.description}"),
                BarColumn(),
                MofNCompleteColumn(),
                TimeRemainingColumn(),
                console=console,
                transient=False,
            )

    def __enter__(self) -> "ProgressCounter":
        if self._progress is not None:
            self._progress.start()
            self._task = self._progress.add_task(self.description, total=self.total)
        return self

    def __exit__(self, *args: Any) -> None:
        if self._progress is not None:
            self._progress.stop()

    def update(self, completed: int) -> None:
        """Move the counter to an absolute position"""
        if completed < self.completed:
            raise ValueError(f"Progress must not go backwards ({completed} < {self.completed})")
        if completed > self.total:
            raise ValueError(f"Progress {completed} exceeds total {self.total}")
        self.completed = completed
        if self._progress is not None:
            self._progress.update(self._task, completed=completed)
