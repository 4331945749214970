"""Timing utilities"""
import time
from typing import Any
from rich.console import Console

console = Console()


class Timer:
    """Simple timer for profiling code sections"""

    def __init__(self, name: str = "Operation", quiet: bool = False):
        self.name = name
        self.quiet = quiet
        self.start_time: float = 0
        self.elapsed: float = 0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, *args: Any) -> None:
        self.elapsed = time.perf_counter() - self.start_time
        if not self.quiet:
            console.print(f"[cyan]{self.name}[/cyan] completed in [bold]{self.elapsed:.2f}s[/bold]")
