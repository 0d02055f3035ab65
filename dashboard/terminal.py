#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Live terminal dashboard.

Renders overall progress, outcome counters, one row per worker with a
colored state indicator, and the tail of the log.
"""

import threading
from typing import Optional

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.table import Table
from rich.text import Text

from orchestrator.log import recent_lines
from orchestrator.queue import Outcome, RunStats

OUTCOME_STYLES = {
    Outcome.RECOVERED.value: "green",
    Outcome.RENAMED.value: "cyan",
    Outcome.SIMULATED.value: "blue",
    Outcome.SKIPPED.value: "yellow",
    Outcome.FAILED.value: "red",
    Outcome.CORRUPTED.value: "magenta",
}


def _shorten(path: str, width: int = 60) -> str:
    if len(path) <= width:
        return path
    return "..." + path[-(width - 3):]


def _format_elapsed(seconds: float) -> str:
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    return f"{hours:d}:{minutes:02d}:{secs:02d}"


class TerminalDashboard:
    """
    Rich live view over a RunStats instance.

    Usage:
        with TerminalDashboard(stats):
            orchestrator.run()
    """

    def __init__(self, stats: RunStats, console: Optional[Console] = None,
                 refresh_per_second: float = 4, log_lines: int = 8):
        self.stats = stats
        self.console = console or Console()
        self.refresh_per_second = refresh_per_second
        self.log_lines = log_lines
        self._live: Optional[Live] = None
        self._lock = threading.Lock()

    def render(self) -> Panel:
        """Build the renderable for the current snapshot"""
        snapshot = self.stats.snapshot()

        header = Text()
        header.append(f"{snapshot['phase']}", style="bold")
        header.append(f"  mode: {snapshot['mode']}")
        header.append(f"  {snapshot['processed']}/{snapshot['total']} ({snapshot['percent']:.0f}%)")
        header.append(f"  elapsed {_format_elapsed(snapshot['elapsed'])}")
        if snapshot['stopped']:
            header.append("  STOPPING", style="bold red")
        elif snapshot['paused']:
            header.append("  PAUSED", style="bold yellow")

        bar = ProgressBar(total=max(snapshot['total'], 1), completed=snapshot['processed'])

        counters = Text()
        for outcome, count in snapshot['counts'].items():
            counters.append(f"{outcome}: {count}  ", style=OUTCOME_STYLES.get(outcome, ""))

        workers = Table(expand=True, show_edge=False)
        workers.add_column("", width=2)
        workers.add_column("Worker", justify="right", width=6)
        workers.add_column("Files", justify="right", width=6)
        workers.add_column("Current")
        for worker in snapshot['workers']:
            if worker['busy']:
                indicator = Text("●", style="bold green")
            elif worker['last_outcome']:
                indicator = Text("●", style=OUTCOME_STYLES.get(worker['last_outcome'], "white"))
            else:
                indicator = Text("○", style="dim")
            workers.add_row(indicator, str(worker['slot']), str(worker['count']),
                            _shorten(worker['current']))

        log_tail = Text("\n".join(recent_lines(self.log_lines)), style="dim", overflow="ellipsis")

        return Panel(
            Group(header, bar, counters, workers, log_tail),
            title="TrackFix",
            border_style="blue"
        )

    def start(self) -> None:
        with self._lock:
            if self._live is not None:
                return
            self._live = Live(
                get_renderable=self.render,
                console=self.console,
                refresh_per_second=self.refresh_per_second,
                transient=False
            )
            self._live.start()

    def stop(self) -> None:
        with self._lock:
            if self._live is None:
                return
            self._live.stop()
            self._live = None

    def __enter__(self) -> "TerminalDashboard":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
