#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Run bookkeeping for the worker pool.
Per-file outcomes, per-worker slots and the shared counters read by the dashboards.
"""

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class Outcome(Enum):
    """Per-file processing outcome"""
    RECOVERED = "recovered"
    RENAMED = "renamed"
    SIMULATED = "simulated"
    SKIPPED = "skipped"
    FAILED = "failed"
    CORRUPTED = "corrupted"


# Outcomes counted against the automatic dry -> real switch
PROBLEM_OUTCOMES = (Outcome.FAILED, Outcome.CORRUPTED)


@dataclass
class WorkerSlot:
    """Progress counters for one worker slot"""
    slot_id: int
    current: str = ""
    count: int = 0
    busy: bool = False
    last_outcome: Optional[Outcome] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slot": self.slot_id,
            "current": self.current,
            "count": self.count,
            "busy": self.busy,
            "last_outcome": self.last_outcome.value if self.last_outcome else None
        }


class RunStats:
    """
    Shared state of one run.

    Slot fields are written only by the worker that currently owns the
    slot; totals are updated under a lock. Readers take ``snapshot()``.
    """

    def __init__(self, threads: int, total: int = 0):
        self.threads = threads
        self.total = total
        self.processed = 0
        self.counts: Dict[Outcome, int] = {outcome: 0 for outcome in Outcome}
        self.slots: Dict[int, WorkerSlot] = {i: WorkerSlot(i) for i in range(1, threads + 1)}
        self.mode = "dry"
        self.phase = "idle"
        self.started_at: Optional[float] = None
        self.finished_at: Optional[float] = None

        self._lock = threading.Lock()
        self._running = threading.Event()
        self._running.set()
        self._stopped = threading.Event()

    # ==================== Counters ====================

    def reset(self, total: int, mode: str) -> None:
        """Start a new pass over ``total`` files"""
        with self._lock:
            self.total = total
            self.processed = 0
            self.counts = {outcome: 0 for outcome in Outcome}
            for slot in self.slots.values():
                slot.current = ""
                slot.count = 0
                slot.busy = False
                slot.last_outcome = None
            self.mode = mode
            self.started_at = time.time()
            self.finished_at = None

    def begin(self, slot_id: int, path: str) -> None:
        slot = self.slots[slot_id]
        slot.current = path
        slot.count += 1
        slot.busy = True

    def record(self, slot_id: int, outcome: Outcome) -> None:
        slot = self.slots[slot_id]
        slot.busy = False
        slot.last_outcome = outcome
        with self._lock:
            self.counts[outcome] += 1
            self.processed += 1

    def finish(self) -> None:
        with self._lock:
            self.finished_at = time.time()
            for slot in self.slots.values():
                slot.busy = False

    def problem_ratio(self) -> float:
        """Share of processed files that failed or were unreadable"""
        with self._lock:
            if not self.processed:
                return 0.0
            problems = sum(self.counts[o] for o in PROBLEM_OUTCOMES)
            return problems / self.processed

    # ==================== Flow control ====================

    def pause(self) -> None:
        self._running.clear()

    def resume(self) -> None:
        self._running.set()

    def stop(self) -> None:
        self._stopped.set()
        # Release paused workers so they can see the stop flag
        self._running.set()

    @property
    def paused(self) -> bool:
        return not self._running.is_set()

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def wait_if_paused(self, poll: float = 0.2) -> None:
        """Block the calling worker while paused, until resumed or stopped"""
        while not self._running.wait(poll):
            if self._stopped.is_set():
                return

    # ==================== Snapshot ====================

    def elapsed(self) -> float:
        if self.started_at is None:
            return 0.0
        end = self.finished_at or time.time()
        return end - self.started_at

    def snapshot(self) -> Dict[str, Any]:
        """Point-in-time copy for dashboards and JSON output"""
        with self._lock:
            counts = {outcome.value: n for outcome, n in self.counts.items()}
            processed = self.processed
            total = self.total
        percent = (processed / total * 100) if total > 0 else 0.0

        return {
            "phase": self.phase,
            "mode": self.mode,
            "processed": processed,
            "total": total,
            "percent": round(percent, 1),
            "counts": counts,
            "elapsed": round(self.elapsed(), 1),
            "paused": self.paused,
            "stopped": self.stopped,
            "workers": [slot.to_dict() for slot in self.slots.values()]
        }

    def __repr__(self) -> str:
        return f"RunStats(processed={self.processed}, total={self.total}, mode={self.mode})"
