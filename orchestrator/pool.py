#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Fixed-size worker pool draining a shared queue of file paths.

Each worker owns one slot in RunStats and pulls paths until the queue is
empty or the run is stopped. Units are independent: a failure is recorded
as an outcome and the worker moves on to the next path.
"""

import queue
import threading
from concurrent.futures import ThreadPoolExecutor, wait, FIRST_EXCEPTION
from typing import Callable, Iterable, Optional

from .log import get_logger
from .queue import Outcome, RunStats
from .state import ProcessedSet

Handler = Callable[[str], Outcome]


class WorkerPool:
    """
    Runs ``handler`` over every path with ``threads`` workers.

    Usage:
        pool = WorkerPool(8, tagger_handler, stats, processed)
        pool.run(paths)
    """

    def __init__(
        self,
        threads: int,
        handler: Handler,
        stats: RunStats,
        processed: Optional[ProcessedSet] = None,
        save_every: int = 25,
        poll_interval: float = 0.5
    ):
        if threads < 1:
            raise ValueError("threads must be at least 1")
        self.threads = threads
        self.handler = handler
        self.stats = stats
        self.processed = processed
        self.save_every = max(1, save_every)
        self.poll_interval = poll_interval
        self.logger = get_logger()

        self._queue: "queue.Queue[str]" = queue.Queue()
        self._completed = 0
        self._completed_lock = threading.Lock()

    @property
    def name(self) -> str:
        return "Pool"

    def run(self, paths: Iterable[str]) -> RunStats:
        """
        Process all paths and block until done.

        The processed-set (if any) is saved every ``save_every`` completed
        files and once more when the run ends, including on interrupt.
        """
        for path in paths:
            self._queue.put(path)

        self.log(f"Starting {self.threads} workers for {self._queue.qsize()} files")

        executor = ThreadPoolExecutor(max_workers=self.threads, thread_name_prefix="trackfix")
        futures = [executor.submit(self._drain, slot_id) for slot_id in range(1, self.threads + 1)]

        try:
            pending = set(futures)
            while pending:
                done, pending = wait(pending, timeout=self.poll_interval, return_when=FIRST_EXCEPTION)
                for future in done:
                    # Worker loops never raise; surface bugs instead of hiding them
                    future.result()
        except KeyboardInterrupt:
            self.log("Interrupted, letting workers finish their current file")
            self.stats.stop()
            raise
        finally:
            executor.shutdown(wait=True)
            self.stats.finish()
            if self.processed is not None:
                self.processed.save()

        self.log(f"Workers finished: {self.stats.processed} files handled")
        return self.stats

    def _drain(self, slot_id: int) -> None:
        """Worker loop: pull paths until the queue is empty or the run stops"""
        while True:
            self.stats.wait_if_paused()
            if self.stats.stopped:
                return

            try:
                path = self._queue.get_nowait()
            except queue.Empty:
                return

            self.stats.begin(slot_id, path)
            try:
                outcome = self.handler(path)
            except Exception as e:
                self.log_error(f"Unhandled error on {path}: {e}")
                outcome = Outcome.CORRUPTED
            self.stats.record(slot_id, outcome)
            self._complete(path)
            self._queue.task_done()

    def _complete(self, path: str) -> None:
        if self.processed is None:
            return

        self.processed.add(path)
        with self._completed_lock:
            self._completed += 1
            batch_done = self._completed % self.save_every == 0
        if batch_done:
            self.processed.save()

    def log(self, message: str) -> None:
        self.logger.info(f"[{self.name}] {message}")

    def log_error(self, message: str) -> None:
        self.logger.error(f"[{self.name}] ERROR: {message}")

    def __repr__(self) -> str:
        return f"WorkerPool(threads={self.threads}, save_every={self.save_every})"
