#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
State persistence for resumable runs.
Stores the set of file paths already processed as a JSON list.
"""

import json
import threading
from pathlib import Path
from typing import Iterable, Iterator, List, Set, Union

from .log import get_logger


class ProcessedSet:
    """
    Resumability ledger of file paths already handled.

    Loaded once at startup and only ever grown during a run. ``save()``
    rewrites the whole file under an exclusive lock, so the persisted set
    after a run always contains the set it was loaded with.
    """

    def __init__(self, state_file: Union[str, Path]):
        self.state_file = Path(state_file)
        self._paths: Set[str] = set()
        self._lock = threading.Lock()
        self.logger = get_logger()

    def load(self) -> int:
        """Load state from file. Returns number of paths loaded."""
        paths: Set[str] = set()

        if self.state_file.exists():
            try:
                with open(self.state_file, 'r', encoding='utf-8') as f:
                    data = json.load(f)
                if isinstance(data, list):
                    paths = {str(p) for p in data}
                else:
                    self.log(f"Ignoring state file with unexpected layout: {self.state_file}")
            except (json.JSONDecodeError, OSError) as e:
                self.log(f"Could not read state file {self.state_file}: {e}")

        with self._lock:
            self._paths |= paths
            return len(self._paths)

    def save(self) -> bool:
        """Write the full set to disk. Failures are logged, not raised."""
        with self._lock:
            snapshot = sorted(self._paths)
            try:
                self.state_file.parent.mkdir(parents=True, exist_ok=True)
                tmp_file = self.state_file.with_name(self.state_file.name + '.tmp')
                with open(tmp_file, 'w', encoding='utf-8') as f:
                    json.dump(snapshot, f, ensure_ascii=False)
                tmp_file.replace(self.state_file)
                return True
            except OSError as e:
                self.log(f"Failed to save state: {e}")
                return False

    def add(self, path: Union[str, Path]) -> None:
        with self._lock:
            self._paths.add(str(path))

    def pending(self, paths: Iterable[str]) -> List[str]:
        """Paths not yet processed, in their original order"""
        with self._lock:
            return [p for p in paths if str(p) not in self._paths]

    def clear_file(self) -> bool:
        """Delete the state file. Returns True if one was removed."""
        with self._lock:
            self._paths.clear()
            if self.state_file.exists():
                self.state_file.unlink()
                return True
            return False

    def log(self, message: str) -> None:
        self.logger.info(f"[State] {message}")

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return str(path) in self._paths

    def __iter__(self) -> Iterator[str]:
        with self._lock:
            return iter(sorted(self._paths))

    def __len__(self) -> int:
        with self._lock:
            return len(self._paths)

    def __repr__(self) -> str:
        return f"ProcessedSet(path={self.state_file}, size={len(self)})"
