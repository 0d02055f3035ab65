#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
TrackFix Orchestrator - Main orchestration class.

Runs the full batch:
    Check folder -> Fix permissions -> Discover -> Dry sample -> Real run

Usage:
    from orchestrator.config import ConfigManager
    from orchestrator.orchestrator import TrackFixOrchestrator

    orch = TrackFixOrchestrator(ConfigManager('trackfix.yaml'))
    summary = orch.run()
"""

from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import ConfigManager
from .log import get_logger
from .pool import WorkerPool
from .queue import Outcome, RunStats
from .state import ProcessedSet

from agents import ScannerAgent, TaggerAgent
from sources import CoverArtSource, MetadataSource, MusicBrainzSource


class TrackFixError(Exception):
    """Base error for conditions that abort a run"""


class LibraryNotFoundError(TrackFixError):
    """The music folder does not exist"""


class TrackFixOrchestrator:
    """
    Central orchestrator for a TrackFix run.

    Owns the processed-set, the shared RunStats read by the dashboards,
    and the agents the worker pool calls into.
    """

    def __init__(
        self,
        config: ConfigManager,
        source: Optional[MetadataSource] = None,
        covers: Optional[CoverArtSource] = None,
        stats: Optional[RunStats] = None
    ):
        """
        Initialize orchestrator.

        Args:
            config: Loaded configuration
            source: Recording lookup service (MusicBrainz by default)
            covers: Cover art client (created when embedding is enabled)
            stats: Shared stats, created if not given
        """
        self.config = config
        self.logger = get_logger()

        if source is None:
            source = MusicBrainzSource(
                user_agent=config.user_agent,
                timeout=config.lookup_timeout,
                rate_limit=config.lookup_rate_limit
            )
        if covers is None and config.embed_cover:
            covers = CoverArtSource(size=config.cover_size, timeout=config.cover_timeout)

        self.scanner = ScannerAgent(config)
        self.tagger = TaggerAgent(config, source, covers, scanner=self.scanner)
        self.processed = ProcessedSet(config.state_file)
        self.stats = stats or RunStats(config.threads)

        self.discovered: List[str] = []
        self.pending: List[str] = []
        self.switched_to_real: Optional[bool] = None
        self.state_saved = False

    @property
    def name(self) -> str:
        return "TrackFix"

    # ==================== Steps ====================

    def check_library(self) -> Path:
        root = self.config.library_root
        if not root.is_dir():
            raise LibraryNotFoundError(f"Music folder does not exist: {root}")
        return root

    def fix_permissions(self) -> int:
        """
        Apply the configured mode to everything under the library root.

        Returns:
            Number of entries that could not be changed
        """
        root = self.config.library_root
        mode = self.config.permissions_mode
        failures = 0

        for path in [root, *root.rglob('*')]:
            try:
                path.chmod(mode)
            except OSError:
                failures += 1

        if failures:
            self.log(f"Fixed permissions under {root} ({failures} entries could not be changed)")
        else:
            self.log(f"Fixed permissions recursively under {root}")
        return failures

    def discover(self) -> List[str]:
        """Find audio files and drop those already in the processed-set"""
        self.discovered = self.scanner.find_audio_files(self.config.library_root)

        if self.config.resumable:
            loaded = self.processed.load()
            self.pending = self.processed.pending(self.discovered)
            self.log(
                f"Resuming: {loaded} already processed, "
                f"{len(self.pending)} of {len(self.discovered)} files pending"
            )
        else:
            self.pending = list(self.discovered)

        return self.pending

    def run(self) -> Dict[str, Any]:
        """
        Run the whole batch.

        Returns:
            Summary dict (see summary())

        Raises:
            LibraryNotFoundError: music folder missing
            KeyboardInterrupt: after a real run has saved its processed-set
        """
        root = self.check_library()
        self.log(f"Starting run under {root} with {self.config.threads} threads")

        if self.config.fix_perms:
            self.stats.phase = "permissions"
            self.fix_permissions()

        self.stats.phase = "discovery"
        pending = self.discover()

        try:
            if self.config.auto_dry_real:
                if not self._dry_sample(pending):
                    self.stats.phase = "aborted"
                    return self.summary()
                dry_run = False
            else:
                dry_run = self.config.dry_run

            if not self.stats.stopped:
                self._run_pass(pending, dry_run)
        except KeyboardInterrupt:
            self.stats.phase = "interrupted"
            if self.config.resumable and self.stats.mode == "real":
                self.state_saved = self.processed.save()
            self.log("Run interrupted, state saved" if self.state_saved else "Run interrupted")
            raise

        self.stats.phase = "stopped" if self.stats.stopped else "finished"
        summary = self.summary()
        self.log(f"Finished processing: {summary['counts']}")
        return summary

    def _dry_sample(self, pending: List[str]) -> bool:
        """
        Dry-run the first files and decide whether to switch to real mode.

        Returns:
            True if the problem ratio is within the configured limit
        """
        sample = pending[:self.config.dry_run_sample]
        self.log(f"Dry run over {len(sample)} sample files before switching to real mode")
        self._run_pass(sample, dry_run=True)

        ratio = self.stats.problem_ratio()
        limit = self.config.max_failure_ratio
        self.switched_to_real = ratio <= limit and not self.stats.stopped

        if self.switched_to_real:
            self.log(f"Dry run looks good ({ratio:.0%} problems), switching to real mode")
        else:
            self.log(f"Dry run problem ratio {ratio:.0%} exceeds {limit:.0%}, not switching to real mode")
        return self.switched_to_real

    def _run_pass(self, paths: List[str], dry_run: bool) -> RunStats:
        mode = "dry" if dry_run else "real"
        self.stats.reset(len(paths), mode)
        self.stats.phase = f"{mode} run"

        # Dry passes never touch the ledger
        processed = self.processed if (self.config.resumable and not dry_run) else None

        def handle(path: str) -> Outcome:
            result = self.tagger.process(path, dry_run=dry_run)
            if result.new_path and processed is not None:
                processed.add(result.new_path)
            return result.outcome

        pool = WorkerPool(
            self.config.threads,
            handle,
            self.stats,
            processed=processed,
            save_every=self.config.save_every
        )
        return pool.run(paths)

    # ==================== Status ====================

    def summary(self) -> Dict[str, Any]:
        snapshot = self.stats.snapshot()
        return {
            'library_root': str(self.config.library_root),
            'phase': snapshot['phase'],
            'mode': snapshot['mode'],
            'discovered': len(self.discovered),
            'pending': len(self.pending),
            'processed': snapshot['processed'],
            'counts': snapshot['counts'],
            'switched_to_real': self.switched_to_real,
            'state_file': str(self.processed.state_file),
            'state_size': len(self.processed),
            'elapsed': snapshot['elapsed']
        }

    def log(self, message: str) -> None:
        self.logger.info(f"[{self.name}] {message}")


# Convenience function
def create_orchestrator(config_path: str = "trackfix.yaml") -> TrackFixOrchestrator:
    """Create and return an orchestrator instance"""
    return TrackFixOrchestrator(ConfigManager(config_path))
