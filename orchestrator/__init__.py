# TrackFix Orchestration
# Core run engine: config, state, worker pool
#
# TrackFixOrchestrator lives in orchestrator.orchestrator and is not
# re-exported here, since agents and sources import from this package.

from .config import ConfigManager, ConfigError
from .state import ProcessedSet
from .queue import Outcome, RunStats, WorkerSlot
from .pool import WorkerPool

__all__ = [
    'ConfigManager',
    'ConfigError',
    'ProcessedSet',
    'Outcome',
    'RunStats',
    'WorkerSlot',
    'WorkerPool'
]
