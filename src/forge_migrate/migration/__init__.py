"""Migration orchestration and outcome types."""

from .orchestrator import MigrationOrchestrator, RunState
from .outcome import MigrationOutcome, MigrationStatus, MigrationSummary

__all__ = [
    'MigrationOrchestrator',
    'MigrationOutcome',
    'MigrationStatus',
    'MigrationSummary',
    'RunState',
]
