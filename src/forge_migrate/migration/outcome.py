"""Per-repository migration outcomes and the run summary."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class MigrationStatus(str, Enum):
    """Migration status enumeration."""

    COMPLETED = 'completed'
    FAILED = 'failed'
    SKIPPED = 'skipped'


class MigrationOutcome(BaseModel):
    """Result of migrating one repository."""

    repository: str = Field(..., description='Source repository name')
    status: MigrationStatus = Field(..., description='Migration status')

    # Error information
    error_type: Optional[str] = Field(
        default=None, description='Exception class name if failed'
    )
    error_message: Optional[str] = Field(
        default=None, description='Error or skip reason'
    )

    attempts: int = Field(default=0, description='Migration requests issued')
    target_url: Optional[str] = Field(default=None, description='Destination URL')

    # Timing information
    started_at: datetime = Field(default_factory=datetime.now)
    completed_at: Optional[datetime] = Field(default=None)

    @property
    def success(self) -> bool:
        return self.status == MigrationStatus.COMPLETED

    @property
    def retries(self) -> int:
        return max(self.attempts - 1, 0)

    def describe(self) -> str:
        """One line for the per-repository report."""
        if self.status == MigrationStatus.COMPLETED:
            suffix = f' after {self.retries} retries' if self.retries else ''
            return f'{self.repository}: migrated{suffix}'
        if self.status == MigrationStatus.SKIPPED:
            return f'{self.repository}: skipped ({self.error_message})'
        return f'{self.repository}: {self.error_type}: {self.error_message}'


class MigrationSummary(BaseModel):
    """Summary of a run. Outcomes are in fetch order."""

    outcomes: List[MigrationOutcome] = Field(default_factory=list)
    started_at: datetime = Field(..., description='Run start time')
    completed_at: Optional[datetime] = Field(default=None)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def successful(self) -> int:
        return sum(1 for o in self.outcomes if o.status == MigrationStatus.COMPLETED)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.status == MigrationStatus.FAILED)

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes if o.status == MigrationStatus.SKIPPED)

    def outcome_for(self, repository: str) -> Optional[MigrationOutcome]:
        for outcome in self.outcomes:
            if outcome.repository == repository:
                return outcome
        return None

    def failures_by_type(self) -> dict:
        counts: dict = {}
        for outcome in self.outcomes:
            if outcome.status == MigrationStatus.FAILED:
                key = outcome.error_type or 'Error'
                counts[key] = counts.get(key, 0) + 1
        return counts
