"""Migration orchestrator: validate, fetch once, migrate each repository."""

import asyncio
import threading
import time
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

from loguru import logger

from ..api.exceptions import (
    ConfigError,
    MalformedRequestError,
    MigrateError,
    TransientError,
)
from ..config.config import SOURCE_KINDS, TARGET_KINDS, Config, resolve_kind
from ..forges.base import ForgeClient
from ..forges.factory import ForgeClientFactory
from ..models.repository import Repository
from .outcome import MigrationOutcome, MigrationStatus, MigrationSummary


class RunState(str, Enum):
    """Orchestrator run states, in order."""

    INIT = 'init'
    VALIDATED = 'validated'
    FETCHED = 'fetched'
    MIGRATING = 'migrating'
    DONE = 'done'


class MigrationOrchestrator:
    """Drives one migration run between two forges.

    A fetch failure stops the run. A migration failure is recorded for that
    repository only and the remaining repositories are still attempted.
    """

    def __init__(
        self,
        config: Config,
        source_client: Optional[ForgeClient] = None,
        target_client: Optional[ForgeClient] = None,
        sleep: Callable[[float], None] = time.sleep,
        on_outcome: Optional[Callable[[MigrationOutcome], None]] = None,
    ):
        """Initialize migration orchestrator.

        Args:
            config: Run configuration
            source_client: Adapter to list repositories with; resolved from
                config.source.type when omitted
            target_client: Adapter to migrate with; resolved from
                config.target.type when omitted
            sleep: Sleep function used between retries
            on_outcome: Called with each outcome as it is recorded
        """
        self.config = config
        self.source_client = source_client
        self.target_client = target_client
        self.on_outcome = on_outcome
        self._sleep = sleep
        self._cancelled = threading.Event()

        self.state = RunState.INIT
        self.repositories: List[Repository] = []
        self.summary: Optional[MigrationSummary] = None
        self.logger = logger.bind(component='MigrationOrchestrator')

    def _require_state(self, expected: RunState) -> None:
        if self.state != expected:
            raise RuntimeError(
                f'Expected state {expected.value}, orchestrator is {self.state.value}'
            )

    def validate(self) -> None:
        """Check kinds and credentials and resolve both adapters.

        Raises:
            ConfigError: If the configuration cannot drive a run
        """
        self._require_state(RunState.INIT)
        source, target = self.config.source, self.config.target
        problems = []

        source_kind = resolve_kind(source.type)
        if source_kind is None or source_kind not in SOURCE_KINDS:
            problems.append(f'unsupported source forge type {source.type!r}')
        target_kind = resolve_kind(target.type)
        if target_kind is None or target_kind not in TARGET_KINDS:
            supported = ', '.join(sorted(k.value for k in TARGET_KINDS))
            problems.append(
                f'unsupported target forge type {target.type!r} '
                f'(supported: {supported})'
            )

        if not source.username:
            problems.append('source username is required')
        if not source.token.get_secret_value():
            problems.append('source token is required')
        if not target.username:
            problems.append('target username is required')
        if not target.token.get_secret_value():
            problems.append('target token is required')
        if not target.domain:
            problems.append('target domain is required')

        if problems:
            raise ConfigError('Invalid configuration: ' + '; '.join(problems))

        if self.source_client is None:
            self.source_client = ForgeClientFactory.create_client(
                source_kind, source.rate_limit_per_second
            )
        if self.target_client is None:
            self.target_client = ForgeClientFactory.create_client(
                target_kind, target.rate_limit_per_second
            )

        self.state = RunState.VALIDATED
        self.logger.info(
            f'Configuration valid: {source.type}:{source.username}@{source.host} '
            f'-> {target.type}:{target.owner}@{target.host}'
        )

    def fetch(self) -> List[Repository]:
        """List the source repositories once.

        Raises:
            FetchError: Propagated; nothing is migrated without the full list
        """
        self._require_state(RunState.VALIDATED)
        self.repositories = list(self.source_client.fetch_repos(self.config))
        self.state = RunState.FETCHED
        self.logger.info(
            f'Found {len(self.repositories)} repositories on '
            f'{self.config.source.host}'
        )
        return self.repositories

    def cancel(self) -> None:
        """Stop starting new migrations. In-flight requests finish."""
        if not self._cancelled.is_set():
            self.logger.warning('Cancellation requested, no new migrations start')
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def _backoff(self, attempt: int, retry_after: Optional[float]) -> float:
        delay = self.config.migration.retry_backoff * (2 ** (attempt - 1))
        if retry_after:
            delay = max(delay, float(retry_after))
        return delay

    def _finish(
        self,
        repo: Repository,
        started_at: datetime,
        status: MigrationStatus,
        attempts: int = 0,
        error: Optional[BaseException] = None,
        message: Optional[str] = None,
        target_url: Optional[str] = None,
    ) -> MigrationOutcome:
        outcome = MigrationOutcome(
            repository=repo.name,
            status=status,
            error_type=type(error).__name__ if error is not None else None,
            error_message=str(error) if error is not None else message,
            attempts=attempts,
            target_url=target_url,
            started_at=started_at,
            completed_at=datetime.now(),
        )
        if status == MigrationStatus.COMPLETED:
            self.logger.info(f'✓ {outcome.describe()}')
        elif status == MigrationStatus.FAILED:
            self.logger.error(f'✗ {outcome.describe()}')
        else:
            self.logger.info(outcome.describe())

        if self.on_outcome is not None:
            self.on_outcome(outcome)
        return outcome

    def migrate_one(self, repo: Repository) -> MigrationOutcome:
        """Migrate a single repository, retrying transient failures.

        Never raises; every failure becomes a failed outcome.
        """
        started_at = datetime.now()
        settings = self.config.migration

        if self.cancelled:
            return self._finish(
                repo, started_at, MigrationStatus.SKIPPED, message='cancelled'
            )
        if settings.dry_run:
            return self._finish(
                repo, started_at, MigrationStatus.SKIPPED, message='dry run'
            )

        problem = repo.validation_problem()
        if problem:
            return self._finish(
                repo,
                started_at,
                MigrationStatus.FAILED,
                error=MalformedRequestError(problem, repository=repo.name),
            )

        attempt = 0
        while True:
            attempt += 1
            self.logger.info(f'Migrating {repo.name} (attempt {attempt})')
            try:
                receipt = self.target_client.migrate_repo(self.config, repo)
            except TransientError as e:
                if attempt >= settings.max_attempts or self.cancelled:
                    return self._finish(
                        repo, started_at, MigrationStatus.FAILED, attempt, error=e
                    )
                delay = self._backoff(attempt, e.retry_after)
                self.logger.warning(
                    f'{repo.name}: transient failure ({e}), retrying in {delay:.1f}s'
                )
                self._sleep(delay)
                if self.cancelled:
                    return self._finish(
                        repo, started_at, MigrationStatus.FAILED, attempt, error=e
                    )
                continue
            except MigrateError as e:
                return self._finish(
                    repo, started_at, MigrationStatus.FAILED, attempt, error=e
                )
            except Exception as e:
                self.logger.exception(f'Unexpected error migrating {repo.name}')
                return self._finish(
                    repo, started_at, MigrationStatus.FAILED, attempt, error=e
                )

            return self._finish(
                repo,
                started_at,
                MigrationStatus.COMPLETED,
                attempt,
                target_url=receipt.target_url,
            )

    async def migrate(self) -> MigrationSummary:
        """Migrate every fetched repository.

        At most ``max_workers`` migrations run at once. Outcomes keep fetch
        order whatever order they complete in.
        """
        self._require_state(RunState.FETCHED)
        self.state = RunState.MIGRATING
        started_at = datetime.now()
        max_workers = self.config.migration.max_workers
        semaphore = asyncio.Semaphore(max_workers)

        self.logger.info(
            f'Migrating {len(self.repositories)} repositories to '
            f'{self.config.target.host} with {max_workers} worker(s)'
        )

        async def process(repo: Repository) -> MigrationOutcome:
            async with semaphore:
                return await asyncio.to_thread(self.migrate_one, repo)

        outcomes = await asyncio.gather(*(process(r) for r in self.repositories))

        self.summary = MigrationSummary(
            outcomes=list(outcomes),
            started_at=started_at,
            completed_at=datetime.now(),
        )
        self.state = RunState.DONE
        self.logger.info(
            f'Migration finished: {self.summary.successful} succeeded, '
            f'{self.summary.failed} failed, {self.summary.skipped} skipped'
        )
        return self.summary

    async def run(self) -> MigrationSummary:
        """Validate, fetch and migrate.

        Raises:
            ConfigError: Before any network call
            FetchError: If the source list cannot be retrieved
        """
        self.validate()
        await asyncio.to_thread(self.fetch)
        return await self.migrate()
