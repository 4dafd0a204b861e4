"""Main CLI entry point for the forge migration tool."""

import asyncio
import signal
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
)
from rich.table import Table

from ..api.exceptions import ConfigError, FetchError
from ..config.config import Config, create_template
from ..migration.orchestrator import MigrationOrchestrator
from ..migration.outcome import MigrationOutcome, MigrationStatus, MigrationSummary
from ..utils.logging import setup_logging

console = Console()

DEFAULT_CONFIG_PATHS = ['forge-migrate.yaml', 'config.yaml', 'config.yml']

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_NOTHING_MIGRATED = 2


@click.group()
@click.version_option(version='0.1.0', prog_name='forge-migrate')
@click.option(
    '--config',
    '-c',
    type=click.Path(exists=True),
    help='Path to configuration file',
)
@click.option(
    '--verbose',
    '-v',
    is_flag=True,
    help='Enable verbose logging',
)
@click.pass_context
def cli(ctx: click.Context, config: Optional[str], verbose: bool) -> None:
    """Forge Migration Tool - Migrate repositories between GitHub, GitLab, Gitea and Forgejo."""
    ctx.ensure_object(dict)

    if config:
        ctx.obj['config_path'] = config
    ctx.obj['verbose'] = verbose

    # Basic logging until the configuration is loaded
    setup_logging('DEBUG' if verbose else 'INFO')


@cli.command()
@click.option(
    '--output',
    '-o',
    default='forge-migrate.yaml',
    help='Output configuration file path',
)
def init(output: str) -> None:
    """Write a configuration template."""
    console.print(
        Panel.fit(
            '[bold green]Forge Migration Tool[/bold green]\n'
            'Initializing configuration...',
            border_style='green',
        )
    )

    try:
        create_template(output)
    except OSError as e:
        console.print(f'[red]✗[/red] Failed to create configuration: {e}')
        sys.exit(EXIT_ERROR)

    console.print(f'[green]✓[/green] Configuration template created at: {output}')
    console.print(
        f'[yellow]Please edit {output} with your source and target forge details'
        '[/yellow]'
    )


@cli.command()
@click.option(
    '--dry-run',
    is_flag=True,
    help='List the repositories without migrating them',
)
@click.option(
    '--workers',
    '-w',
    type=int,
    default=None,
    help='Concurrent migrations (default from configuration, 1 = sequential)',
)
@click.pass_context
def migrate(ctx: click.Context, dry_run: bool, workers: Optional[int]) -> None:
    """Migrate every source repository to the target forge."""
    console.print(
        Panel.fit(
            '[bold blue]Forge Migration Tool[/bold blue]\n'
            'Starting migration process...',
            border_style='blue',
        )
    )

    if dry_run:
        console.print(
            '[yellow]Running in dry-run mode - no changes will be made[/yellow]'
        )

    try:
        config = _load_config(ctx).with_overrides(
            dry_run=True if dry_run else None, max_workers=workers
        )
        _setup_logging_with_config(ctx, config)
        summary = asyncio.run(_run_migration(config))

    except (ConfigError, FileNotFoundError) as e:
        console.print(f'[red]✗[/red] Configuration error: {e}')
        sys.exit(EXIT_ERROR)
    except FetchError as e:
        console.print(f'[red]✗[/red] Failed to fetch repositories: {e}')
        sys.exit(EXIT_ERROR)
    except Exception as e:
        console.print(f'[red]✗[/red] Migration failed: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(EXIT_ERROR)

    _display_migration_summary(summary)
    sys.exit(exit_code_for(summary))


@cli.command()
@click.pass_context
def validate(ctx: click.Context) -> None:
    """Validate the configuration and credentials for both forges."""
    console.print(
        Panel.fit(
            '[bold cyan]Forge Migration Tool[/bold cyan]\nValidating configuration...',
            border_style='cyan',
        )
    )

    try:
        config = _load_config(ctx)
        orchestrator = MigrationOrchestrator(config)
        orchestrator.validate()
        console.print('[green]✓[/green] Configuration validation completed')

        results = [
            (
                'source',
                orchestrator.source_client.verify_credentials(config.source),
            ),
            (
                'target',
                orchestrator.target_client.verify_credentials(config.target),
            ),
        ]
    except Exception as e:
        console.print(f'[red]✗[/red] Validation failed: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(EXIT_ERROR)

    for role, ok in results:
        forge = getattr(config, role)
        if ok:
            console.print(f'[green]✓[/green] {role} credentials accepted by {forge.host}')
        else:
            console.print(f'[red]✗[/red] {role} credentials rejected by {forge.host}')

    if not all(ok for _, ok in results):
        sys.exit(EXIT_ERROR)


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show the effective configuration."""
    console.print(
        Panel.fit(
            '[bold magenta]Forge Migration Tool[/bold magenta]\nMigration Status',
            border_style='magenta',
        )
    )

    try:
        config = _load_config(ctx)
        _setup_logging_with_config(ctx, config)
    except Exception as e:
        console.print(f'[red]✗[/red] Failed to load status: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(EXIT_ERROR)

    def token_state(secret) -> str:
        return 'set' if secret.get_secret_value() else '[red]missing[/red]'

    def flag(value: bool) -> str:
        return '✓' if value else '✗'

    table = Table(title='Migration Configuration')
    table.add_column('Setting', style='cyan')
    table.add_column('Value', style='green')

    table.add_row('Source', f'{config.source.type} @ {config.source.host}')
    table.add_row('Source User', config.source.username or '[red]missing[/red]')
    table.add_row('Source Token', token_state(config.source.token))
    table.add_row('Target', f'{config.target.type} @ {config.target.host}')
    table.add_row('Target User', config.target.username or '[red]missing[/red]')
    table.add_row('Target Token', token_state(config.target.token))
    table.add_row('Target Owner', config.target.owner or '[red]missing[/red]')
    table.add_row('Make Private', flag(config.migration.make_private))
    table.add_row('Enable Wiki', flag(config.migration.enable_wiki))
    table.add_row('Enable Mirror', flag(config.migration.enable_mirror))
    table.add_row('Max Workers', str(config.migration.max_workers))
    table.add_row('Max Attempts', str(config.migration.max_attempts))

    console.print(table)


def exit_code_for(summary: MigrationSummary) -> int:
    """Exit status: failure only when repositories were tried and none made it."""
    if summary.failed and not summary.successful:
        return EXIT_NOTHING_MIGRATED
    return EXIT_OK


def _load_config(ctx: click.Context) -> Config:
    """Load configuration from file or environment."""
    config_path = ctx.obj.get('config_path')

    if config_path:
        if not Path(config_path).exists():
            raise FileNotFoundError(f'Configuration file not found: {config_path}')
        return Config.from_file(config_path)

    for path in DEFAULT_CONFIG_PATHS:
        if Path(path).exists():
            return Config.from_file(path)

    return Config.from_env()


def _setup_logging_with_config(ctx: click.Context, config: Config) -> None:
    """Setup logging with configuration from config file."""
    verbose = ctx.obj.get('verbose', False)
    log_level = 'DEBUG' if verbose else config.logging.level

    setup_logging(
        level=log_level,
        log_file=config.logging.file,
        log_format=config.logging.format,
    )


def _print_outcome(outcome: MigrationOutcome) -> None:
    if outcome.status == MigrationStatus.COMPLETED:
        console.print(f'[green]✓[/green] {outcome.describe()}')
    elif outcome.status == MigrationStatus.SKIPPED:
        console.print(f'[yellow]-[/yellow] {outcome.describe()}')
    else:
        console.print(f'[red]✗[/red] {outcome.describe()}')


async def _run_migration(config: Config) -> MigrationSummary:
    """Run the pipeline with a progress bar and signal-driven cancellation."""
    orchestrator = MigrationOrchestrator(config)
    orchestrator.validate()

    loop = asyncio.get_running_loop()
    handled = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, orchestrator.cancel)
            handled.append(sig)
        except (NotImplementedError, RuntimeError, ValueError):
            # Windows event loops and non-main threads cannot install handlers
            pass

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn('[progress.description]{task.description}'),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
        ) as progress:
            task = progress.add_task('[blue]Fetching repositories...', total=None)

            def on_outcome(outcome: MigrationOutcome) -> None:
                progress.update(task, advance=1)
                _print_outcome(outcome)

            orchestrator.on_outcome = on_outcome

            repositories = await asyncio.to_thread(orchestrator.fetch)
            progress.update(
                task,
                total=len(repositories),
                description=f'[blue]Migrating {len(repositories)} repositories',
            )
            summary = await orchestrator.migrate()
            progress.update(task, description='[green]Migration completed')
    finally:
        for sig in handled:
            loop.remove_signal_handler(sig)

    return summary


def _display_migration_summary(summary: MigrationSummary) -> None:
    """Display migration summary results."""
    table = Table(title='Migration Summary')
    table.add_column('Total', style='blue')
    table.add_column('Successful', style='green')
    table.add_column('Failed', style='red')
    table.add_column('Skipped', style='yellow')
    table.add_row(
        str(summary.total),
        str(summary.successful),
        str(summary.failed),
        str(summary.skipped),
    )
    console.print(table)

    if summary.completed_at:
        duration = summary.completed_at - summary.started_at
        console.print(f'\n[blue]Migration Duration:[/blue] {duration}')

    failures = summary.failures_by_type()
    if failures:
        console.print(f'\n[red]Errors ({summary.failed}):[/red]')
        for error_type, count in sorted(failures.items()):
            console.print(f'  • {error_type}: {count}')

    console.print(f'{summary.successful} succeeded / {summary.failed} failed')


def main() -> None:
    """Main entry point for the CLI application."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print('\n[red]Migration interrupted by user[/red]')
        sys.exit(EXIT_ERROR)


if __name__ == '__main__':
    main()
