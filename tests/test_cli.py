"""Tests for CLI interface."""

import os
from datetime import datetime
from unittest.mock import AsyncMock, Mock, patch

import pytest
from click.testing import CliRunner

from forge_migrate.api.exceptions import ConfigError, FetchHTTPError
from forge_migrate.cli.main import (
    EXIT_NOTHING_MIGRATED,
    EXIT_OK,
    _load_config,
    _run_migration,
    _setup_logging_with_config,
    cli,
    exit_code_for,
)
from forge_migrate.config.config import Config
from forge_migrate.migration.outcome import (
    MigrationOutcome,
    MigrationStatus,
    MigrationSummary,
)
from forge_migrate.models.repository import MigrationReceipt, Repository

CONFIG_YAML = """
source:
  type: github
  username: alice
  token: ghp_sourcesecret

target:
  type: gitea
  domain: git.example.com
  username: alice
  token: gitea_targetsecret
"""


def make_config(**migration):
    return Config(
        source={'type': 'github', 'username': 'alice', 'token': 'src-token'},
        target={
            'type': 'gitea',
            'domain': 'git.example.com',
            'username': 'alice',
            'token': 'dst-token',
        },
        migration=migration,
    )


def make_summary(*statuses):
    outcomes = [
        MigrationOutcome(
            repository=f'repo{i}',
            status=status,
            error_type='ConflictError' if status == MigrationStatus.FAILED else None,
            attempts=1,
        )
        for i, status in enumerate(statuses)
    ]
    now = datetime.now()
    return MigrationSummary(outcomes=outcomes, started_at=now, completed_at=now)


class TestCLI:
    """Test CLI commands."""

    def setup_method(self):
        """Set up test fixtures."""
        self.runner = CliRunner()

    def test_cli_help(self):
        """Test CLI help command."""
        result = self.runner.invoke(cli, ['--help'])

        assert result.exit_code == 0
        assert 'Forge Migration Tool' in result.output
        assert 'init' in result.output
        assert 'migrate' in result.output
        assert 'validate' in result.output
        assert 'status' in result.output

    def test_cli_version(self):
        """Test CLI version command."""
        result = self.runner.invoke(cli, ['--version'])

        assert result.exit_code == 0
        assert '0.1.0' in result.output

    def test_init_command(self, tmp_path):
        """Test init command."""
        config_path = tmp_path / 'test_config.yaml'

        result = self.runner.invoke(cli, ['init', '--output', str(config_path)])

        assert result.exit_code == 0
        assert 'Configuration template created' in result.output
        content = config_path.read_text()
        assert 'source:' in content
        assert 'target:' in content
        assert 'migration:' in content

    def test_init_command_default_output(self):
        """Test init command with default output."""
        with self.runner.isolated_filesystem():
            result = self.runner.invoke(cli, ['init'])

            assert result.exit_code == 0
            assert os.path.exists('forge-migrate.yaml')

    def test_status_command(self, tmp_path):
        """Test status shows the configuration but never the tokens."""
        config_path = tmp_path / 'config.yaml'
        config_path.write_text(CONFIG_YAML)

        result = self.runner.invoke(cli, ['--config', str(config_path), 'status'])

        assert result.exit_code == 0
        assert 'Migration Configuration' in result.output
        assert 'git.example.com' in result.output
        assert 'set' in result.output
        assert 'ghp_sourcesecret' not in result.output
        assert 'gitea_targetsecret' not in result.output

    @patch('forge_migrate.cli.main._load_config')
    def test_status_command_failure(self, mock_load_config):
        """Test status command failure."""
        mock_load_config.side_effect = ConfigError('Failed to load status')

        result = self.runner.invoke(cli, ['status'])

        assert result.exit_code == 1
        assert 'Failed to load status' in result.output

    def test_missing_config_option_path(self):
        """Test a --config path that does not exist is rejected."""
        result = self.runner.invoke(cli, ['--config', '/nonexistent.yaml', 'status'])

        assert result.exit_code == 2


class TestMigrateCommand:
    """Test the migrate command."""

    def setup_method(self):
        """Set up test fixtures."""
        self.runner = CliRunner()

    @patch('forge_migrate.cli.main._run_migration', new_callable=AsyncMock)
    @patch('forge_migrate.cli.main._load_config')
    def test_migrate_success(self, mock_load_config, mock_run_migration):
        """Test successful migrate command."""
        mock_load_config.return_value = make_config()
        mock_run_migration.return_value = make_summary(
            MigrationStatus.COMPLETED, MigrationStatus.FAILED
        )

        result = self.runner.invoke(cli, ['migrate'])

        assert result.exit_code == 0
        assert 'Starting migration process' in result.output
        assert 'Migration Summary' in result.output
        assert 'ConflictError: 1' in result.output
        assert '1 succeeded / 1 failed' in result.output
        mock_run_migration.assert_awaited_once()

    @patch('forge_migrate.cli.main._run_migration', new_callable=AsyncMock)
    @patch('forge_migrate.cli.main._load_config')
    def test_migrate_nothing_succeeded(self, mock_load_config, mock_run_migration):
        """Test a run where every repository failed exits with 2."""
        mock_load_config.return_value = make_config()
        mock_run_migration.return_value = make_summary(
            MigrationStatus.FAILED, MigrationStatus.FAILED
        )

        result = self.runner.invoke(cli, ['migrate'])

        assert result.exit_code == EXIT_NOTHING_MIGRATED
        assert '0 succeeded / 2 failed' in result.output

    @patch('forge_migrate.cli.main._run_migration', new_callable=AsyncMock)
    @patch('forge_migrate.cli.main._load_config')
    def test_migrate_overrides(self, mock_load_config, mock_run_migration):
        """Test --dry-run and --workers override the configuration."""
        mock_load_config.return_value = make_config()
        mock_run_migration.return_value = make_summary(MigrationStatus.SKIPPED)

        result = self.runner.invoke(cli, ['migrate', '--dry-run', '--workers', '4'])

        assert result.exit_code == 0
        assert 'dry-run mode' in result.output
        config = mock_run_migration.call_args.args[0]
        assert config.migration.dry_run is True
        assert config.migration.max_workers == 4

    @patch('forge_migrate.cli.main._run_migration', new_callable=AsyncMock)
    @patch('forge_migrate.cli.main._load_config')
    def test_migrate_invalid_workers(self, mock_load_config, mock_run_migration):
        """Test an out of range worker count is a configuration error."""
        mock_load_config.return_value = make_config()

        result = self.runner.invoke(cli, ['migrate', '--workers', '0'])

        assert result.exit_code == 1
        assert 'Configuration error' in result.output
        mock_run_migration.assert_not_called()

    @patch('forge_migrate.cli.main._load_config')
    def test_migrate_config_error(self, mock_load_config):
        """Test configuration errors exit with 1."""
        mock_load_config.side_effect = ConfigError('unsupported source forge type')

        result = self.runner.invoke(cli, ['migrate'])

        assert result.exit_code == 1
        assert 'Configuration error' in result.output

    @patch('forge_migrate.cli.main._run_migration', new_callable=AsyncMock)
    @patch('forge_migrate.cli.main._load_config')
    def test_migrate_fetch_error(self, mock_load_config, mock_run_migration):
        """Test a failed listing exits with 1."""
        mock_load_config.return_value = make_config()
        mock_run_migration.side_effect = FetchHTTPError(
            'HTTP 500', forge='github', status_code=500
        )

        result = self.runner.invoke(cli, ['migrate'])

        assert result.exit_code == 1
        assert 'Failed to fetch repositories' in result.output

    @patch('forge_migrate.cli.main._run_migration', new_callable=AsyncMock)
    @patch('forge_migrate.cli.main._load_config')
    def test_migrate_unexpected_error(self, mock_load_config, mock_run_migration):
        """Test unexpected errors exit with 1."""
        mock_load_config.return_value = make_config()
        mock_run_migration.side_effect = RuntimeError('boom')

        result = self.runner.invoke(cli, ['migrate'])

        assert result.exit_code == 1
        assert 'Migration failed' in result.output


class TestValidateCommand:
    """Test the validate command."""

    def setup_method(self):
        """Set up test fixtures."""
        self.runner = CliRunner()

    @patch('forge_migrate.cli.main.MigrationOrchestrator')
    @patch('forge_migrate.cli.main._load_config')
    def test_validate_success(self, mock_load_config, mock_orchestrator_class):
        """Test successful validate command."""
        mock_load_config.return_value = make_config()
        orchestrator = mock_orchestrator_class.return_value
        orchestrator.source_client.verify_credentials.return_value = True
        orchestrator.target_client.verify_credentials.return_value = True

        result = self.runner.invoke(cli, ['validate'])

        assert result.exit_code == 0
        assert 'Configuration validation completed' in result.output
        assert 'source credentials accepted by github.com' in result.output
        assert 'target credentials accepted by git.example.com' in result.output
        orchestrator.validate.assert_called_once()

    @patch('forge_migrate.cli.main.MigrationOrchestrator')
    @patch('forge_migrate.cli.main._load_config')
    def test_validate_rejected_token(self, mock_load_config, mock_orchestrator_class):
        """Test rejected credentials exit with 1."""
        mock_load_config.return_value = make_config()
        orchestrator = mock_orchestrator_class.return_value
        orchestrator.source_client.verify_credentials.return_value = True
        orchestrator.target_client.verify_credentials.return_value = False

        result = self.runner.invoke(cli, ['validate'])

        assert result.exit_code == 1
        assert 'target credentials rejected' in result.output

    @patch('forge_migrate.cli.main._load_config')
    def test_validate_bad_kind(self, mock_load_config):
        """Test an unsupported target kind fails validation."""
        config = make_config()
        mock_load_config.return_value = Config(
            source=config.source, target={'type': 'github', 'domain': 'x'}
        )

        result = self.runner.invoke(cli, ['validate'])

        assert result.exit_code == 1
        assert 'Validation failed' in result.output


class TestHelpers:
    """Test CLI helper functions."""

    def test_exit_code_for(self):
        """Test exit codes for run summaries."""
        assert exit_code_for(make_summary()) == EXIT_OK
        assert exit_code_for(make_summary(MigrationStatus.COMPLETED)) == EXIT_OK
        assert exit_code_for(make_summary(MigrationStatus.SKIPPED)) == EXIT_OK
        assert (
            exit_code_for(make_summary(MigrationStatus.COMPLETED, MigrationStatus.FAILED))
            == EXIT_OK
        )
        assert (
            exit_code_for(make_summary(MigrationStatus.FAILED)) == EXIT_NOTHING_MIGRATED
        )

    @patch('forge_migrate.config.config.Config.from_file')
    def test_load_config_with_file(self, mock_from_file, tmp_path):
        """Test loading config from specified file."""
        config_path = tmp_path / 'config.yaml'
        config_path.write_text(CONFIG_YAML)
        mock_ctx = Mock()
        mock_ctx.obj = {'config_path': str(config_path)}

        config = _load_config(mock_ctx)

        assert config is mock_from_file.return_value
        mock_from_file.assert_called_once_with(str(config_path))

    @patch('forge_migrate.cli.main.setup_logging')
    def test_setup_logging_with_config(self, mock_setup_logging):
        """Test the configured level, file and format reach the logger."""
        config = Config(
            logging={
                'level': 'warning',
                'file': 'logs/run.log',
                'format': '{level} {message}',
            }
        )
        mock_ctx = Mock()
        mock_ctx.obj = {'verbose': False}

        _setup_logging_with_config(mock_ctx, config)

        mock_setup_logging.assert_called_once_with(
            level='WARNING', log_file='logs/run.log', log_format='{level} {message}'
        )

    @patch('forge_migrate.cli.main.setup_logging')
    def test_setup_logging_verbose(self, mock_setup_logging):
        """Test --verbose forces debug output and keeps the default format."""
        mock_ctx = Mock()
        mock_ctx.obj = {'verbose': True}

        _setup_logging_with_config(mock_ctx, Config())

        mock_setup_logging.assert_called_once_with(
            level='DEBUG', log_file=None, log_format=None
        )

    @patch('forge_migrate.config.config.Config.from_env')
    def test_load_config_from_env(self, mock_from_env):
        """Test loading config from environment variables."""
        mock_ctx = Mock()
        mock_ctx.obj = {}

        with patch('pathlib.Path.exists', return_value=False):
            config = _load_config(mock_ctx)

        assert config is mock_from_env.return_value
        mock_from_env.assert_called_once()

    @patch('forge_migrate.migration.orchestrator.ForgeClientFactory.create_client')
    @pytest.mark.asyncio
    async def test_run_migration(self, mock_create_client):
        """Test the pipeline runs with fetched repositories."""
        source = Mock()
        source.fetch_repos.return_value = [
            Repository(name='repoA', clone_url='https://github.com/alice/repoA.git')
        ]
        target = Mock()
        target.migrate_repo.return_value = MigrationReceipt(repository='repoA')
        mock_create_client.side_effect = [source, target]

        summary = await _run_migration(make_config())

        assert summary.successful == 1
        target.migrate_repo.assert_called_once()

    @pytest.mark.asyncio
    async def test_run_migration_invalid_config(self):
        """Test the pipeline refuses an incomplete configuration."""
        config = Config(target={'type': 'gitea'})

        with pytest.raises(ConfigError):
            await _run_migration(config)
