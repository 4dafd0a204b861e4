"""Configuration management for the forge migration tool."""

import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
)

from ..api.exceptions import ConfigError


class ForgeKind(str, Enum):
    """Supported forge families."""

    GITHUB = 'github'
    GITLAB = 'gitlab'
    GITEA = 'gitea'
    FORGEJO = 'forgejo'


DEFAULT_DOMAINS = {
    ForgeKind.GITHUB: 'github.com',
    ForgeKind.GITLAB: 'gitlab.com',
    ForgeKind.GITEA: 'gitea.com',
    ForgeKind.FORGEJO: 'codeberg.org',
}

SOURCE_KINDS = frozenset(ForgeKind)
TARGET_KINDS = frozenset({ForgeKind.GITEA, ForgeKind.FORGEJO, ForgeKind.GITLAB})


def resolve_kind(value: str) -> Optional[ForgeKind]:
    """Return the ForgeKind for a configuration string, or None if unknown."""
    try:
        return ForgeKind(value)
    except ValueError:
        return None


class ForgeInstanceConfig(BaseModel):
    """Connection settings for one forge."""

    model_config = ConfigDict(frozen=True, extra='forbid')

    type: str = Field(..., description='Forge kind')
    domain: str = Field(default='', description='Forge host, optionally with scheme')
    username: str = Field(default='', description='Account username')
    token: SecretStr = Field(default=SecretStr(''), description='Access token')
    timeout: float = Field(default=30, description='Request timeout in seconds')
    rate_limit_per_second: float = Field(
        default=10.0, description='API requests per second limit'
    )

    @field_validator('type')
    @classmethod
    def normalize_type(cls, v: str) -> str:
        """Forge kinds are matched case-insensitively."""
        return v.strip().lower()

    @field_validator('domain', 'username')
    @classmethod
    def strip_value(cls, v: str) -> str:
        return v.strip().rstrip('/')

    @field_validator('timeout', 'rate_limit_per_second')
    @classmethod
    def validate_positive(cls, v: float) -> float:
        """Validate timeout and rate limit are positive."""
        if v <= 0:
            raise ValueError('Value must be positive')
        return v

    @property
    def kind(self) -> Optional[ForgeKind]:
        return resolve_kind(self.type)

    @property
    def effective_domain(self) -> str:
        """Configured domain, or the forge's canonical public host."""
        if self.domain:
            return self.domain
        kind = self.kind
        return DEFAULT_DOMAINS.get(kind, '') if kind else ''

    @property
    def base_url(self) -> str:
        """Web root of the forge; bare domains mean HTTPS."""
        domain = self.effective_domain
        if domain.startswith(('http://', 'https://')):
            return domain
        return f'https://{domain}'

    @property
    def host(self) -> str:
        return self.base_url.split('://', 1)[1]


class SourceForgeConfig(ForgeInstanceConfig):
    """Forge the repositories are listed from."""

    type: str = Field(default=ForgeKind.GITHUB.value, description='Source forge kind')


class TargetForgeConfig(ForgeInstanceConfig):
    """Forge the repositories are migrated to."""

    type: str = Field(default=ForgeKind.GITEA.value, description='Target forge kind')
    repo_owner: Optional[str] = Field(
        default=None, description='Namespace to create repositories under'
    )

    @property
    def owner(self) -> str:
        """Destination namespace, defaulting to the target username."""
        return (self.repo_owner or '').strip() or self.username


class MigrationConfig(BaseModel):
    """Migration behavior settings."""

    model_config = ConfigDict(frozen=True, extra='forbid')

    make_private: bool = Field(default=True, description='Create private repositories')
    enable_wiki: bool = Field(default=True, description='Migrate the wiki')
    enable_mirror: bool = Field(
        default=False, description='Keep pulling from the source as a mirror'
    )

    max_workers: int = Field(
        default=1, description='Concurrent repository migrations (1 = sequential)'
    )
    max_attempts: int = Field(
        default=3, description='Attempts per repository on transient errors'
    )
    retry_backoff: float = Field(
        default=2.0, description='Base backoff in seconds, doubled per retry'
    )
    import_poll_interval: float = Field(
        default=5.0, description='Seconds between import status polls'
    )
    import_timeout: float = Field(
        default=1800.0, description='Seconds to wait for an asynchronous import'
    )

    dry_run: bool = Field(default=False, description='List without migrating')

    @field_validator('max_workers')
    @classmethod
    def validate_max_workers(cls, v: int) -> int:
        """Forge APIs rate-limit, so concurrency stays low."""
        if not 1 <= v <= 16:
            raise ValueError('max_workers must be between 1 and 16')
        return v

    @field_validator('max_attempts')
    @classmethod
    def validate_max_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError('max_attempts must be at least 1')
        return v

    @field_validator('retry_backoff', 'import_poll_interval')
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError('Value must not be negative')
        return v

    @field_validator('import_timeout')
    @classmethod
    def validate_import_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError('import_timeout must be positive')
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(frozen=True)

    level: str = Field(default='INFO', description='Log level')
    file: Optional[str] = Field(default=None, description='Log file path')
    format: Optional[str] = Field(
        default=None, description='Console log format, built-in format when unset'
    )

    @field_validator('level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'Log level must be one of: {valid_levels}')
        return v.upper()


def _env_flag(name: str, default: str) -> bool:
    """Booleans are true only for the literal string 'true'."""
    return os.getenv(name, default) == 'true'


def _env_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    if value is None or value == '':
        return None
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f'{name} must be an integer, got {value!r}')


class Config(BaseModel):
    """Main configuration class. Built once per run and never mutated."""

    model_config = ConfigDict(frozen=True, extra='forbid')

    source: SourceForgeConfig = Field(
        default_factory=SourceForgeConfig, description='Source forge'
    )
    target: TargetForgeConfig = Field(
        default_factory=TargetForgeConfig, description='Target forge'
    )
    migration: MigrationConfig = Field(
        default_factory=MigrationConfig, description='Migration settings'
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description='Logging settings'
    )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """Build configuration, reporting validation problems as ConfigError."""
        try:
            return cls(**data)
        except ValidationError as e:
            raise ConfigError(f'Invalid configuration: {e}') from e

    @classmethod
    def from_file(cls, config_path: str) -> 'Config':
        """Load configuration from YAML file."""
        config_file = Path(config_path)

        if not config_file.exists():
            raise FileNotFoundError(f'Configuration file not found: {config_path}')

        with open(config_file, 'r', encoding='utf-8') as f:
            try:
                config_data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigError(f'Cannot parse {config_path}: {e}') from e

        if not isinstance(config_data, dict):
            raise ConfigError(f'{config_path} does not contain a mapping')

        return cls.from_dict(config_data)

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> 'Config':
        """Load configuration from environment variables and an optional .env."""
        load_dotenv(env_file)

        config_data = {
            'source': {
                'type': os.getenv('SOURCE_TYPE', ForgeKind.GITHUB.value),
                'domain': os.getenv('SOURCE_DOMAIN'),
                'username': os.getenv('SOURCE_USERNAME'),
                'token': os.getenv('SOURCE_TOKEN'),
            },
            'target': {
                'type': os.getenv('TARGET_TYPE', ForgeKind.GITEA.value),
                'domain': os.getenv('TARGET_DOMAIN'),
                'username': os.getenv('TARGET_USERNAME'),
                'token': os.getenv('TARGET_TOKEN'),
                'repo_owner': os.getenv('TARGET_REPO_OWNER') or None,
            },
            'migration': {
                'make_private': _env_flag('MAKE_PRIVATE', 'true'),
                'enable_wiki': _env_flag('ENABLE_WIKI', 'true'),
                'enable_mirror': _env_flag('ENABLE_MIRROR', 'false'),
                'max_workers': _env_int('MIGRATION_MAX_WORKERS'),
                'max_attempts': _env_int('MIGRATION_MAX_ATTEMPTS'),
            },
            'logging': {
                'level': os.getenv('LOG_LEVEL', 'INFO'),
                'file': os.getenv('LOG_FILE'),
            },
        }

        # Remove None values
        config_data = cls._remove_none_values(config_data)

        return cls.from_dict(config_data)

    @staticmethod
    def _remove_none_values(data: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively remove None values from dictionary."""
        if isinstance(data, dict):
            return {
                k: Config._remove_none_values(v)
                for k, v in data.items()
                if v is not None
            }
        return data

    def with_overrides(
        self, dry_run: Optional[bool] = None, max_workers: Optional[int] = None
    ) -> 'Config':
        """Return a copy with command line overrides applied."""
        updates: Dict[str, Any] = {}
        if dry_run is not None:
            updates['dry_run'] = dry_run
        if max_workers is not None:
            updates['max_workers'] = max_workers
        if not updates:
            return self

        migration_data = self.migration.model_dump()
        migration_data.update(updates)
        try:
            migration = MigrationConfig(**migration_data)
        except ValidationError as e:
            raise ConfigError(f'Invalid override: {e}') from e
        return self.model_copy(update={'migration': migration})


def create_template(output_path: str) -> None:
    """Create a configuration template file."""
    template_config = {
        'source': {
            'type': 'github',
            'domain': 'github.com',
            'username': 'your-source-username',
            'token': 'your-source-access-token',
            'timeout': 30,
        },
        'target': {
            'type': 'gitea',
            'domain': 'git.example.com',
            'username': 'your-target-username',
            'token': 'your-target-access-token',
            'repo_owner': None,
            'timeout': 30,
        },
        'migration': {
            'make_private': True,
            'enable_wiki': True,
            'enable_mirror': False,
            'max_workers': 1,
            'max_attempts': 3,
            'retry_backoff': 2.0,
            'dry_run': False,
        },
        'logging': {
            'level': 'INFO',
            'file': 'migration.log',
            'format': None,
        },
    }

    config_file = Path(output_path)
    config_file.parent.mkdir(parents=True, exist_ok=True)

    with open(config_file, 'w', encoding='utf-8') as f:
        yaml.dump(
            template_config, f, default_flow_style=False, indent=2, sort_keys=False
        )
