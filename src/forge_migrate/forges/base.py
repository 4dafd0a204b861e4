"""Forge client capability interface and shared adapter helpers."""

import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple
from urllib.parse import quote, urlsplit, urlunsplit

from loguru import logger

from ..api.client import ForgeHTTPClient
from ..api.exceptions import (
    AuthError,
    ConfigError,
    ConflictError,
    FetchDecodeError,
    FetchHTTPError,
    FetchTransportError,
    ForgeAPIError,
    ForgeAuthenticationError,
    ForgeConflictError,
    ForgeDecodeError,
    ForgeRateLimitError,
    ForgeServerError,
    ForgeTransportError,
    MalformedRequestError,
    TransientError,
)
from ..api.rate_limiter import RateLimiter
from ..config.config import Config, ForgeInstanceConfig, ForgeKind
from ..models.repository import MigrationReceipt, Repository


@contextmanager
def translate_fetch_errors(forge: str) -> Iterator[None]:
    """Re-raise HTTP client errors as the FetchError family."""
    try:
        yield
    except ForgeDecodeError as e:
        raise FetchDecodeError(
            str(e), forge=forge, url=e.url, status_code=e.status_code, body=e.body
        ) from e
    except ForgeTransportError as e:
        raise FetchTransportError(str(e), forge=forge, url=e.url) from e
    except ForgeAPIError as e:
        raise FetchHTTPError(
            str(e), forge=forge, url=e.url, status_code=e.status_code, body=e.body
        ) from e


@contextmanager
def translate_migrate_errors(repository: str) -> Iterator[None]:
    """Re-raise HTTP client errors as the MigrateError family."""
    try:
        yield
    except ForgeAuthenticationError as e:
        raise AuthError(
            str(e), repository=repository, status_code=e.status_code, cause=e
        ) from e
    except ForgeConflictError as e:
        raise ConflictError(
            f'{repository} already exists at the destination: {e}',
            repository=repository,
            status_code=e.status_code,
            cause=e,
        ) from e
    except ForgeRateLimitError as e:
        raise TransientError(
            str(e),
            retry_after=e.retry_after,
            repository=repository,
            status_code=e.status_code,
            cause=e,
        ) from e
    except (ForgeServerError, ForgeTransportError) as e:
        raise TransientError(
            str(e), repository=repository, status_code=e.status_code, cause=e
        ) from e
    except ForgeAPIError as e:
        raise MalformedRequestError(
            str(e), repository=repository, status_code=e.status_code, cause=e
        ) from e


def validate_migration_input(config: Config, repo: Repository) -> None:
    """Reject a migration that must not reach the network."""
    problem = repo.validation_problem()
    if problem:
        raise MalformedRequestError(problem, repository=repo.name)

    target = config.target
    missing = [
        field
        for field, value in (
            ('username', target.username),
            ('token', target.token.get_secret_value()),
            ('domain', target.domain),
        )
        if not value
    ]
    if missing:
        raise MalformedRequestError(
            f'target {", ".join(missing)} not configured', repository=repo.name
        )


def require_credentials(forge_config: ForgeInstanceConfig, role: str) -> None:
    if not forge_config.username:
        raise ConfigError(f'{role} username is required')
    if not forge_config.token.get_secret_value():
        raise ConfigError(f'{role} token is required')


def with_credentials(url: str, username: str, token: str) -> str:
    """Embed credentials in an HTTP(S) URL as userinfo. Never log the result."""
    parts = urlsplit(url)
    host = parts.hostname or ''
    if parts.port:
        host = f'{host}:{parts.port}'
    userinfo = f'{quote(username, safe="")}:{quote(token, safe="")}'
    return urlunsplit(parts._replace(netloc=f'{userinfo}@{host}'))


def require_field(record: Any, key: str) -> Any:
    """Fetch a mandatory key from an API record or fail decoding."""
    if not isinstance(record, dict) or not record.get(key):
        raise ForgeDecodeError(f'Repository record without {key!r}: {record!r:.200}')
    return record[key]


class ForgeClient(ABC):
    """Capability interface every forge adapter implements."""

    kind: ForgeKind

    def __init__(
        self,
        kind: Optional[ForgeKind] = None,
        rate_limiter: Optional[RateLimiter] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize forge adapter.

        Args:
            kind: Forge kind reported in errors, defaults to the adapter's own
            rate_limiter: Shared rate limiter; built from config when omitted
            sleep: Sleep function used while polling
            clock: Monotonic clock used for poll deadlines
        """
        if kind is not None:
            self.kind = kind
        self.rate_limiter = rate_limiter
        self._sleep = sleep
        self._clock = clock
        self._lock = threading.Lock()
        self.logger = logger.bind(component=self.__class__.__name__)

    @abstractmethod
    def api_root(self, forge_config: ForgeInstanceConfig) -> str:
        """REST API root URL for the configured host."""

    @abstractmethod
    def auth_options(
        self, forge_config: ForgeInstanceConfig
    ) -> Tuple[Dict[str, str], Optional[Tuple[str, str]]]:
        """Headers and optional basic auth pair for this forge."""

    @abstractmethod
    def fetch_repos(self, config: Config) -> List[Repository]:
        """List every repository of the configured source user.

        Raises:
            FetchError: On transport, HTTP or decoding failure
        """

    @abstractmethod
    def migrate_repo(self, config: Config, repo: Repository) -> MigrationReceipt:
        """Create the repository on the configured target from its clone URL.

        Raises:
            MigrateError: On any failure for this repository
        """

    def _rate_limiter_for(self, forge_config: ForgeInstanceConfig) -> RateLimiter:
        with self._lock:
            if self.rate_limiter is None:
                self.rate_limiter = RateLimiter(forge_config.rate_limit_per_second)
            return self.rate_limiter

    def open(self, forge_config: ForgeInstanceConfig) -> ForgeHTTPClient:
        """Open an authenticated HTTP client for one forge."""
        headers, auth = self.auth_options(forge_config)
        return ForgeHTTPClient(
            self.api_root(forge_config),
            headers=headers,
            auth=auth,
            timeout=forge_config.timeout,
            rate_limiter=self._rate_limiter_for(forge_config),
        )

    def verify_credentials(self, forge_config: ForgeInstanceConfig) -> bool:
        """Check the token against the forge's current-user endpoint."""
        with self.open(forge_config) as http:
            return http.test_connection('/user')
