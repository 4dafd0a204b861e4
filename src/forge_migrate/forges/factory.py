"""Factory for resolving forge kinds to adapters."""

from typing import Dict, Optional, Type, Union

from ..api.exceptions import ConfigError
from ..api.rate_limiter import RateLimiter
from ..config.config import ForgeKind, resolve_kind
from .base import ForgeClient
from .gitea import GiteaClient
from .github import GitHubClient
from .gitlab import GitLabClient

ADAPTERS: Dict[ForgeKind, Type[ForgeClient]] = {
    ForgeKind.GITHUB: GitHubClient,
    ForgeKind.GITLAB: GitLabClient,
    ForgeKind.GITEA: GiteaClient,
    ForgeKind.FORGEJO: GiteaClient,
}


class ForgeClientFactory:
    """Factory for creating forge adapters."""

    @staticmethod
    def create_client(
        kind: Union[str, ForgeKind],
        rate_limit_per_second: Optional[float] = None,
    ) -> ForgeClient:
        """Create the adapter for a forge kind.

        Args:
            kind: Forge kind, e.g. 'github' or ForgeKind.FORGEJO
            rate_limit_per_second: Request rate shared by this adapter

        Returns:
            Forge adapter

        Raises:
            ConfigError: If the kind has no adapter
        """
        resolved = kind if isinstance(kind, ForgeKind) else resolve_kind(kind)
        if resolved is None:
            raise ConfigError(f'Unsupported forge type: {kind!r}')

        rate_limiter = None
        if rate_limit_per_second is not None:
            rate_limiter = RateLimiter(rate_limit_per_second)

        return ADAPTERS[resolved](kind=resolved, rate_limiter=rate_limiter)
