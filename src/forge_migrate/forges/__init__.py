"""Forge adapters implementing the ForgeClient capability."""

from .base import ForgeClient
from .factory import ForgeClientFactory
from .gitea import GiteaClient
from .github import GitHubClient
from .gitlab import GitLabClient

__all__ = [
    'ForgeClient',
    'ForgeClientFactory',
    'GiteaClient',
    'GitHubClient',
    'GitLabClient',
]
