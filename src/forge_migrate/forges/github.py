"""GitHub adapter. Source only: GitHub has no import-from-URL endpoint."""

from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

from ..api.exceptions import MalformedRequestError
from ..config.config import Config, ForgeInstanceConfig, ForgeKind
from ..models.repository import MigrationReceipt, Repository
from .base import (
    ForgeClient,
    require_credentials,
    require_field,
    translate_fetch_errors,
)

# GitHub silently caps per_page at 100
GITHUB_PAGE_SIZE = 100
PUBLIC_HOSTS = ('github.com', 'api.github.com', 'www.github.com')


class GitHubClient(ForgeClient):
    """GitHub and GitHub Enterprise Server."""

    kind = ForgeKind.GITHUB

    def api_root(self, forge_config: ForgeInstanceConfig) -> str:
        if forge_config.host in PUBLIC_HOSTS:
            return 'https://api.github.com'
        return f'{forge_config.base_url}/api/v3'

    def auth_options(
        self, forge_config: ForgeInstanceConfig
    ) -> Tuple[Dict[str, str], Optional[Tuple[str, str]]]:
        headers = {'Accept': 'application/vnd.github.v3+json'}
        auth = (forge_config.username, forge_config.token.get_secret_value())
        return headers, auth

    @staticmethod
    def _to_repository(record: Dict[str, Any]) -> Repository:
        return Repository(
            name=require_field(record, 'name'),
            clone_url=record.get('clone_url') or '',
            ssh_url=record.get('ssh_url'),
            html_url=record.get('html_url'),
            private=record.get('private'),
            description=record.get('description'),
        )

    def fetch_repos(self, config: Config) -> List[Repository]:
        source = config.source
        require_credentials(source, 'source')

        with translate_fetch_errors(self.kind.value), self.open(source) as http:
            records = http.get_paginated(
                f'/users/{quote(source.username, safe="")}/repos',
                params={'type': 'all'},
                per_page=GITHUB_PAGE_SIZE,
            )
            repositories = [self._to_repository(record) for record in records]

        self.logger.info(
            f'Found {len(repositories)} repositories for {source.username} '
            f'on {source.host}'
        )
        return repositories

    def migrate_repo(self, config: Config, repo: Repository) -> MigrationReceipt:
        raise MalformedRequestError(
            'GitHub cannot be a migration target: it has no import-from-URL API',
            repository=repo.name,
        )
