"""Gitea adapter, also used for Forgejo which keeps the Gitea API."""

from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

from ..config.config import Config, ForgeInstanceConfig, ForgeKind
from ..models.repository import MigrationReceipt, Repository
from .base import (
    ForgeClient,
    require_credentials,
    require_field,
    translate_fetch_errors,
    translate_migrate_errors,
    validate_migration_input,
)

# Default [api] MAX_RESPONSE_ITEMS on Gitea and Forgejo
GITEA_PAGE_SIZE = 50


class GiteaClient(ForgeClient):
    """Gitea and Forgejo.

    ``POST /repos/migrate`` clones the source before it answers, so a 201
    response means the repository exists and is populated. With ``mirror``
    set the target keeps pulling from the source on its mirror interval.
    """

    kind = ForgeKind.GITEA

    def api_root(self, forge_config: ForgeInstanceConfig) -> str:
        return f'{forge_config.base_url}/api/v1'

    def auth_options(
        self, forge_config: ForgeInstanceConfig
    ) -> Tuple[Dict[str, str], Optional[Tuple[str, str]]]:
        token = forge_config.token.get_secret_value()
        return {'Authorization': f'token {token}'}, None

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
                per_page=GITEA_PAGE_SIZE,
                page_size_param='limit',
            )
            repositories = [self._to_repository(record) for record in records]

        self.logger.info(
            f'Found {len(repositories)} repositories for {source.username} '
            f'on {source.host}'
        )
        return repositories

    @staticmethod
    def build_payload(config: Config, repo: Repository) -> Dict[str, Any]:
        settings = config.migration
        payload: Dict[str, Any] = {
            'clone_addr': repo.clone_url,
            'repo_name': repo.name,
            'repo_owner': config.target.owner,
            'service': 'git',
            'private': settings.make_private,
            'wiki': settings.enable_wiki,
            'mirror': settings.enable_mirror,
        }
        if repo.description:
            payload['description'] = repo.description

        source_token = config.source.token.get_secret_value()
        if source_token and config.source.username:
            payload['auth_username'] = config.source.username
            payload['auth_password'] = source_token
        return payload

    def migrate_repo(self, config: Config, repo: Repository) -> MigrationReceipt:
        validate_migration_input(config, repo)
        target = config.target

        self.logger.debug(
            f'Migrating {repo.name} to {target.host}/{target.owner} '
            f'(mirror={config.migration.enable_mirror})'
        )
        # Gitea clones before answering; allow as long as an import may take
        with translate_migrate_errors(repo.name), self.open(target) as http:
            response = http.post(
                '/repos/migrate',
                data=self.build_payload(config, repo),
                timeout=config.migration.import_timeout,
            )

        data = response.data if isinstance(response.data, dict) else {}
        return MigrationReceipt(
            repository=repo.name,
            target_url=data.get('html_url'),
            target_id=data.get('id'),
            mirror=bool(data.get('mirror', config.migration.enable_mirror)),
        )
