"""GitLab adapter."""

from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

from ..api.client import ForgeHTTPClient
from ..api.exceptions import (
    ConflictError,
    ForgeAPIError,
    ForgeNotFoundError,
    ForgeRateLimitError,
    ForgeServerError,
    ForgeTransportError,
    ImportFailedError,
    MalformedRequestError,
)
from ..config.config import Config, ForgeInstanceConfig, ForgeKind, MigrationConfig
from ..models.repository import MigrationReceipt, Repository
from .base import (
    ForgeClient,
    require_credentials,
    require_field,
    translate_fetch_errors,
    translate_migrate_errors,
    validate_migration_input,
    with_credentials,
)

GITLAB_PAGE_SIZE = 100
# 'none' or a missing import_status means no import is pending
IMPORT_DONE = ('finished', 'none', None)
IMPORT_FAILED = 'failed'
TAKEN_MARKER = 'has already been taken'


class GitLabClient(ForgeClient):
    """GitLab.com and self-managed GitLab.

    Project creation with ``import_url`` returns 201 while the import runs in
    the background, so ``migrate_repo`` polls ``import_status`` until GitLab
    reports ``finished`` or ``failed``.
    """

    kind = ForgeKind.GITLAB

    def api_root(self, forge_config: ForgeInstanceConfig) -> str:
        return f'{forge_config.base_url}/api/v4'

    def auth_options(
        self, forge_config: ForgeInstanceConfig
    ) -> Tuple[Dict[str, str], Optional[Tuple[str, str]]]:
        return {'Private-Token': forge_config.token.get_secret_value()}, None

    @staticmethod
    def _to_repository(record: Dict[str, Any]) -> Repository:
        name = record.get('path') if isinstance(record, dict) else None
        visibility = record.get('visibility') if isinstance(record, dict) else None
        return Repository(
            name=name or require_field(record, 'name'),
            clone_url=record.get('http_url_to_repo') or '',
            ssh_url=record.get('ssh_url_to_repo'),
            html_url=record.get('web_url'),
            private=None if visibility is None else visibility != 'public',
            description=record.get('description'),
        )

    def fetch_repos(self, config: Config) -> List[Repository]:
        source = config.source
        require_credentials(source, 'source')

        with translate_fetch_errors(self.kind.value), self.open(source) as http:
            records = http.get_paginated(
                f'/users/{quote(source.username, safe="")}/projects',
                per_page=GITLAB_PAGE_SIZE,
            )
            repositories = [self._to_repository(record) for record in records]

        self.logger.info(
            f'Found {len(repositories)} projects for {source.username} '
            f'on {source.host}'
        )
        return repositories

    def _namespace_id(self, http: ForgeHTTPClient, owner: str, repo: str) -> int:
        try:
            response = http.get(f'/namespaces/{quote(owner, safe="")}')
        except ForgeNotFoundError as e:
            raise MalformedRequestError(
                f'GitLab namespace {owner!r} not found', repository=repo, cause=e
            ) from e
        return response.data['id']

    @staticmethod
    def build_payload(
        config: Config, repo: Repository, namespace_id: int
    ) -> Dict[str, Any]:
        settings = config.migration
        import_url = repo.clone_url
        source_token = config.source.token.get_secret_value()
        if source_token and config.source.username:
            import_url = with_credentials(
                import_url, config.source.username, source_token
            )

        payload: Dict[str, Any] = {
            'name': repo.name,
            'path': repo.name,
            'namespace_id': namespace_id,
            'import_url': import_url,
            'visibility': 'private' if settings.make_private else 'public',
            'wiki_access_level': 'enabled' if settings.enable_wiki else 'disabled',
            'mirror': settings.enable_mirror,
        }
        if repo.description:
            payload['description'] = repo.description
        return payload

    def _wait_for_import(
        self,
        http: ForgeHTTPClient,
        project: Dict[str, Any],
        repo: str,
        settings: MigrationConfig,
    ) -> None:
        project_id = project['id']
        status = project.get('import_status')
        deadline = self._clock() + settings.import_timeout

        while status not in IMPORT_DONE:
            if status == IMPORT_FAILED:
                reason = project.get('import_error') or 'unknown error'
                raise ImportFailedError(
                    f'GitLab import failed: {reason}',
                    repository=repo,
                )
            if self._clock() >= deadline:
                raise ImportFailedError(
                    f'GitLab import still {status!r} after '
                    f'{settings.import_timeout:.0f}s',
                    repository=repo,
                )

            self.logger.debug(f'{repo}: import {status}, polling project {project_id}')
            self._sleep(settings.import_poll_interval)
            # Project already created: poll failures must not trigger a new POST
            try:
                project = http.get(f'/projects/{project_id}').data or {}
            except (ForgeServerError, ForgeTransportError, ForgeRateLimitError) as e:
                self.logger.warning(
                    f'{repo}: import status unavailable ({e}), polling again'
                )
                continue
            status = project.get('import_status')

    def migrate_repo(self, config: Config, repo: Repository) -> MigrationReceipt:
        validate_migration_input(config, repo)
        target = config.target

        with translate_migrate_errors(repo.name), self.open(target) as http:
            namespace_id = self._namespace_id(http, target.owner, repo.name)
            payload = self.build_payload(config, repo, namespace_id)
            try:
                response = http.post('/projects', data=payload)
            except ForgeAPIError as e:
                if e.status_code == 400 and TAKEN_MARKER in (e.body or ''):
                    raise ConflictError(
                        f'{repo.name} already exists in {target.owner}',
                        repository=repo.name,
                        status_code=e.status_code,
                        cause=e,
                    ) from e
                raise

            project = response.data
            if not isinstance(project, dict) or 'id' not in project:
                raise MalformedRequestError(
                    'GitLab returned no project for the import', repository=repo.name
                )
            self._wait_for_import(http, project, repo.name, config.migration)

        return MigrationReceipt(
            repository=repo.name,
            target_url=project.get('web_url'),
            target_id=project['id'],
            mirror=config.migration.enable_mirror,
        )
