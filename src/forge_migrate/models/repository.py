"""Repository entity models."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Repository(BaseModel):
    """A repository discovered on the source forge."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description='Repository name (path slug)')
    clone_url: str = Field(default='', description='HTTPS clone URL')
    ssh_url: Optional[str] = Field(default=None, description='SSH clone URL')
    html_url: Optional[str] = Field(default=None, description='Web URL')
    private: Optional[bool] = Field(default=None, description='Private on source')
    description: Optional[str] = Field(default=None, description='Description')

    def validation_problem(self) -> Optional[str]:
        """Describe why this record cannot be migrated, or None if it can."""
        if not self.name.strip():
            return 'repository name is empty'
        if not self.clone_url.strip():
            return f'repository {self.name!r} has no clone URL'
        if not self.clone_url.startswith(('https://', 'http://')):
            return f'repository {self.name!r} clone URL is not an HTTP(S) URL'
        return None


class MigrationReceipt(BaseModel):
    """What the target forge reported after accepting a migration."""

    model_config = ConfigDict(frozen=True)

    repository: str = Field(..., description='Source repository name')
    target_url: Optional[str] = Field(default=None, description='Destination URL')
    target_id: Optional[int] = Field(default=None, description='Destination ID')
    mirror: bool = Field(default=False, description='Created as a pull mirror')
