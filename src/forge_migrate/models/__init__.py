"""Data models for forge entities."""

from .repository import MigrationReceipt, Repository

__all__ = [
    'MigrationReceipt',
    'Repository',
]
