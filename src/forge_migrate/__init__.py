"""Forge Migration Tool

Migrates a user's repositories between git forges (GitHub, GitLab, Gitea and
Forgejo) through the forges' REST APIs.
"""

__version__ = '0.1.0'
